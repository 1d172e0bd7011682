"""Retrieval data models for the sitechat knowledge base.

Defines Pydantic v2 models for extracted documents, chunks, stored rows
and search results.  All models use frozen config so a value handed from
one pipeline stage to the next cannot be mutated behind its back.

Pipeline overview:

    1. EXTRACTION: a CMS item is flattened into one plain-text
       :class:`ExtractedDocument`.
    2. CHUNKING: long documents are split into overlapping
       :class:`Chunk` windows, each carrying its title and part index.
    3. EMBEDDING + STORAGE: each chunk is embedded and persisted as an
       :class:`EmbeddedChunk` row, partitioned by ``site_scope``.
    4. RETRIEVAL: the hybrid retriever returns ranked
       :class:`SearchResult` rows that feed the chat context.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Intent(str, Enum):  # noqa: UP042
    """Coarse classification of a user query.

    Chosen per request by
    :class:`~sitechat.services.retrieval.intent.IntentClassifier`; selects
    which targeted search strategy the retriever adds to the pipeline.
    """

    GENERAL = "general"
    PRICING = "pricing"
    SERVICES = "services"
    CONTACT = "contact"


class SearchScope(str, Enum):  # noqa: UP042
    """Which columns a keyword search matches against."""

    TITLE = "title"
    CONTENT = "content"
    BOTH = "both"


# ---------------------------------------------------------------------------
# ExtractedDocument - the normalized text of one content item.
# ---------------------------------------------------------------------------
class ExtractedDocument(BaseModel):
    """Markup-free text of one CMS item, ready for chunking.

    ``text`` is empty when the item carries nothing indexable; that is a
    valid outcome, not an error.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(description="CMS id of the item the text came from.")
    title: str = Field(default="", description="Item title.")
    url: str = Field(default="", description="Canonical URL of the item.")
    text: str = Field(default="", description="Whitespace-collapsed plain text.")

    @property
    def is_empty(self) -> bool:
        return not self.text


# ---------------------------------------------------------------------------
# Chunk - one window of an extracted document.
# ---------------------------------------------------------------------------
class Chunk(BaseModel):
    """A bounded slice of a document's extracted text.

    ``text`` is what gets embedded and stored.  For multi-part documents it
    is ``"Title: {title}\\n\\n" + body`` so each part carries its document
    context; for single-part documents ``text == body``.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str = Field(default="", description="CMS id of the parent item.")
    chunk_index: int = Field(default=0, ge=0, description="Zero-based position in the document.")
    chunk_count: int = Field(default=1, ge=1, description="Number of chunks in the document.")
    title: str = Field(description='Title, suffixed "(Part i/n)" when chunk_count > 1.')
    url: str = Field(default="", description="Canonical URL of the parent item.")
    text: str = Field(description="Prefixed chunk text, as embedded and stored.")
    body: str = Field(description="The raw window of extracted text, without prefix.")


# ---------------------------------------------------------------------------
# EmbeddedChunk - a validated row ready for the vector store.
# ---------------------------------------------------------------------------
class EmbeddedChunk(BaseModel):
    """A chunk plus its embedding and site namespace.

    Instances are only built by the vector store provider after the
    embedding has passed dimension and numeric validation.
    """

    model_config = ConfigDict(frozen=True)

    source_id: str
    chunk_index: int = Field(ge=0)
    title: str
    url: str
    content: str
    embedding: list[float]
    site_scope: str = Field(description="Namespace partition key (the site URL).")

    def to_row(self) -> dict:
        """Serialize to the column layout of the embeddings table."""
        return {
            "post_id": self.source_id,
            "title": self.title,
            "content": self.content,
            "url": self.url,
            "embedding": self.embedding,
            "site_url": self.site_scope,
            "chunk_index": self.chunk_index,
        }


# ---------------------------------------------------------------------------
# SearchResult - one ranked passage returned by retrieval.
# ---------------------------------------------------------------------------
class SearchResult(BaseModel):
    """A passage returned from the store with a relative relevance score.

    ``similarity`` is only meaningful relative to the other results of the
    same search: vector hits carry true cosine similarity in [0, 1],
    keyword and listing paths carry synthetic descending scores, and forced
    hits (the contact page) carry scores above 1 so they sort first.
    """

    model_config = ConfigDict(frozen=True)

    id: int = Field(default=0, description="Row id in the store.")
    source_id: str = Field(default="", description="CMS id of the parent item.")
    title: str = Field(default="Content")
    content: str = Field(default="")
    url: str = Field(default="")
    similarity: float = Field(default=0.0, description="Relative relevance score.")


# ---------------------------------------------------------------------------
# QueryPattern - item / context phrases pulled out of a question.
# ---------------------------------------------------------------------------
class QueryPattern(BaseModel):
    """Structured reading of "price of X in Y" / "benefit of X" questions."""

    model_config = ConfigDict(frozen=True)

    kind: str = Field(default="", description='"pricing", "benefit" or "" when nothing matched.')
    item: str = Field(default="", description="The thing asked about (X).")
    context: str = Field(default="", description="Optional narrowing phrase (Y).")

    @property
    def matched(self) -> bool:
        return bool(self.item)
