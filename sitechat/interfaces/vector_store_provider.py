"""Abstract base class for vector-store providers.

Defines the contract for persisting embedded chunks and retrieving them by
vector similarity, keyword filters and fuzzy matching.  The store is
shared between sites; every row carries a namespace (the site URL) and
reads are scoped to it unless a method says otherwise.

Error contract: implementations never raise for remote failures.  Missing
credentials, transport errors and validation failures are logged and
reported as ``[]`` or ``False`` so the retriever's fallback stages can
take over.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from sitechat.models.rag import Chunk, SearchResult, SearchScope


# Concrete implementations: SupabaseVectorStore
# Located in: sitechat/providers/vector_store/
class IVectorStoreProvider(ABC):
    """Contract for the namespace-partitioned embeddings store."""

    @abstractmethod
    async def similarity_search(
        self,
        embedding: Sequence[float],
        k: int,
        namespace: str,
    ) -> list[SearchResult]:
        """Return up to *k* nearest rows above the similarity floor.

        Parameters
        ----------
        embedding:
            Query vector.
        k:
            Maximum number of rows.
        namespace:
            Site scope to search within.

        Returns
        -------
        list[SearchResult]
            Rows ordered by descending cosine similarity.
        """

    @abstractmethod
    async def keyword_search(
        self,
        pattern: str,
        scope: SearchScope,
        k: int,
        namespace: str,
    ) -> list[SearchResult]:
        """Case-insensitive substring match of *pattern* on title and/or content.

        Returned rows carry ``similarity == 0.0``; callers assign scores.
        """

    @abstractmethod
    async def fuzzy_search(
        self,
        term: str,
        k: int,
        scope: SearchScope,
    ) -> list[SearchResult]:
        """Trigram-style fuzzy match, used when substring matching fails."""

    @abstractmethod
    async def insert_chunk(
        self,
        chunk: Chunk,
        embedding: Sequence[Any],
        namespace: str,
    ) -> bool:
        """Validate and persist one chunk with its embedding.

        Validation (dimension, numeric values, non-empty title/content/url)
        happens before any network call; a rejected row returns ``False``.
        """

    @abstractmethod
    async def delete_by_source_id(self, source_id: str, namespace: str) -> bool:
        """Delete every chunk of one content item."""

    @abstractmethod
    async def delete_all(self, namespace: str) -> bool:
        """Delete every row belonging to *namespace*."""

    @abstractmethod
    async def list_rows(self, k: int, namespace: str | None) -> list[SearchResult]:
        """List up to *k* rows, scoped to *namespace* or unscoped when ``None``."""

    @abstractmethod
    async def get_by_source_id(self, source_id: str, namespace: str) -> list[SearchResult]:
        """Return the stored chunks of one content item, in chunk order."""

    @abstractmethod
    async def recent_rows(self, k: int, namespace: str) -> list[SearchResult]:
        """Return the *k* most recently inserted rows of *namespace*."""

    @abstractmethod
    async def test_connection(self) -> bool:
        """Return ``True`` if the store answers an authenticated request."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"supabase"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider has the credentials it needs."""
