"""sitechat domain models - re-exports all public model classes.

The models are organized across four submodules by domain concern:
    - content.py   - CMS records consumed by the indexer
    - rag.py       - extracted documents, chunks, stored rows, search results
    - indexing.py  - indexing outcomes and resumable batch state
    - chat.py      - chat requests and server-sent stream events
"""

from __future__ import annotations

from sitechat.models.chat import (
    ChatMessage,
    ChatReply,
    ContentEvent,
    ErrorEvent,
    Source,
    SourcesEvent,
    StreamEvent,
)
from sitechat.models.content import ContentItem, ProductInfo
from sitechat.models.indexing import (
    BatchProgress,
    BatchStats,
    IndexingLogEntry,
    IndexingState,
    IndexingSummary,
    ItemIndexResult,
)
from sitechat.models.rag import (
    Chunk,
    EmbeddedChunk,
    ExtractedDocument,
    Intent,
    QueryPattern,
    SearchResult,
    SearchScope,
)

__all__ = [
    "BatchProgress",
    "BatchStats",
    "ChatMessage",
    "ChatReply",
    "Chunk",
    "ContentEvent",
    "ContentItem",
    "EmbeddedChunk",
    "ErrorEvent",
    "ExtractedDocument",
    "IndexingLogEntry",
    "IndexingState",
    "IndexingSummary",
    "Intent",
    "ItemIndexResult",
    "ProductInfo",
    "QueryPattern",
    "SearchResult",
    "SearchScope",
    "Source",
    "SourcesEvent",
    "StreamEvent",
]
