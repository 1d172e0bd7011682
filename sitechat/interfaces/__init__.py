"""Public interface definitions for all external service providers.

Every external service sitechat talks to is accessed exclusively through
the abstract base classes defined in this package.  Concrete adapters
implement these interfaces and are injected at runtime by
``sitechat/main.py`` (the API) or ``sitechat/cli`` (the command line).

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in sitechat/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    ICompletionProvider        →  OpenAICompletionProvider
    IVectorStoreProvider       →  SupabaseVectorStore
    IContentSource             →  WordPressContentSource
    IIndexingStateStore        →  MemoryIndexingStateStore,
                                  SQLiteIndexingStateStore
"""

from sitechat.interfaces.completion_provider import ICompletionProvider
from sitechat.interfaces.content_source import ContentHandler, IContentSource
from sitechat.interfaces.embedding_provider import IEmbeddingProvider
from sitechat.interfaces.indexing_state_store import IIndexingStateStore
from sitechat.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "ContentHandler",
    "ICompletionProvider",
    "IContentSource",
    "IEmbeddingProvider",
    "IIndexingStateStore",
    "IVectorStoreProvider",
]
