"""Utility modules for sitechat.

- **errors** -- Domain exception hierarchy rooted at SiteChatError.
- **logging** -- structlog setup (console in development, JSON lines in
  production) and request-scoped context binding.
- **sse** -- Server-sent event framing and completion-stream parsing.
- **text_normalizer** -- Query tokenization, stopwords, keyword stemming
  and "(Part i/n)" title handling.
"""

from sitechat.utils.errors import (
    CompletionError,
    ConfigurationError,
    EmbeddingFailureError,
    ExtractionEmptyError,
    IndexingStateError,
    SiteChatError,
    StoreRejectedError,
    TransportFailureError,
    UserInputInvalidError,
)
from sitechat.utils.logging import (
    bind_request_context,
    configure_logging,
    get_logger,
)

__all__ = [
    "CompletionError",
    "ConfigurationError",
    "EmbeddingFailureError",
    "ExtractionEmptyError",
    "IndexingStateError",
    "SiteChatError",
    "StoreRejectedError",
    "TransportFailureError",
    "UserInputInvalidError",
    "bind_request_context",
    "configure_logging",
    "get_logger",
]
