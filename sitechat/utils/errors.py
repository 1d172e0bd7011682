"""Custom exception hierarchy for sitechat.

All application exceptions inherit from :class:`SiteChatError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "supabase", "wordpress") caused the failure.

The hierarchy is organized by pipeline domain:

    SiteChatError  (base -- catch-all for any sitechat error)
    +-- ConfigurationError       (missing credentials / invalid config)
    +-- ExtractionEmptyError     (content item has nothing indexable)
    +-- EmbeddingFailureError    (no vector, or a malformed one)
    +-- StoreRejectedError       (row failed validation before persistence)
    +-- TransportFailureError    (network / HTTP failure talking to a provider)
    +-- CompletionError          (chat completion call or stream failed)
    +-- UserInputInvalidError    (empty or malformed user request)
    +-- IndexingStateError       (batch indexing driven without a started run)

Remote-call sites catch these at the narrowest level and degrade to an
empty or false result, so a failure never crosses a single retrieval stage
or a single indexed item.
"""


class SiteChatError(Exception):
    """Base exception for all sitechat errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[supabase] HTTP 500``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigurationError(SiteChatError):
    """Raised when a provider is used without the credentials it needs."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Indexing pipeline
# ---------------------------------------------------------------------------

class ExtractionEmptyError(SiteChatError):
    """Raised when a content item yields no indexable text.

    This is an expected outcome for empty drafts or media-only pages; the
    indexer records it as a skipped item rather than a failure of the run.
    """

    def __init__(
        self,
        message: str = "No content extracted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingFailureError(SiteChatError):
    """Raised when the embedding provider returns no vector or a malformed one."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreRejectedError(SiteChatError):
    """Raised when a row fails validation before it is sent to the store.

    Wrong vector dimensionality, non-numeric vector values and missing
    required fields all land here.  No network call is made.
    """

    def __init__(
        self,
        message: str = "Row rejected by store validation",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class IndexingStateError(SiteChatError):
    """Raised when a batch step is requested but no batch run is in progress."""

    def __init__(
        self,
        message: str = "No indexing in progress",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# External service / provider errors
# ---------------------------------------------------------------------------

class TransportFailureError(SiteChatError):
    """Raised when a network or HTTP call to a remote provider fails."""

    def __init__(
        self,
        message: str = "Remote service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CompletionError(SiteChatError):
    """Raised when a chat completion fails or its stream is malformed."""

    def __init__(
        self,
        message: str = "Chat completion failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Request boundary
# ---------------------------------------------------------------------------

class UserInputInvalidError(SiteChatError):
    """Raised when a chat request carries an empty message."""

    def __init__(
        self,
        message: str = "Message is required",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
