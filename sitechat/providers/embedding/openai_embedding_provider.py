"""OpenAI embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Works with the real OpenAI endpoint and with OpenAI-compatible endpoints
via ``openai_base_url``.
"""

from __future__ import annotations

import openai
import structlog

from sitechat.config.settings import Settings
from sitechat.interfaces.embedding_provider import IEmbeddingProvider
from sitechat.utils.errors import ConfigurationError, EmbeddingFailureError

logger = structlog.get_logger(logger_name=__name__)

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by the OpenAI embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  Input longer
    than ``embedding_max_chars`` is cut before the call so a large page
    never exceeds the model's 8k-token budget, and every returned vector
    is checked against the expected dimension.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        client_kwargs: dict = {
            "api_key": self._api_key or "unset",
            "timeout": openai.Timeout(settings.http_timeout_seconds, connect=5.0),
        }
        if settings.openai_base_url:
            client_kwargs["base_url"] = settings.openai_base_url

        self._client = openai.AsyncOpenAI(**client_kwargs)
        self._model = settings.openai_embedding_model
        self._dimension = _MODEL_DIMENSIONS.get(self._model, settings.embedding_dimension)
        self._max_chars = settings.embedding_max_chars

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, text: str) -> list[float]:
        """Embed *text*, truncating it to the configured character budget."""
        if not self.is_available():
            raise ConfigurationError(
                message="OpenAI API key is not configured",
                provider_name=self.get_provider_name(),
            )

        if len(text) > self._max_chars:
            logger.debug(
                "truncating_embedding_input",
                original_chars=len(text),
                truncated_chars=self._max_chars,
                model=self._model,
            )
            text = text[: self._max_chars]

        try:
            response = await self._client.embeddings.create(input=text, model=self._model)
        except openai.APIError as exc:
            raise EmbeddingFailureError(
                message=f"OpenAI embeddings API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not response.data:
            raise EmbeddingFailureError(
                message="OpenAI embeddings API returned no data",
                provider_name=self.get_provider_name(),
            )

        embedding = list(response.data[0].embedding)
        if len(embedding) != self._dimension:
            raise EmbeddingFailureError(
                message=(
                    f"Embedding has {len(embedding)} dimensions, expected {self._dimension}"
                ),
                provider_name=self.get_provider_name(),
            )

        logger.debug(
            "openai_embedding",
            model=self._model,
            chars=len(text),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return embedding

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return f"openai-{self._model}"

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)
