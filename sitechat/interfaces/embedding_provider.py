"""Abstract base class for text-embedding service providers.

Defines the contract for turning a text string into a fixed-length
vector.  The indexer embeds every chunk through it and the hybrid
retriever embeds the user's query.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider - text-embedding-3-small (requires API key)
# Located in: sitechat/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by indexing and retrieval."""

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate an embedding vector for *text*.

        Implementations must truncate input that exceeds the provider's
        token budget to a safe character count before calling out.

        Parameters
        ----------
        text:
            The text string to embed.

        Returns
        -------
        list[float]
            The embedding vector with length equal to :meth:`get_dimension`.

        Raises
        ------
        sitechat.utils.errors.ConfigurationError
            If the provider has no credentials.
        sitechat.utils.errors.EmbeddingFailureError
            If the call fails or the returned vector is missing or has the
            wrong dimension.
        """

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors.

        Must match the dimension the vector store validates against
        (``1536`` for ``text-embedding-3-small``).
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider is configured.

        Implementations check credentials only; no embedding is generated.
        """
