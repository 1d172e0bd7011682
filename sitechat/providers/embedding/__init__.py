"""Embedding provider implementations.

Embeddings convert text into numeric vectors that capture semantic meaning.
They are stored in the vector store next to each chunk and compared against
the embedded user query at search time.

    - OpenAIEmbeddingProvider - text-embedding-3-small (1536 dims).
"""

from sitechat.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
