"""Chunking and the indexing orchestrator."""

from sitechat.services.ingestion.chunker import CharacterChunker
from sitechat.services.ingestion.indexing_service import IndexingService

__all__ = ["CharacterChunker", "IndexingService"]
