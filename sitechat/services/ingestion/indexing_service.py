"""Orchestrator for indexing CMS content into the vector store.

Per-item pipeline: **fetch -> validate -> extract -> chunk -> delete old
chunks -> embed -> store**.

The :class:`IndexingService` implements the **Orchestrator pattern**: it
coordinates the content source, text extractor, chunker, embedding
provider, vector store and indexing state store without any of them
knowing about each other.  All collaborators are injected.

Three ways to drive it:

- :meth:`IndexingService.index_item` -- one item, e.g. on a save event.
- :meth:`IndexingService.index_all` -- the whole corpus in one call, for
  the CLI or any caller without an execution-time ceiling.
- :meth:`IndexingService.start_batch` + :meth:`IndexingService.process_next_batch`
  -- a bounded window of items per call, with the remaining queue and the
  running totals checkpointed in the state store between calls.

Failure policy: an item or chunk that fails is logged with its ids and
skipped; nothing aborts a run.  Items are indexed strictly one after the
other with pauses between chunks and items to stay under the embedding
provider's rate limits.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

import structlog

from sitechat.models.indexing import (
    BatchProgress,
    BatchStats,
    IndexingLogEntry,
    IndexingState,
    IndexingSummary,
    ItemIndexResult,
)
from sitechat.utils.errors import (
    ConfigurationError,
    EmbeddingFailureError,
    ExtractionEmptyError,
    IndexingStateError,
    SiteChatError,
)

if TYPE_CHECKING:
    from sitechat.config.settings import Settings
    from sitechat.interfaces.content_source import IContentSource
    from sitechat.interfaces.embedding_provider import IEmbeddingProvider
    from sitechat.interfaces.indexing_state_store import IIndexingStateStore
    from sitechat.interfaces.vector_store_provider import IVectorStoreProvider
    from sitechat.models.content import ContentItem
    from sitechat.models.rag import Chunk, ExtractedDocument
    from sitechat.services.extraction.text_extractor import TextExtractor
    from sitechat.services.ingestion.chunker import CharacterChunker

logger = structlog.get_logger(logger_name=__name__)


class IndexingService:
    """Drives extraction, chunking, embedding and storage for CMS content.

    Parameters
    ----------
    content_source:
        Where items are enumerated and fetched.
    extractor:
        Flattens an item into plain text.
    chunker:
        Splits long text into overlapping windows.
    embedding_provider:
        Embeds each chunk.
    vector_store:
        Persists chunks; also deletes an item's previous chunks.
    state_store:
        Checkpoints batch runs and keeps the admin log.
    settings:
        Namespace, content types, pauses and batch size.
    sleep:
        Awaitable used for rate-limit pauses (tests pass a no-op).
    """

    def __init__(
        self,
        content_source: IContentSource,
        extractor: TextExtractor,
        chunker: CharacterChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        state_store: IIndexingStateStore,
        settings: Settings,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._content_source = content_source
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._state_store = state_store
        self._settings = settings
        self._namespace = settings.site_url
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Single item
    # ------------------------------------------------------------------

    async def index_item(self, source_id: str) -> ItemIndexResult:
        """Fetch and (re-)index one item, replacing all of its stored chunks."""
        item = await self._content_source.get_item(source_id)
        if item is None:
            return await self._failed(source_id, "Item not found")
        return await self._index_content(item)

    async def delete_item(self, source_id: str) -> bool:
        """Remove every stored chunk of *source_id*."""
        deleted = await self._vector_store.delete_by_source_id(source_id, self._namespace)
        await self._log(
            "info" if deleted else "error",
            f"{'Deleted' if deleted else 'Failed to delete'} chunks for item {source_id}",
        )
        return deleted

    # ------------------------------------------------------------------
    # Full run
    # ------------------------------------------------------------------

    async def index_all(self, batch_size: int | None = None) -> IndexingSummary:
        """Index every published item in one pass.

        Parameters
        ----------
        batch_size:
            When set, a longer cooldown (``batch_cooldown_seconds``) replaces
            the per-item pause after every *batch_size* items.
        """
        start = time.monotonic()
        ids = await self._content_source.list_published_ids(
            self._settings.indexed_content_types
        )
        total = len(ids)
        if not ids:
            await self._log("warning", "No published content found")
            return IndexingSummary(success=True, message="No published content found")

        await self._log("info", f"Starting full indexing run for {total} items")
        indexed = errors = chunks = 0
        error_details: list[str] = []

        for position, item_id in enumerate(ids, start=1):
            result = await self._index_safely(item_id)
            if result.success:
                indexed += 1
                chunks += result.chunks
            else:
                errors += 1
                error_details.append(f"Item {item_id}: {result.reason}")

            if position % self._settings.progress_log_interval == 0:
                logger.info(
                    "indexing_progress",
                    processed=position,
                    total=total,
                    indexed=indexed,
                    errors=errors,
                )
                await self._log("info", f"Progress: {position}/{total} items processed")

            if position < total:
                if batch_size and position % batch_size == 0:
                    await self._sleep(self._settings.batch_cooldown_seconds)
                else:
                    await self._sleep(self._settings.item_pause_seconds)

        elapsed = time.monotonic() - start
        message = (
            f"Indexed {indexed} of {total} items ({chunks} chunks, "
            f"{errors} errors) in {elapsed:.1f}s"
        )
        await self._log("info", message)
        return IndexingSummary(
            success=indexed > 0,
            message=message,
            indexed=indexed,
            errors=errors,
            total=total,
            chunks_created=chunks,
            error_details=error_details,
        )

    # ------------------------------------------------------------------
    # Resumable batches
    # ------------------------------------------------------------------

    async def start_batch(self) -> BatchProgress:
        """Queue every published item and reset the running totals."""
        ids = await self._content_source.list_published_ids(
            self._settings.indexed_content_types
        )
        stats = BatchStats(total=len(ids))
        if not ids:
            await self._state_store.clear_state()
            await self._log("warning", "No published content found")
            return BatchProgress(
                is_complete=True, stats=stats, message="No published content found"
            )

        await self._state_store.save_state(IndexingState(queue=ids, stats=stats))
        await self._log("info", f"Batch indexing started with {len(ids)} items")
        return BatchProgress(
            is_complete=False, stats=stats, message=f"Queued {len(ids)} items"
        )

    async def process_next_batch(self) -> BatchProgress:
        """Index the next window of queued items.

        The checkpoint is rewritten after every item, so an interrupted call
        resumes without re-processing finished items.

        Raises
        ------
        IndexingStateError
            If no batch run was started or its state has expired.
        """
        state = await self._state_store.load_state()
        if state is None:
            raise IndexingStateError()

        batch = state.queue[: self._settings.batch_size]
        remaining = list(state.queue[self._settings.batch_size :])
        stats = state.stats
        logger.info("indexing_batch_started", batch=len(batch), remaining=len(remaining))

        for position, item_id in enumerate(batch):
            result = await self._index_safely(item_id)
            stats = BatchStats(
                total=stats.total,
                processed=stats.processed + 1,
                indexed=stats.indexed + (1 if result.success else 0),
                errors=stats.errors + (0 if result.success else 1),
                chunks=stats.chunks + result.chunks,
            )
            await self._state_store.save_state(
                IndexingState(
                    queue=batch[position + 1 :] + remaining,
                    stats=stats,
                    started_at=state.started_at,
                )
            )
            if position < len(batch) - 1:
                await self._sleep(self._settings.batch_item_pause_seconds)

        is_complete = not remaining
        if is_complete:
            await self._state_store.clear_state()
            message = (
                f"Indexing complete: {stats.indexed} indexed, {stats.errors} errors, "
                f"{stats.chunks} chunks"
            )
        else:
            message = f"Processed {stats.processed}/{stats.total} items"
        await self._log("info", message)
        return BatchProgress(is_complete=is_complete, stats=stats, message=message)

    # ------------------------------------------------------------------
    # Content events
    # ------------------------------------------------------------------

    def register(self, content_source: IContentSource) -> None:
        """Subscribe to *content_source*'s change and delete events."""
        content_source.on_content_changed(self._on_content_changed)
        content_source.on_content_deleted(self._on_content_deleted)

    async def _on_content_changed(self, item_id: str) -> None:
        if not self._settings.auto_index:
            return
        item = await self._content_source.get_item(item_id)
        if item is None or not item.is_published:
            # No longer readable as published content: stop answering from it.
            await self.delete_item(item_id)
            return
        if item.content_type not in self._settings.indexed_content_types:
            return
        await self._index_content(item)

    async def _on_content_deleted(self, item_id: str) -> None:
        await self.delete_item(item_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _index_safely(self, item_id: str) -> ItemIndexResult:
        try:
            return await self.index_item(item_id)
        except SiteChatError as exc:
            return await self._failed(item_id, str(exc))
        except Exception as exc:  # noqa: BLE001
            logger.exception("indexing_item_crashed", source_id=item_id)
            return await self._failed(item_id, f"Unexpected error: {exc}")

    async def _index_content(self, item: ContentItem) -> ItemIndexResult:
        source_id = item.id
        if not item.is_published:
            return await self._failed(source_id, "Item not published")

        try:
            document = self._extract(item)
        except ExtractionEmptyError as exc:
            return await self._failed(source_id, exc.message)

        if len(document.text) < self._settings.min_chunk_chars:
            return await self._failed(source_id, "Content too short")

        url = document.url or await self._content_source.resolve_url(source_id)
        chunks = self._chunker.split(
            document.text, document.title or f"Item {source_id}", source_id=source_id, url=url
        )
        if not chunks:
            return await self._failed(source_id, "Content too short")

        # Full replace: old chunks go first so boundaries that moved since
        # the last run cannot leave stale parts behind.
        if not await self._vector_store.delete_by_source_id(source_id, self._namespace):
            logger.warning("indexing_delete_failed", source_id=source_id)

        stored = 0
        for chunk in chunks:
            if await self._store_chunk(chunk):
                stored += 1
            await self._sleep(self._settings.chunk_pause_seconds)

        if stored == 0:
            return await self._failed(source_id, "Failed to store chunks")

        logger.info("item_indexed", source_id=source_id, chunks=stored, of=len(chunks))
        await self._log("info", f"Indexed item {source_id} with {stored} chunks")
        return ItemIndexResult(source_id=source_id, success=True, reason="Success", chunks=stored)

    def _extract(self, item: ContentItem) -> ExtractedDocument:
        document = self._extractor.extract(item)
        if document.is_empty:
            raise ExtractionEmptyError()
        return document

    async def _store_chunk(self, chunk: Chunk) -> bool:
        if len(chunk.body.strip()) < self._settings.min_chunk_chars:
            logger.info(
                "chunk_skipped_too_small",
                source_id=chunk.source_id,
                chunk_index=chunk.chunk_index,
                chars=len(chunk.body.strip()),
            )
            return False
        try:
            embedding = await self._embedding_provider.embed(chunk.text)
        except (EmbeddingFailureError, ConfigurationError) as exc:
            logger.warning(
                "chunk_embedding_failed",
                source_id=chunk.source_id,
                chunk_index=chunk.chunk_index,
                error=str(exc),
            )
            return False

        stored = await self._vector_store.insert_chunk(chunk, embedding, self._namespace)
        if not stored:
            logger.warning(
                "chunk_store_failed", source_id=chunk.source_id, chunk_index=chunk.chunk_index
            )
        return stored

    async def _failed(self, source_id: str, reason: str) -> ItemIndexResult:
        await self._log("error", f"Item {source_id} skipped: {reason}")
        return ItemIndexResult(source_id=source_id, success=False, reason=reason, chunks=0)

    async def _log(self, level: str, message: str) -> None:
        getattr(logger, level, logger.info)("indexing_log", message=message)
        await self._state_store.append_log(IndexingLogEntry(level=level, message=message))
