"""Unit tests for IndexingService - per-item pipeline, full runs and batches."""

from __future__ import annotations

from unittest.mock import AsyncMock, call

import pytest

from sitechat.models.content import ContentItem
from sitechat.providers.indexing_state.memory_state_store import MemoryIndexingStateStore
from sitechat.services.extraction.text_extractor import TextExtractor
from sitechat.services.ingestion.chunker import CharacterChunker
from sitechat.services.ingestion.indexing_service import IndexingService
from sitechat.utils.errors import EmbeddingFailureError, IndexingStateError
from tests.conftest import (
    SITE_URL,
    InMemoryContentSource,
    InMemoryVectorStore,
    MockEmbeddingProvider,
    make_settings,
)

_BODY = (
    "<p>Accessible documents reach every reader. We audit, tag and test each "
    "file against WCAG 2.1 AA with assistive technology.</p>"
)


def _item(item_id: str, **fields) -> ContentItem:
    fields.setdefault("title", f"Service {item_id}")
    fields.setdefault("body", _BODY)
    fields.setdefault("content_type", "page")
    return ContentItem(id=item_id, **fields)


def _service(
    content_source: InMemoryContentSource,
    vector_store: InMemoryVectorStore,
    state_store: MemoryIndexingStateStore,
    sleep: AsyncMock,
    embedder: MockEmbeddingProvider | None = None,
    **overrides,
) -> IndexingService:
    settings = make_settings(**overrides)
    return IndexingService(
        content_source=content_source,
        extractor=TextExtractor(),
        chunker=CharacterChunker(settings.max_chunk_size, settings.chunk_overlap),
        embedding_provider=embedder or MockEmbeddingProvider(),
        vector_store=vector_store,
        state_store=state_store,
        settings=settings,
        sleep=sleep,
    )


# ======================================================================
# Single item
# ======================================================================


class TestIndexItem:
    @pytest.mark.asyncio
    async def test_indexes_published_item(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        content_source.put(sample_item)
        service = _service(content_source, vector_store, state_store, no_sleep)

        result = await service.index_item("101")

        assert result.success
        assert result.reason == "Success"
        assert result.chunks == 1
        assert len(vector_store.rows) == 1
        row = vector_store.rows[0]
        assert row["source_id"] == "101"
        assert row["url"] == f"{SITE_URL}/services/document-remediation/"
        assert row["namespace"] == SITE_URL
        assert "$12 per page" in row["content"]

    @pytest.mark.asyncio
    async def test_reindex_replaces_chunks(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        content_source.put(sample_item)
        service = _service(content_source, vector_store, state_store, no_sleep)

        await service.index_item("101")
        await service.index_item("101")

        assert len(vector_store.rows) == 1
        names = [c[0] for c in vector_store.calls]
        assert names == [
            "delete_by_source_id",
            "insert_chunk",
            "delete_by_source_id",
            "insert_chunk",
        ]

    @pytest.mark.asyncio
    async def test_long_item_stores_every_chunk(
        self, content_source, vector_store, state_store, no_sleep
    ) -> None:
        item = _item("7", body="<p>" + " ".join(f"word{i}" for i in range(300)) + "</p>")
        content_source.put(item)
        service = _service(
            content_source,
            vector_store,
            state_store,
            no_sleep,
            max_chunk_size=400,
            chunk_overlap=30,
            min_chunk_chars=1,
        )
        text = TextExtractor().extract(item).text
        expected = CharacterChunker(400, 30).split(text, item.title)

        result = await service.index_item("7")

        assert result.chunks == len(expected) > 1
        assert [r["chunk_index"] for r in vector_store.rows] == list(range(len(expected)))
        assert vector_store.rows[0]["title"] == f"Service 7 (Part 1/{len(expected)})"
        assert no_sleep.await_args_list == [call(0.25)] * len(expected)

    @pytest.mark.asyncio
    async def test_missing_url_is_resolved(
        self, content_source, vector_store, state_store, no_sleep
    ) -> None:
        content_source.put(_item("8"))
        await _service(content_source, vector_store, state_store, no_sleep).index_item("8")
        assert vector_store.rows[0]["url"] == f"{SITE_URL}/?p=8"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("item", "reason"),
        [
            (None, "Item not found"),
            (_item("9", status="draft"), "Item not published"),
            (_item("9", title="", body="<p> </p>"), "No content extracted"),
            (_item("9", title="T", body="<p>Hi</p>"), "Content too short"),
        ],
    )
    async def test_skip_reasons(
        self, content_source, vector_store, state_store, no_sleep, item, reason
    ) -> None:
        if item is not None:
            content_source.put(item)

        result = await _service(content_source, vector_store, state_store, no_sleep).index_item("9")

        assert not result.success
        assert result.reason == reason
        assert vector_store.calls_named("insert_chunk") == []
        logs = await state_store.get_logs()
        assert logs[-1].message == f"Item 9 skipped: {reason}"
        assert logs[-1].level == "error"

    @pytest.mark.asyncio
    async def test_embedding_failure_fails_item(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        content_source.put(sample_item)
        embedder = MockEmbeddingProvider()
        embedder.embed = AsyncMock(side_effect=EmbeddingFailureError(message="quota"))

        result = await _service(
            content_source, vector_store, state_store, no_sleep, embedder
        ).index_item("101")

        assert result.reason == "Failed to store chunks"
        assert vector_store.rows == []

    @pytest.mark.asyncio
    async def test_delete_item(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        content_source.put(sample_item)
        service = _service(content_source, vector_store, state_store, no_sleep)
        await service.index_item("101")

        assert await service.delete_item("101") is True
        assert vector_store.rows == []
        logs = await state_store.get_logs()
        assert logs[-1].message == "Deleted chunks for item 101"


# ======================================================================
# Full run
# ======================================================================


class TestIndexAll:
    @pytest.mark.asyncio
    async def test_summary_counts(self, vector_store, state_store, no_sleep) -> None:
        source = InMemoryContentSource(
            [
                _item("1"),
                _item("2"),
                _item("3", title="T", body="<p>Hi</p>"),
                _item("4", status="draft"),
            ]
        )
        summary = await _service(source, vector_store, state_store, no_sleep).index_all()

        assert summary.total == 3
        assert summary.indexed == 2
        assert summary.errors == 1
        assert summary.chunks_created == 2
        assert summary.success
        assert summary.error_details == ["Item 3: Content too short"]
        assert summary.message.startswith("Indexed 2 of 3 items (2 chunks, 1 errors) in ")

    @pytest.mark.asyncio
    async def test_pauses_between_items_and_batches(
        self, vector_store, state_store, no_sleep
    ) -> None:
        source = InMemoryContentSource([_item(str(i)) for i in range(1, 5)])
        await _service(source, vector_store, state_store, no_sleep).index_all(batch_size=2)

        item_pauses = [c for c in no_sleep.await_args_list if c != call(0.25)]
        assert item_pauses == [call(0.5), call(2.0), call(0.5)]

    @pytest.mark.asyncio
    async def test_empty_corpus(self, content_source, vector_store, state_store, no_sleep) -> None:
        summary = await _service(content_source, vector_store, state_store, no_sleep).index_all()
        assert summary.success
        assert summary.message == "No published content found"
        assert summary.total == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_is_counted(self, vector_store, state_store, no_sleep) -> None:
        source = InMemoryContentSource([_item("1"), _item("2")])
        original = source.get_item

        async def flaky(item_id: str):
            if item_id == "1":
                raise RuntimeError("database went away")
            return await original(item_id)

        source.get_item = flaky
        summary = await _service(source, vector_store, state_store, no_sleep).index_all()

        assert summary.indexed == 1
        assert summary.errors == 1
        assert "database went away" in summary.error_details[0]

    @pytest.mark.asyncio
    async def test_nothing_indexed_is_not_success(
        self, vector_store, state_store, no_sleep
    ) -> None:
        source = InMemoryContentSource([_item("1", title="T", body="<p>Hi</p>")])
        summary = await _service(source, vector_store, state_store, no_sleep).index_all()
        assert not summary.success


# ======================================================================
# Resumable batches
# ======================================================================


class TestBatches:
    @pytest.mark.asyncio
    async def test_batches_until_complete(self, vector_store, state_store, no_sleep) -> None:
        source = InMemoryContentSource([_item(str(i)) for i in range(1, 6)])
        service = _service(source, vector_store, state_store, no_sleep, batch_size=2)

        started = await service.start_batch()
        assert started.message == "Queued 5 items"
        assert started.stats.total == 5
        assert not started.is_complete

        first = await service.process_next_batch()
        assert first.message == "Processed 2/5 items"
        assert (await state_store.load_state()).queue == ["3", "4", "5"]

        second = await service.process_next_batch()
        assert second.stats.processed == 4
        assert not second.is_complete

        last = await service.process_next_batch()
        assert last.is_complete
        assert last.stats.indexed == 5
        assert last.message == "Indexing complete: 5 indexed, 0 errors, 5 chunks"
        assert await state_store.load_state() is None
        assert len({r["source_id"] for r in vector_store.rows}) == 5

    @pytest.mark.asyncio
    async def test_checkpoint_after_every_item(self, vector_store, state_store, no_sleep) -> None:
        source = InMemoryContentSource([_item(str(i)) for i in range(1, 6)])
        service = _service(source, vector_store, state_store, no_sleep, batch_size=2)
        await service.start_batch()

        state_store.save_state = AsyncMock(wraps=state_store.save_state)
        await service.process_next_batch()

        queues = [c.args[0].queue for c in state_store.save_state.await_args_list]
        assert queues == [["2", "3", "4", "5"], ["3", "4", "5"]]
        assert call(0.3) in no_sleep.await_args_list

    @pytest.mark.asyncio
    async def test_next_batch_without_start(
        self, content_source, vector_store, state_store, no_sleep
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep)
        with pytest.raises(IndexingStateError):
            await service.process_next_batch()

    @pytest.mark.asyncio
    async def test_start_with_nothing_published(
        self, content_source, vector_store, state_store, no_sleep
    ) -> None:
        progress = await _service(content_source, vector_store, state_store, no_sleep).start_batch()
        assert progress.is_complete
        assert await state_store.load_state() is None

    @pytest.mark.asyncio
    async def test_failures_are_counted(self, vector_store, state_store, no_sleep) -> None:
        source = InMemoryContentSource([_item("1"), _item("2", title="T", body="<p>Hi</p>")])
        service = _service(source, vector_store, state_store, no_sleep, batch_size=10)
        await service.start_batch()

        progress = await service.process_next_batch()

        assert progress.is_complete
        assert progress.stats.indexed == 1
        assert progress.stats.errors == 1


# ======================================================================
# Content events
# ======================================================================


class TestContentEvents:
    @pytest.mark.asyncio
    async def test_save_indexes_and_unpublish_removes(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep)
        service.register(content_source)

        content_source.put(sample_item)
        await content_source.notify_changed("101")
        assert len(vector_store.rows) == 1

        content_source.put(sample_item.model_copy(update={"status": "draft"}))
        await content_source.notify_changed("101")
        assert vector_store.rows == []

    @pytest.mark.asyncio
    async def test_change_to_unreadable_item_removes_chunks(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep)
        service.register(content_source)
        content_source.put(sample_item)
        await content_source.notify_changed("101")
        assert len(vector_store.rows) == 1

        # A draft read without credentials is not returned at all.
        del content_source.items["101"]
        await content_source.notify_changed("101")

        assert vector_store.rows == []

    @pytest.mark.asyncio
    async def test_delete_event_removes_chunks(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep)
        service.register(content_source)
        content_source.put(sample_item)
        await content_source.notify_changed("101")

        await content_source.notify_deleted("101")

        assert vector_store.rows == []

    @pytest.mark.asyncio
    async def test_auto_index_disabled(
        self, content_source, vector_store, state_store, no_sleep, sample_item
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep, auto_index=False)
        service.register(content_source)
        content_source.put(sample_item)

        await content_source.notify_changed("101")

        assert vector_store.calls == []

    @pytest.mark.asyncio
    async def test_unindexed_content_type_ignored(
        self, content_source, vector_store, state_store, no_sleep
    ) -> None:
        service = _service(content_source, vector_store, state_store, no_sleep)
        service.register(content_source)
        content_source.put(_item("50", content_type="attachment"))

        await content_source.notify_changed("50")

        assert vector_store.calls == []
