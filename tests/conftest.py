"""Shared pytest fixtures for the sitechat test suite."""

from __future__ import annotations

import hashlib
import struct
from collections.abc import AsyncIterator, Sequence
from typing import Any
from unittest.mock import AsyncMock

import pytest

from sitechat.config.settings import Settings
from sitechat.interfaces.completion_provider import ICompletionProvider
from sitechat.interfaces.content_source import ContentHandler, IContentSource
from sitechat.interfaces.embedding_provider import IEmbeddingProvider
from sitechat.interfaces.vector_store_provider import IVectorStoreProvider
from sitechat.models.chat import ChatMessage
from sitechat.models.content import ContentItem
from sitechat.models.rag import Chunk, SearchResult, SearchScope
from sitechat.providers.content.event_hub import ContentEventHub
from sitechat.providers.indexing_state.memory_state_store import MemoryIndexingStateStore

SITE_URL = "https://example.org"
_EMBEDDING_DIM = 1536


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def make_settings(**overrides: Any) -> Settings:
    """Settings isolated from any local .env file."""
    values: dict[str, Any] = {
        "site_url": SITE_URL,
        "openai_api_key": "sk-test",
        "supabase_url": "https://db.example.supabase.co",
        "supabase_api_key": "service-key",
        "cms_base_url": SITE_URL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic unit-length vector by hashing *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    values = list(struct.unpack(f"<{dim}f", raw[: dim * 4]))
    # Unpacked bytes can be NaN or inf; map them into a small range first.
    values = [(v % 1.0) if v == v and abs(v) != float("inf") else 0.5 for v in values]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """Deterministic embedding provider that records every embedded text."""

    def __init__(self, dim: int = _EMBEDDING_DIM) -> None:
        self._dim = dim
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return _hash_to_vector(text, self._dim)

    def get_dimension(self) -> int:
        return self._dim

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Vector store
# ---------------------------------------------------------------------------


class InMemoryVectorStore(IVectorStoreProvider):
    """List-backed vector store that records every call.

    Keyword search does real case-insensitive substring matching; vector
    and fuzzy search return whatever the test preset in
    ``vector_results`` / ``fuzzy_results``.
    """

    def __init__(self, dimension: int = _EMBEDDING_DIM) -> None:
        self.rows: list[dict[str, Any]] = []
        self.calls: list[tuple[Any, ...]] = []
        self.vector_results: list[SearchResult] = []
        self.fuzzy_results: list[SearchResult] = []
        self._dimension = dimension
        self._next_id = 1

    # -- seeding helpers --

    def add_row(
        self,
        source_id: str,
        title: str,
        content: str,
        url: str = "",
        *,
        chunk_index: int = 0,
        namespace: str = SITE_URL,
    ) -> SearchResult:
        row = {
            "id": self._next_id,
            "source_id": source_id,
            "title": title,
            "content": content,
            "url": url or f"{SITE_URL}/{source_id}/",
            "chunk_index": chunk_index,
            "namespace": namespace,
        }
        self._next_id += 1
        self.rows.append(row)
        return self._to_result(row)

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == name]

    @staticmethod
    def _to_result(row: dict[str, Any], similarity: float = 0.0) -> SearchResult:
        return SearchResult(
            id=row["id"],
            source_id=row["source_id"],
            title=row["title"],
            content=row["content"],
            url=row["url"],
            similarity=similarity,
        )

    def _scoped(self, namespace: str | None) -> list[dict[str, Any]]:
        return [r for r in self.rows if namespace is None or r["namespace"] == namespace]

    # -- IVectorStoreProvider --

    async def similarity_search(
        self, embedding: Sequence[float], k: int, namespace: str
    ) -> list[SearchResult]:
        self.calls.append(("similarity_search", k, namespace))
        return list(self.vector_results[:k])

    async def keyword_search(
        self, pattern: str, scope: SearchScope, k: int, namespace: str
    ) -> list[SearchResult]:
        self.calls.append(("keyword_search", pattern, scope, k, namespace))
        needle = pattern.lower()
        hits = []
        for row in self._scoped(namespace):
            title, content = row["title"].lower(), row["content"].lower()
            if scope is SearchScope.TITLE:
                matched = needle in title
            elif scope is SearchScope.CONTENT:
                matched = needle in content
            else:
                matched = needle in title or needle in content
            if matched:
                hits.append(self._to_result(row))
        return hits[:k]

    async def fuzzy_search(self, term: str, k: int, scope: SearchScope) -> list[SearchResult]:
        self.calls.append(("fuzzy_search", term, k, scope))
        return list(self.fuzzy_results[:k])

    async def insert_chunk(
        self, chunk: Chunk, embedding: Sequence[Any], namespace: str
    ) -> bool:
        self.calls.append(("insert_chunk", chunk.source_id, chunk.chunk_index))
        if len(embedding) != self._dimension:
            return False
        self.add_row(
            chunk.source_id,
            chunk.title,
            chunk.text,
            chunk.url,
            chunk_index=chunk.chunk_index,
            namespace=namespace,
        )
        return True

    async def delete_by_source_id(self, source_id: str, namespace: str) -> bool:
        self.calls.append(("delete_by_source_id", source_id, namespace))
        self.rows = [
            r for r in self.rows
            if not (r["source_id"] == source_id and r["namespace"] == namespace)
        ]
        return True

    async def delete_all(self, namespace: str) -> bool:
        self.calls.append(("delete_all", namespace))
        self.rows = [r for r in self.rows if r["namespace"] != namespace]
        return True

    async def list_rows(self, k: int, namespace: str | None) -> list[SearchResult]:
        self.calls.append(("list_rows", k, namespace))
        return [self._to_result(r) for r in self._scoped(namespace)[:k]]

    async def get_by_source_id(self, source_id: str, namespace: str) -> list[SearchResult]:
        self.calls.append(("get_by_source_id", source_id, namespace))
        rows = [r for r in self._scoped(namespace) if r["source_id"] == source_id]
        return [self._to_result(r) for r in sorted(rows, key=lambda r: r["chunk_index"])]

    async def recent_rows(self, k: int, namespace: str) -> list[SearchResult]:
        self.calls.append(("recent_rows", k, namespace))
        rows = sorted(self._scoped(namespace), key=lambda r: r["id"], reverse=True)
        return [self._to_result(r) for r in rows[:k]]

    async def test_connection(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "in-memory"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Content source
# ---------------------------------------------------------------------------


class InMemoryContentSource(IContentSource):
    """Dict-backed content source with a real event hub."""

    def __init__(self, items: Sequence[ContentItem] = ()) -> None:
        self.items: dict[str, ContentItem] = {item.id: item for item in items}
        self._hub = ContentEventHub()

    def put(self, item: ContentItem) -> None:
        self.items[item.id] = item

    async def list_published_ids(self, content_types: Sequence[str]) -> list[str]:
        return [
            item.id
            for item in self.items.values()
            if item.is_published and item.content_type in content_types
        ]

    async def get_item(self, item_id: str) -> ContentItem | None:
        return self.items.get(item_id)

    async def resolve_url(self, item_id: str) -> str:
        return f"{SITE_URL}/?p={item_id}"

    def on_content_changed(self, handler: ContentHandler) -> None:
        self._hub.on_changed(handler)

    def on_content_deleted(self, handler: ContentHandler) -> None:
        self._hub.on_deleted(handler)

    async def notify_changed(self, item_id: str) -> None:
        await self._hub.emit_changed(item_id)

    async def notify_deleted(self, item_id: str) -> None:
        await self._hub.emit_deleted(item_id)

    def get_provider_name(self) -> str:
        return "in-memory-content"


# ---------------------------------------------------------------------------
# Completion
# ---------------------------------------------------------------------------


class ScriptedCompletionProvider(ICompletionProvider):
    """Yields preset fragments; optionally raises *error* after *fail_after*."""

    def __init__(
        self,
        fragments: Sequence[str] = ("Hello", " there"),
        error: Exception | None = None,
        fail_after: int = 0,
    ) -> None:
        self.fragments = list(fragments)
        self.error = error
        self.fail_after = fail_after
        self.calls: list[tuple[str, list[ChatMessage], str]] = []

    async def complete(
        self, system_prompt: str, history: Sequence[ChatMessage], user_message: str
    ) -> str:
        self.calls.append((system_prompt, list(history), user_message))
        if self.error is not None:
            raise self.error
        return "".join(self.fragments)

    async def stream_complete(
        self, system_prompt: str, history: Sequence[ChatMessage], user_message: str
    ) -> AsyncIterator[str]:
        self.calls.append((system_prompt, list(history), user_message))
        for index, fragment in enumerate(self.fragments):
            if self.error is not None and index == self.fail_after:
                raise self.error
            yield fragment
        if self.error is not None and self.fail_after >= len(self.fragments):
            raise self.error

    def get_provider_name(self) -> str:
        return "scripted"

    def is_available(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def content_source() -> InMemoryContentSource:
    return InMemoryContentSource()


@pytest.fixture
def completion_provider() -> ScriptedCompletionProvider:
    return ScriptedCompletionProvider()


@pytest.fixture
def state_store() -> MemoryIndexingStateStore:
    return MemoryIndexingStateStore(ttl=3600, log_limit=500)


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Stand-in for ``asyncio.sleep`` that records requested pauses."""
    return AsyncMock(return_value=None)


@pytest.fixture
def sample_item() -> ContentItem:
    return ContentItem(
        id="101",
        title="Document Remediation",
        body=(
            "<p>We remediate PDF and Word documents so they meet WCAG 2.1 AA. "
            "Every document is tested with screen readers before delivery.</p>"
            "<table><tr><th>Format</th><th>Price</th></tr>"
            "<tr><td>PDF</td><td>$12 per page</td></tr></table>"
        ),
        url=f"{SITE_URL}/services/document-remediation/",
        content_type="page",
    )
