"""Unit tests for the Supabase (PostgREST) vector store adapter."""

from __future__ import annotations

import math
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from sitechat.models.rag import Chunk, SearchScope
from sitechat.providers.vector_store.supabase_provider import SupabaseVectorStore
from tests.conftest import SITE_URL, make_settings

_BASE = "https://db.example.supabase.co/rest/v1"


def _response(status_code: int = 200, payload: Any = None) -> MagicMock:
    return MagicMock(
        status_code=status_code,
        json=MagicMock(return_value=payload if payload is not None else []),
        text="",
    )


def _client(response: MagicMock | None = None) -> AsyncMock:
    client = AsyncMock(spec=httpx.AsyncClient)
    client.request = AsyncMock(return_value=response or _response())
    return client


def _store(client: AsyncMock, **overrides: Any) -> SupabaseVectorStore:
    return SupabaseVectorStore(make_settings(**overrides), http_client=client)


def _chunk(**fields: Any) -> Chunk:
    values = {
        "source_id": "101",
        "chunk_index": 0,
        "title": "Document Remediation",
        "url": f"{SITE_URL}/services/document-remediation/",
        "text": "We remediate PDF documents.",
        "body": "We remediate PDF documents.",
    }
    values.update(fields)
    return Chunk(**values)


def _row(post_id: str = "101", similarity: float | None = None, **extra: Any) -> dict:
    row = {
        "id": 7,
        "post_id": post_id,
        "title": "Document Remediation",
        "content": "We remediate PDF documents.",
        "url": f"{SITE_URL}/services/document-remediation/",
    }
    if similarity is not None:
        row["similarity"] = similarity
    row.update(extra)
    return row


class TestInsertValidation:
    @pytest.mark.asyncio
    async def test_wrong_dimension_rejected_without_network(self) -> None:
        client = _client()
        stored = await _store(client).insert_chunk(_chunk(), [0.1] * 512, SITE_URL)

        assert stored is False
        client.request.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "bad_value",
        ["0.1", None, True, math.nan, math.inf],
    )
    async def test_non_numeric_values_rejected(self, bad_value: Any) -> None:
        client = _client()
        embedding: list[Any] = [0.1] * 1536
        embedding[10] = bad_value

        assert await _store(client).insert_chunk(_chunk(), embedding, SITE_URL) is False
        client.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_url_rejected(self) -> None:
        client = _client()
        stored = await _store(client).insert_chunk(_chunk(url=""), [0.1] * 1536, SITE_URL)
        assert stored is False
        client.request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_valid_row_is_posted(self) -> None:
        client = _client(_response(201))
        stored = await _store(client).insert_chunk(_chunk(chunk_index=2), [1] * 1536, SITE_URL)

        assert stored is True
        method, url = client.request.await_args.args
        kwargs = client.request.await_args.kwargs
        assert method == "POST"
        assert url == f"{_BASE}/chatbot_embeddings"
        assert kwargs["json"]["post_id"] == "101"
        assert kwargs["json"]["site_url"] == SITE_URL
        assert kwargs["json"]["chunk_index"] == 2
        assert kwargs["json"]["embedding"][0] == 1.0
        assert kwargs["headers"]["Prefer"] == "return=minimal"
        assert kwargs["headers"]["apikey"] == "service-key"

    @pytest.mark.asyncio
    async def test_server_rejection_returns_false(self) -> None:
        client = _client(_response(400))
        assert await _store(client).insert_chunk(_chunk(), [0.1] * 1536, SITE_URL) is False


class TestSearch:
    @pytest.mark.asyncio
    async def test_similarity_search_applies_floor(self) -> None:
        client = _client(_response(payload=[_row("1", 0.91), _row("2", 0.5), _row("3", 0.2)]))
        results = await _store(client).similarity_search([0.1] * 1536, 5, SITE_URL)

        assert [r.source_id for r in results] == ["1"]
        assert results[0].similarity == pytest.approx(0.91)
        body = client.request.await_args.kwargs["json"]
        assert body["match_threshold"] == 0.5
        assert body["match_count"] == 5
        assert body["filter_site_url"] == SITE_URL
        assert client.request.await_args.args[1] == f"{_BASE}/rpc/match_embeddings"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("scope", "key", "value"),
        [
            (SearchScope.TITLE, "title", "ilike.*pricing*"),
            (SearchScope.CONTENT, "content", "ilike.*pricing*"),
            (SearchScope.BOTH, "or", "(content.ilike.*pricing*,title.ilike.*pricing*)"),
        ],
    )
    async def test_keyword_search_filters(self, scope: SearchScope, key: str, value: str) -> None:
        client = _client(_response(payload=[_row()]))
        results = await _store(client).keyword_search("pricing", scope, 6, SITE_URL)

        params = client.request.await_args.kwargs["params"]
        assert params[key] == value
        assert params["site_url"] == f"eq.{SITE_URL}"
        assert params["limit"] == 6
        assert results[0].similarity == 0.0

    @pytest.mark.asyncio
    async def test_keyword_search_strips_filter_syntax(self) -> None:
        client = _client(_response(payload=[]))
        await _store(client).keyword_search("price (PDF), *", SearchScope.TITLE, 5, SITE_URL)
        assert client.request.await_args.kwargs["params"]["title"] == "ilike.*price PDF*"

    @pytest.mark.asyncio
    async def test_fuzzy_search_uses_rpc(self) -> None:
        client = _client(_response(payload=[_row()]))
        results = await _store(client).fuzzy_search("remediaton", 10, SearchScope.BOTH)

        assert client.request.await_args.args == ("GET", f"{_BASE}/rpc/fuzzy_search")
        assert client.request.await_args.kwargs["params"] == {
            "term": "remediaton",
            "limit": 10,
            "scope": "both",
        }
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_unscoped_listing_has_no_site_filter(self) -> None:
        client = _client(_response(payload=[_row()]))
        await _store(client).list_rows(5, None)
        assert "site_url" not in client.request.await_args.kwargs["params"]

    @pytest.mark.asyncio
    async def test_recent_rows_ordered_newest_first(self) -> None:
        client = _client(_response(payload=[_row()]))
        await _store(client).recent_rows(3, SITE_URL)
        assert client.request.await_args.kwargs["params"]["order"] == "id.desc"

    @pytest.mark.asyncio
    async def test_transport_failure_degrades_to_empty(self) -> None:
        client = _client()
        client.request.side_effect = httpx.ConnectError("boom")
        results = await _store(client).keyword_search("x", SearchScope.BOTH, 5, SITE_URL)
        assert results == []

    @pytest.mark.asyncio
    async def test_missing_credentials_degrade_to_empty(self) -> None:
        client = _client()
        store = _store(client, supabase_api_key="")
        assert await store.get_by_source_id("101", SITE_URL) == []
        assert await store.delete_all(SITE_URL) is False
        client.request.assert_not_awaited()

    def test_row_mapping_defaults(self) -> None:
        result = SupabaseVectorStore._row_to_result({"id": "x", "content": "c"})
        assert result.id == 0
        assert result.title == "Content"
        assert result.source_id == ""


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_by_source_id_scoped(self) -> None:
        client = _client(_response(204))
        assert await _store(client).delete_by_source_id("101", SITE_URL) is True

        assert client.request.await_args.args[0] == "DELETE"
        assert client.request.await_args.kwargs["params"] == {
            "post_id": "eq.101",
            "site_url": f"eq.{SITE_URL}",
        }

    @pytest.mark.asyncio
    async def test_delete_failure_returns_false(self) -> None:
        client = _client(_response(500))
        assert await _store(client).delete_by_source_id("101", SITE_URL) is False

    @pytest.mark.asyncio
    async def test_connection_check(self) -> None:
        assert await _store(_client(_response(200))).test_connection() is True
        assert await _store(_client(_response(401))).test_connection() is False
