"""Supabase (PostgREST + pgvector) vector store provider adapter.

Talks to the Supabase REST API with ``httpx`` to implement
:class:`IVectorStoreProvider`.  Expected database objects:

- table ``chatbot_embeddings`` with columns ``id, post_id, title, content,
  url, embedding vector(1536), site_url, chunk_index``
- RPC ``match_embeddings(query_embedding, match_threshold, match_count,
  filter_site_url)`` returning rows plus ``similarity``
- RPC ``fuzzy_search(term, limit, scope)`` backed by ``pg_trgm``

Every public method degrades to ``[]`` / ``False`` on missing credentials
or transport failure; nothing raises past this class.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from sitechat.config.settings import Settings
from sitechat.interfaces.vector_store_provider import IVectorStoreProvider
from sitechat.models.rag import Chunk, EmbeddedChunk, SearchResult, SearchScope
from sitechat.utils.errors import StoreRejectedError, TransportFailureError

logger = structlog.get_logger(logger_name=__name__)

_SELECT_COLUMNS = "id,post_id,title,content,url"

# Characters with meaning inside PostgREST filter expressions.
_FILTER_RESERVED = str.maketrans({c: " " for c in ',()*"\\%'})


class SupabaseVectorStore(IVectorStoreProvider):
    """Vector store backed by a Supabase project's REST endpoint.

    Rows for every site live in one table; the ``site_url`` column is the
    namespace.  Returned rows carry ``similarity == 0.0`` except for
    :meth:`similarity_search`, which reports the database's cosine
    similarity; the retriever assigns synthetic scores to the rest.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = settings.supabase_url.rstrip("/")
        self._api_key = settings.supabase_api_key
        self._table = settings.supabase_table
        self._match_function = settings.supabase_match_function
        self._fuzzy_function = settings.supabase_fuzzy_function
        self._match_threshold = settings.vector_match_threshold
        self._dimension = settings.embedding_dimension
        self._http = http_client or httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def similarity_search(
        self,
        embedding: Sequence[float],
        k: int,
        namespace: str,
    ) -> list[SearchResult]:
        body = {
            "query_embedding": [float(v) for v in embedding],
            "match_threshold": self._match_threshold,
            "match_count": k,
            "filter_site_url": namespace,
        }
        rows = await self._fetch_rows(
            "similarity_search", "POST", f"rpc/{self._match_function}", json=body
        )
        # The RPC applies the threshold too; the client-side floor guards
        # against functions deployed without it.
        results = [
            self._row_to_result(row)
            for row in rows
            if float(row.get("similarity") or 0.0) > self._match_threshold
        ]
        logger.info("vector_search", namespace=namespace, k=k, hits=len(results))
        return results

    async def keyword_search(
        self,
        pattern: str,
        scope: SearchScope,
        k: int,
        namespace: str,
    ) -> list[SearchResult]:
        term = " ".join(pattern.translate(_FILTER_RESERVED).split())
        if not term:
            return []

        params: dict[str, Any] = {
            "select": _SELECT_COLUMNS,
            "site_url": f"eq.{namespace}",
            "limit": k,
        }
        if scope == SearchScope.TITLE:
            params["title"] = f"ilike.*{term}*"
        elif scope == SearchScope.CONTENT:
            params["content"] = f"ilike.*{term}*"
        else:
            params["or"] = f"(content.ilike.*{term}*,title.ilike.*{term}*)"

        rows = await self._fetch_rows("keyword_search", "GET", self._table, params=params)
        logger.debug("keyword_search", term=term, scope=scope.value, hits=len(rows))
        return [self._row_to_result(row, similarity=0.0) for row in rows]

    async def fuzzy_search(
        self,
        term: str,
        k: int,
        scope: SearchScope,
    ) -> list[SearchResult]:
        if not term.strip():
            return []
        params = {"term": term.strip(), "limit": k, "scope": scope.value}
        rows = await self._fetch_rows(
            "fuzzy_search", "GET", f"rpc/{self._fuzzy_function}", params=params
        )
        logger.debug("fuzzy_search", term=term, hits=len(rows))
        return [self._row_to_result(row, similarity=0.0) for row in rows]

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_rows(self, k: int, namespace: str | None) -> list[SearchResult]:
        params: dict[str, Any] = {"select": _SELECT_COLUMNS, "limit": k}
        if namespace is not None:
            params["site_url"] = f"eq.{namespace}"
        rows = await self._fetch_rows("list_rows", "GET", self._table, params=params)
        return [self._row_to_result(row, similarity=0.0) for row in rows]

    async def get_by_source_id(self, source_id: str, namespace: str) -> list[SearchResult]:
        params = {
            "select": _SELECT_COLUMNS,
            "post_id": f"eq.{source_id}",
            "site_url": f"eq.{namespace}",
            "order": "chunk_index.asc",
        }
        rows = await self._fetch_rows("get_by_source_id", "GET", self._table, params=params)
        return [self._row_to_result(row, similarity=0.0) for row in rows]

    async def recent_rows(self, k: int, namespace: str) -> list[SearchResult]:
        params = {
            "select": _SELECT_COLUMNS,
            "site_url": f"eq.{namespace}",
            "order": "id.desc",
            "limit": k,
        }
        rows = await self._fetch_rows("recent_rows", "GET", self._table, params=params)
        return [self._row_to_result(row, similarity=0.0) for row in rows]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def insert_chunk(
        self,
        chunk: Chunk,
        embedding: Sequence[Any],
        namespace: str,
    ) -> bool:
        try:
            row = self._validate(chunk, embedding, namespace)
        except StoreRejectedError as exc:
            logger.warning(
                "supabase_insert_rejected",
                source_id=chunk.source_id,
                chunk_index=chunk.chunk_index,
                error=str(exc),
            )
            return False

        if not self._check_configured("insert_chunk"):
            return False
        try:
            await self._request(
                "POST",
                self._table,
                json=row.to_row(),
                headers={"Prefer": "return=minimal"},
                expected=(200, 201, 204),
            )
        except TransportFailureError as exc:
            logger.warning(
                "supabase_insert_failed",
                source_id=chunk.source_id,
                chunk_index=chunk.chunk_index,
                error=str(exc),
            )
            return False

        logger.debug("supabase_insert", source_id=chunk.source_id, chunk_index=chunk.chunk_index)
        return True

    async def delete_by_source_id(self, source_id: str, namespace: str) -> bool:
        params = {"post_id": f"eq.{source_id}", "site_url": f"eq.{namespace}"}
        deleted = await self._delete("delete_by_source_id", params)
        if deleted:
            logger.info("supabase_delete", source_id=source_id, namespace=namespace)
        return deleted

    async def delete_all(self, namespace: str) -> bool:
        deleted = await self._delete("delete_all", {"site_url": f"eq.{namespace}"})
        if deleted:
            logger.info("supabase_delete_all", namespace=namespace)
        return deleted

    # ------------------------------------------------------------------
    # Health / identity
    # ------------------------------------------------------------------

    async def test_connection(self) -> bool:
        if not self._check_configured("test_connection"):
            return False
        try:
            await self._request("GET", self._table, params={"select": "id", "limit": 1})
        except TransportFailureError as exc:
            logger.warning("supabase_connection_failed", error=str(exc))
            return False
        return True

    def get_provider_name(self) -> str:
        return "supabase"

    def is_available(self) -> bool:
        return bool(self._base_url and self._api_key)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _validate(
        self,
        chunk: Chunk,
        embedding: Sequence[Any],
        namespace: str,
    ) -> EmbeddedChunk:
        """Check a row before it leaves the process.

        Raises:
            StoreRejectedError: On a wrong dimension, a non-numeric or
                non-finite value, or a missing required field.
        """
        if isinstance(embedding, (str, bytes)) or not isinstance(embedding, Sequence):
            raise StoreRejectedError(message="Embedding is not a sequence of numbers")
        if len(embedding) != self._dimension:
            raise StoreRejectedError(
                message=f"Invalid embedding dimension: got {len(embedding)}, "
                f"expected {self._dimension}"
            )
        for value in embedding:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise StoreRejectedError(message="Embedding contains non-numeric values")
            if not math.isfinite(value):
                raise StoreRejectedError(message="Embedding contains non-finite values")

        missing = [
            name
            for name, value in (
                ("source_id", chunk.source_id),
                ("title", chunk.title),
                ("content", chunk.text),
                ("url", chunk.url),
                ("site_scope", namespace),
            )
            if not value.strip()
        ]
        if missing:
            raise StoreRejectedError(message=f"Missing required fields: {', '.join(missing)}")

        return EmbeddedChunk(
            source_id=chunk.source_id,
            chunk_index=chunk.chunk_index,
            title=chunk.title,
            url=chunk.url,
            content=chunk.text,
            embedding=[float(v) for v in embedding],
            site_scope=namespace,
        )

    def _headers(self) -> dict[str, str]:
        return {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _check_configured(self, operation: str) -> bool:
        if self.is_available():
            return True
        logger.warning("supabase_not_configured", operation=operation)
        return False

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        expected: tuple[int, ...] = (200,),
    ) -> httpx.Response:
        """Send one REST call.

        Raises:
            TransportFailureError: On a network error or an unexpected
                status code.
        """
        try:
            response = await self._http.request(
                method,
                f"{self._base_url}/rest/v1/{path}",
                params=params,
                json=json,
                headers={**self._headers(), **(headers or {})},
            )
        except httpx.HTTPError as exc:
            raise TransportFailureError(
                message=f"{method} {path} failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if response.status_code not in expected:
            raise TransportFailureError(
                message=f"{method} {path} returned HTTP {response.status_code}: "
                f"{response.text[:200]}",
                provider_name=self.get_provider_name(),
            )
        return response

    async def _fetch_rows(self, operation: str, method: str, path: str, **kwargs: Any) -> list[dict]:
        if not self._check_configured(operation):
            return []
        try:
            response = await self._request(method, path, **kwargs)
            data = response.json()
        except TransportFailureError as exc:
            logger.warning("supabase_request_failed", operation=operation, error=str(exc))
            return []
        except ValueError as exc:
            logger.warning("supabase_bad_json", operation=operation, error=str(exc))
            return []
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]

    async def _delete(self, operation: str, params: dict[str, str]) -> bool:
        if not self._check_configured(operation):
            return False
        try:
            await self._request("DELETE", self._table, params=params, expected=(200, 204))
        except TransportFailureError as exc:
            logger.warning("supabase_delete_failed", operation=operation, error=str(exc))
            return False
        return True

    @staticmethod
    def _row_to_result(row: dict, similarity: float | None = None) -> SearchResult:
        try:
            row_id = int(row.get("id") or 0)
        except (TypeError, ValueError):
            row_id = 0
        score = similarity if similarity is not None else float(row.get("similarity") or 0.0)
        return SearchResult(
            id=row_id,
            source_id=str(row.get("post_id") or ""),
            title=row.get("title") or "Content",
            content=row.get("content") or "",
            url=row.get("url") or "",
            similarity=score,
        )
