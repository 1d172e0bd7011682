"""FastAPI routes for the sitechat service.

Service dependencies are resolved from ``app.state`` through ``Depends``
using the ``Annotated`` pattern, so route functions never import
``app.state`` directly.

# Endpoint                            Method  Description
# ------------------------------------------------------------------
# /api/v1/chat/stream                 POST    Answer as server-sent events
# /api/v1/chat                        POST    Answer as one JSON body
# /api/v1/indexing/start              POST    Queue every published item
# /api/v1/indexing/next-batch         POST    Index the next queued window
# /api/v1/indexing/run                POST    Index everything in one call
# /api/v1/indexing/items/{item_id}    POST    Re-index one item
# /api/v1/indexing/items/{item_id}    DELETE  Remove one item's chunks
# /api/v1/indexing/logs               GET     Admin indexing log
# /api/v1/indexing/logs               DELETE  Clear the admin log
# /api/v1/content/events              POST    CMS change/delete webhook
# /api/v1/health                      GET     Provider connectivity
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from sitechat.api.schemas import (
    BatchProgressResponse,
    ChatRequest,
    ChatResponse,
    ContentEventRequest,
    ContentEventResponse,
    ErrorResponse,
    HealthResponse,
    IndexingLogsResponse,
    IndexingRunRequest,
    IndexingRunResponse,
    IndexingStartResponse,
    ItemDeleteResponse,
    ItemIndexResponse,
)
from sitechat.interfaces.content_source import IContentSource
from sitechat.interfaces.indexing_state_store import IIndexingStateStore
from sitechat.models.chat import ErrorEvent
from sitechat.services.chat_service import ChatService
from sitechat.services.ingestion.indexing_service import IndexingService
from sitechat.utils.logging import get_logger
from sitechat.utils.sse import DONE_FRAME, SSE_HEADERS, encode_event

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")

_VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def _get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _get_indexing_service(request: Request) -> IndexingService:
    return request.app.state.indexing_service


def _get_state_store(request: Request) -> IIndexingStateStore:
    return request.app.state.state_store


def _get_content_source(request: Request) -> IContentSource:
    return request.app.state.content_source


ChatServiceDep = Annotated[ChatService, Depends(_get_chat_service)]
IndexingServiceDep = Annotated[IndexingService, Depends(_get_indexing_service)]
StateStoreDep = Annotated[IIndexingStateStore, Depends(_get_state_store)]
ContentSourceDep = Annotated[IContentSource, Depends(_get_content_source)]


# ---------------------------------------------------------------------------
# Chat endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/chat/stream",
    responses={422: {"model": ErrorResponse}},
    summary="Stream an answer as server-sent events",
)
async def chat_stream(body: ChatRequest, chat_service: ChatServiceDep) -> StreamingResponse:
    """Frames: one optional sources event, content events, then ``[DONE]``.

    A failed generation ends with a single error event instead of
    ``[DONE]``.
    """

    async def event_stream() -> AsyncIterator[str]:
        failed = False
        try:
            async for event in chat_service.stream_reply(body.message, body.history):
                failed = failed or isinstance(event, ErrorEvent)
                yield encode_event(event)
            if not failed:
                yield DONE_FRAME
        except asyncio.CancelledError:
            _logger.info("chat_client_disconnected")
            raise

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={422: {"model": ErrorResponse}},
    summary="Answer in one response",
)
async def chat(body: ChatRequest, chat_service: ChatServiceDep) -> ChatResponse:
    reply = await chat_service.reply(body.message, body.history)
    return ChatResponse(message=reply.message, sources=reply.sources)


# ---------------------------------------------------------------------------
# Indexing endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/indexing/start",
    response_model=IndexingStartResponse,
    summary="Start a resumable batch indexing run",
)
async def start_indexing(indexing: IndexingServiceDep) -> IndexingStartResponse:
    progress = await indexing.start_batch()
    return IndexingStartResponse(total=progress.stats.total, message=progress.message)


@router.post(
    "/indexing/next-batch",
    response_model=BatchProgressResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Index the next window of queued items",
)
async def next_batch(indexing: IndexingServiceDep) -> BatchProgressResponse:
    progress = await indexing.process_next_batch()
    return BatchProgressResponse(
        is_complete=progress.is_complete,
        stats=progress.stats,
        message=progress.message,
    )


@router.post(
    "/indexing/run",
    response_model=IndexingRunResponse,
    summary="Index every published item in one call",
)
async def run_indexing(
    indexing: IndexingServiceDep,
    body: IndexingRunRequest | None = None,
) -> IndexingRunResponse:
    summary = await indexing.index_all(batch_size=body.batch_size if body else None)
    return IndexingRunResponse(**summary.model_dump())


@router.post(
    "/indexing/items/{item_id}",
    response_model=ItemIndexResponse,
    summary="Re-index one content item",
)
async def index_item(item_id: str, indexing: IndexingServiceDep) -> ItemIndexResponse:
    result = await indexing.index_item(item_id)
    return ItemIndexResponse(**result.model_dump())


@router.delete(
    "/indexing/items/{item_id}",
    response_model=ItemDeleteResponse,
    summary="Delete every stored chunk of one content item",
)
async def delete_item(item_id: str, indexing: IndexingServiceDep) -> ItemDeleteResponse:
    deleted = await indexing.delete_item(item_id)
    return ItemDeleteResponse(source_id=item_id, deleted=deleted)


@router.get(
    "/indexing/logs",
    response_model=IndexingLogsResponse,
    summary="Recent indexing log entries, newest last",
)
async def get_indexing_logs(state_store: StateStoreDep) -> IndexingLogsResponse:
    return IndexingLogsResponse(entries=await state_store.get_logs())


@router.delete(
    "/indexing/logs",
    response_model=IndexingLogsResponse,
    summary="Clear the indexing log",
)
async def clear_indexing_logs(state_store: StateStoreDep) -> IndexingLogsResponse:
    await state_store.clear_logs()
    return IndexingLogsResponse()


# ---------------------------------------------------------------------------
# Content webhook
# ---------------------------------------------------------------------------


@router.post(
    "/content/events",
    response_model=ContentEventResponse,
    summary="Receive a CMS save/delete notification",
)
async def content_event(
    body: ContentEventRequest,
    content_source: ContentSourceDep,
) -> ContentEventResponse:
    if body.event == "changed":
        await content_source.notify_changed(body.item_id)
    else:
        await content_source.notify_deleted(body.item_id)
    return ContentEventResponse(accepted=True, event=body.event, item_id=body.item_id)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return provider availability and an active vector store check."""
    state = request.app.state
    providers: dict[str, Any] = {
        "embedding": state.embedding_provider.is_available(),
        "completion": state.completion_provider.is_available(),
        "content_source": state.content_source.get_provider_name(),
        "indexing_state": state.state_store.get_provider_name(),
    }
    providers["vector_store"] = await state.vector_store.test_connection()

    if providers["vector_store"] and providers["embedding"] and providers["completion"]:
        status = "healthy"
    elif providers["vector_store"] or providers["completion"]:
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(status=status, version=_VERSION, providers=providers)
