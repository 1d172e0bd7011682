"""Pydantic request/response schemas for the sitechat API.

Request schemas end with "Request", response schemas with "Response".
Validation failures (an empty chat message, an unknown content event)
are answered by FastAPI with a 422 before any route code runs.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from sitechat.models.chat import ChatMessage, Source
from sitechat.models.indexing import BatchStats, IndexingLogEntry


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(BaseModel):
    """A visitor question plus the conversation so far."""

    message: str = Field(..., max_length=4000)
    history: list[ChatMessage] = Field(default_factory=list)

    @field_validator("message")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Message is required")
        return value


class ChatResponse(BaseModel):
    """Whole (non-streamed) answer."""

    message: str
    sources: list[Source] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Indexing
# ---------------------------------------------------------------------------


class IndexingStartResponse(BaseModel):
    total: int = Field(ge=0, description="Items queued for batch indexing")
    message: str = ""


class BatchProgressResponse(BaseModel):
    is_complete: bool
    stats: BatchStats
    message: str = ""


class IndexingRunRequest(BaseModel):
    batch_size: int | None = Field(
        default=None, ge=1, description="Cool down after every N items"
    )


class IndexingRunResponse(BaseModel):
    success: bool
    message: str
    indexed: int
    errors: int
    total: int
    chunks_created: int
    error_details: list[str] = Field(default_factory=list)


class ItemIndexResponse(BaseModel):
    source_id: str
    success: bool
    reason: str = ""
    chunks: int = 0


class ItemDeleteResponse(BaseModel):
    source_id: str
    deleted: bool


class IndexingLogsResponse(BaseModel):
    entries: list[IndexingLogEntry] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Content events
# ---------------------------------------------------------------------------


class ContentEventRequest(BaseModel):
    """Webhook payload sent by the CMS when an item is saved or deleted."""

    event: Literal["changed", "deleted"]
    item_id: str = Field(..., min_length=1)


class ContentEventResponse(BaseModel):
    accepted: bool
    event: str
    item_id: str


# ---------------------------------------------------------------------------
# System
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
