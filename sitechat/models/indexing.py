"""Result and state models for the indexing orchestrator.

These are the only values the orchestrator hands back to its callers (the
admin API routes and the CLI).  Batch state models are also what the
indexing state store persists between invocations.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class ItemIndexResult(BaseModel):
    """Outcome of indexing one content item."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    success: bool
    reason: str = Field(default="", description="Why the item was skipped or failed.")
    chunks: int = Field(default=0, ge=0, description="Chunks stored for this item.")


class IndexingSummary(BaseModel):
    """Aggregate outcome of a full-corpus indexing run."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = ""
    indexed: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    total: int = Field(default=0, ge=0)
    chunks_created: int = Field(default=0, ge=0)
    error_details: list[str] = Field(default_factory=list)


class BatchStats(BaseModel):
    """Running totals of a resumable batch run."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    processed: int = Field(default=0, ge=0)
    indexed: int = Field(default=0, ge=0)
    errors: int = Field(default=0, ge=0)
    chunks: int = Field(default=0, ge=0)


class IndexingState(BaseModel):
    """Checkpoint of a batch run: ids still to process plus totals so far."""

    model_config = ConfigDict(frozen=True)

    queue: list[str] = Field(default_factory=list)
    stats: BatchStats = Field(default_factory=BatchStats)
    started_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))


class BatchProgress(BaseModel):
    """What one ``start_batch`` / ``process_next_batch`` call reports."""

    model_config = ConfigDict(frozen=True)

    is_complete: bool = False
    stats: BatchStats = Field(default_factory=BatchStats)
    message: str = ""


class IndexingLogEntry(BaseModel):
    """One line of the admin-visible indexing log."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    level: str = "info"
    message: str
