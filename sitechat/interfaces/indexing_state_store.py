"""Abstract base class for the resumable indexing state store.

Batch indexing runs across many short-lived calls.  Between calls the
remaining queue and the running totals are checkpointed here, together
with the bounded log an admin reads to follow the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sitechat.models.indexing import IndexingLogEntry, IndexingState


# Concrete implementations: MemoryIndexingStateStore, SQLiteIndexingStateStore
# Located in: sitechat/providers/indexing_state/
class IIndexingStateStore(ABC):
    """Contract for checkpointing batch indexing between invocations."""

    @abstractmethod
    async def load_state(self) -> IndexingState | None:
        """Return the saved state, or ``None`` when absent or expired."""

    @abstractmethod
    async def save_state(self, state: IndexingState) -> None:
        """Persist *state*, resetting its time-to-live."""

    @abstractmethod
    async def clear_state(self) -> None:
        """Forget the saved state (run finished or abandoned)."""

    @abstractmethod
    async def append_log(self, entry: IndexingLogEntry) -> None:
        """Append one entry, dropping the oldest beyond the configured cap."""

    @abstractmethod
    async def get_logs(self) -> list[IndexingLogEntry]:
        """Return the retained log entries, oldest first."""

    @abstractmethod
    async def clear_logs(self) -> None:
        """Drop every retained log entry."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier, e.g. ``"memory"``."""
