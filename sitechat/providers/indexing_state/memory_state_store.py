"""In-memory indexing state store using cachetools.TTLCache.

Suitable for development and single-process deployments: the batch
checkpoint expires after the configured TTL (one hour by default), much
like a transient, and vanishes on restart.  Use the SQLite store when
batches are driven across processes.
"""

from __future__ import annotations

from collections import deque

import structlog
from cachetools import TTLCache

from sitechat.interfaces.indexing_state_store import IIndexingStateStore
from sitechat.models.indexing import IndexingLogEntry, IndexingState

logger = structlog.get_logger(logger_name=__name__)

_STATE_KEY = "batch_state"


class MemoryIndexingStateStore(IIndexingStateStore):
    """Process-local checkpoint store.

    Parameters
    ----------
    ttl:
        Seconds a saved state stays valid after its last save.
    log_limit:
        Maximum number of log entries kept; older ones are dropped.
    """

    def __init__(self, ttl: int = 3600, log_limit: int = 500) -> None:
        self._states: TTLCache[str, IndexingState] = TTLCache(maxsize=1, ttl=ttl)
        self._logs: deque[IndexingLogEntry] = deque(maxlen=log_limit)

    # ------------------------------------------------------------------
    # IIndexingStateStore implementation
    # ------------------------------------------------------------------

    async def load_state(self) -> IndexingState | None:
        return self._states.get(_STATE_KEY)

    async def save_state(self, state: IndexingState) -> None:
        # Re-assigning the key restarts its TTL.
        self._states[_STATE_KEY] = state
        logger.debug("indexing_state_saved", remaining=len(state.queue))

    async def clear_state(self) -> None:
        self._states.pop(_STATE_KEY, None)

    async def append_log(self, entry: IndexingLogEntry) -> None:
        self._logs.append(entry)

    async def get_logs(self) -> list[IndexingLogEntry]:
        return list(self._logs)

    async def clear_logs(self) -> None:
        self._logs.clear()

    def get_provider_name(self) -> str:
        return "memory"
