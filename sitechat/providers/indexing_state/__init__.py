"""Checkpoint stores for resumable batch indexing.

    - MemoryIndexingStateStore - TTL cache, single process.
    - SQLiteIndexingStateStore - aiosqlite file, survives restarts.
"""

from sitechat.providers.indexing_state.memory_state_store import MemoryIndexingStateStore
from sitechat.providers.indexing_state.sqlite_state_store import SQLiteIndexingStateStore

__all__ = ["MemoryIndexingStateStore", "SQLiteIndexingStateStore"]
