"""SQLite-backed indexing state store.

Persists the batch checkpoint and the admin log to a local SQLite
database (``data/indexing_state.db`` by default) using ``aiosqlite``, so a
batch run can be resumed from another process or after a restart.  The
checkpoint honours the same TTL as the in-memory store; an expired row is
treated as absent.
"""

from __future__ import annotations

import time
from pathlib import Path

import aiosqlite
import structlog

from sitechat.interfaces.indexing_state_store import IIndexingStateStore
from sitechat.models.indexing import IndexingLogEntry, IndexingState

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/indexing_state.db")

_CREATE_TABLES_SQL = [
    """\
CREATE TABLE IF NOT EXISTS batch_state (
    id          INTEGER PRIMARY KEY CHECK (id = 1),
    payload     TEXT    NOT NULL,
    expires_at  REAL    NOT NULL
);
""",
    """\
CREATE TABLE IF NOT EXISTS indexing_log (
    id       INTEGER PRIMARY KEY AUTOINCREMENT,
    payload  TEXT    NOT NULL
);
""",
]

_UPSERT_STATE_SQL = """\
INSERT INTO batch_state (id, payload, expires_at) VALUES (1, ?, ?)
ON CONFLICT(id) DO UPDATE SET payload = excluded.payload,
                              expires_at = excluded.expires_at;
"""

_TRIM_LOG_SQL = """\
DELETE FROM indexing_log
WHERE id NOT IN (SELECT id FROM indexing_log ORDER BY id DESC LIMIT ?);
"""


class SQLiteIndexingStateStore(IIndexingStateStore):
    """Durable checkpoint store.  Call :meth:`initialize` once before use."""

    def __init__(
        self,
        db_path: str | Path = _DEFAULT_DB_PATH,
        ttl: int = 3600,
        log_limit: int = 500,
    ) -> None:
        self._db_path = Path(db_path)
        self._ttl = ttl
        self._log_limit = log_limit

    async def initialize(self) -> None:
        """Create the tables if they don't exist."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        async with aiosqlite.connect(str(self._db_path)) as db:
            for sql in _CREATE_TABLES_SQL:
                await db.execute(sql)
            await db.commit()
        logger.info("indexing_state_db_initialized", path=str(self._db_path))

    # ------------------------------------------------------------------
    # IIndexingStateStore implementation
    # ------------------------------------------------------------------

    async def load_state(self) -> IndexingState | None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT payload, expires_at FROM batch_state WHERE id = 1")
            row = await cursor.fetchone()
        if row is None:
            return None
        payload, expires_at = row
        if expires_at < time.time():
            logger.info("indexing_state_expired")
            await self.clear_state()
            return None
        return IndexingState.model_validate_json(payload)

    async def save_state(self, state: IndexingState) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                _UPSERT_STATE_SQL,
                (state.model_dump_json(), time.time() + self._ttl),
            )
            await db.commit()
        logger.debug("indexing_state_saved", remaining=len(state.queue))

    async def clear_state(self) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM batch_state")
            await db.commit()

    async def append_log(self, entry: IndexingLogEntry) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute(
                "INSERT INTO indexing_log (payload) VALUES (?)", (entry.model_dump_json(),)
            )
            await db.execute(_TRIM_LOG_SQL, (self._log_limit,))
            await db.commit()

    async def get_logs(self) -> list[IndexingLogEntry]:
        async with aiosqlite.connect(str(self._db_path)) as db:
            cursor = await db.execute("SELECT payload FROM indexing_log ORDER BY id ASC")
            rows = await cursor.fetchall()
        return [IndexingLogEntry.model_validate_json(r[0]) for r in rows]

    async def clear_logs(self) -> None:
        async with aiosqlite.connect(str(self._db_path)) as db:
            await db.execute("DELETE FROM indexing_log")
            await db.commit()

    def get_provider_name(self) -> str:
        return "sqlite"
