"""SQLite access via aiosqlite: connection, schema, transactions."""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT UNIQUE,
    role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('admin', 'parent', 'member')),
    relation TEXT NOT NULL DEFAULT '',
    pin TEXT,
    preferred_login TEXT NOT NULL DEFAULT 'pin',
    registered_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_users_pin ON users (pin);

CREATE TABLE IF NOT EXISTS face_templates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    face_id TEXT NOT NULL,
    template TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_policies (
    user_id INTEGER PRIMARY KEY REFERENCES users (id) ON DELETE CASCADE,
    policies TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS door_state (
    door TEXT PRIMARY KEY,
    locked INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS sensor_readings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id TEXT NOT NULL,
    metric TEXT NOT NULL,
    value REAL NOT NULL,
    unit TEXT,
    metadata TEXT,
    recorded_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sensor_device_metric_time
    ON sensor_readings (device_id, metric, recorded_at);
"""

Params = Sequence[Any]


class Transaction:
    """Statement helpers bound to an open transaction (no locking, no commit)."""

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def execute(self, sql: str, params: Params = ()) -> aiosqlite.Cursor:
        return await self._conn.execute(sql, params)

    async def fetch_one(self, sql: str, params: Params = ()) -> Optional[Dict[str, Any]]:
        async with self._conn.execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def fetch_all(self, sql: str, params: Params = ()) -> List[Dict[str, Any]]:
        async with self._conn.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [dict(r) for r in rows]


class Database:
    """One shared connection; statements and transactions are serialized."""

    def __init__(self, path: str):
        self.path = path
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    async def connect(self) -> None:
        if self._conn is not None:
            return
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        # Autocommit; transaction() issues BEGIN explicitly
        self._conn = await aiosqlite.connect(self.path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self.init_schema()
        logger.info("Database ready at %s", self.path)

    async def init_schema(self) -> None:
        await self.conn.executescript(SCHEMA)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        async with self._lock:
            await self.conn.execute("BEGIN")
            try:
                yield Transaction(self.conn)
            except BaseException:
                await self.conn.rollback()
                raise
            await self.conn.commit()

    async def execute(self, sql: str, params: Params = ()) -> aiosqlite.Cursor:
        async with self._lock:
            return await self.conn.execute(sql, params)

    async def fetch_one(self, sql: str, params: Params = ()) -> Optional[Dict[str, Any]]:
        async with self._lock:
            return await Transaction(self.conn).fetch_one(sql, params)

    async def fetch_all(self, sql: str, params: Params = ()) -> List[Dict[str, Any]]:
        async with self._lock:
            return await Transaction(self.conn).fetch_all(sql, params)
