"""SQLite-backed keyed store.

Implements the KeyValueClient protocol on a single local database file so
the memory server runs without a network service. Every bucket is a row in
``kv_buckets``; entries live in ``kv_entries`` keyed by (bucket, key).
``expires_at`` is the purge time: the TTL plus the client's expiry grace.

Blocking sqlite3 calls are pushed to a worker thread with
``asyncio.to_thread``. Connections are opened per operation and closed by
the ``_connect`` context manager.
"""

import asyncio
import contextlib
import logging
import sqlite3
import time
from pathlib import Path
from typing import Callable, List, Optional, Union

from pattern_memory.protocols import EXPIRY_GRACE_SECONDS, BackendError, Entry

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS kv_buckets (
    name TEXT PRIMARY KEY,
    created_at REAL NOT NULL
);

CREATE TABLE IF NOT EXISTS kv_entries (
    bucket TEXT NOT NULL,
    key TEXT NOT NULL,
    value BLOB NOT NULL,
    expires_at REAL,
    updated_at REAL NOT NULL,
    PRIMARY KEY (bucket, key),
    FOREIGN KEY (bucket) REFERENCES kv_buckets(name)
);

CREATE INDEX IF NOT EXISTS idx_kv_entries_expires ON kv_entries(bucket, expires_at);
"""


class SQLiteBucket:
    def __init__(self, client: "SQLiteKeyValueClient", name: str):
        self.name = name
        self._client = client

    async def get(self, key: str) -> Optional[bytes]:
        return await self._client._run(self._get, key)

    async def put(self, key: str, value: bytes, ttl_seconds: Optional[int] = None) -> None:
        await self._client._run(self._put, key, value, ttl_seconds)

    async def delete(self, key: str) -> bool:
        return await self._client._run(self._delete, key)

    async def list_by_prefix(self, prefix: str) -> List[Entry]:
        return await self._client._run(self._list, prefix)

    # -- blocking implementations --------------------------------------------

    def _get(self, key: str) -> Optional[bytes]:
        now = self._client.clock()
        with self._client._connect() as conn:
            row = conn.execute(
                "SELECT value FROM kv_entries WHERE bucket = ? AND key = ? "
                "AND (expires_at IS NULL OR expires_at > ?)",
                (self.name, key, now),
            ).fetchone()
        return bytes(row["value"]) if row else None

    def _put(self, key: str, value: bytes, ttl_seconds: Optional[int]) -> None:
        now = self._client.clock()
        expires_at = now + ttl_seconds + self._client.expiry_grace if ttl_seconds else None
        with self._client._connect() as conn:
            conn.execute(
                "INSERT INTO kv_entries (bucket, key, value, expires_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?) "
                "ON CONFLICT(bucket, key) DO UPDATE SET "
                "value = excluded.value, expires_at = excluded.expires_at, "
                "updated_at = excluded.updated_at",
                (self.name, key, sqlite3.Binary(value), expires_at, now),
            )

    def _delete(self, key: str) -> bool:
        now = self._client.clock()
        with self._client._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM kv_entries WHERE bucket = ? AND key = ? "
                "AND (expires_at IS NULL OR expires_at > ?)",
                (self.name, key, now),
            )
            # Purged rows are already invisible; drop them too.
            conn.execute(
                "DELETE FROM kv_entries WHERE bucket = ? AND key = ? AND expires_at <= ?",
                (self.name, key, now),
            )
            return cursor.rowcount > 0

    def _list(self, prefix: str) -> List[Entry]:
        now = self._client.clock()
        # substr comparison avoids LIKE wildcard escaping for '_' and '%'
        with self._client._connect() as conn:
            rows = conn.execute(
                "SELECT key, value FROM kv_entries WHERE bucket = ? "
                "AND substr(key, 1, ?) = ? "
                "AND (expires_at IS NULL OR expires_at > ?) ORDER BY key",
                (self.name, len(prefix), prefix, now),
            ).fetchall()
        return [(row["key"], bytes(row["value"])) for row in rows]


class SQLiteKeyValueClient:
    """KeyValueClient over a local SQLite file."""

    def __init__(
        self,
        db_path: Union[str, Path],
        clock: Optional[Callable[[], float]] = None,
        expiry_grace: float = EXPIRY_GRACE_SECONDS,
    ):
        self.db_path = Path(db_path).expanduser()
        self.clock = clock or time.time
        self.expiry_grace = expiry_grace
        self._connected = False

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        return conn

    @contextlib.contextmanager
    def _connect(self):
        """Context manager that commits on success, rolls back on error, always closes."""
        conn = self._get_conn()
        try:
            yield conn
            conn.commit()
        except Exception as e:
            logger.debug(f"Transaction failed, rolling back: {e}")
            conn.rollback()
            raise
        finally:
            conn.close()

    async def _run(self, fn, *args):
        if not self._connected:
            raise BackendError("Not connected to keyed store")
        try:
            return await asyncio.to_thread(fn, *args)
        except sqlite3.Error as e:
            raise BackendError(f"SQLite store error: {e}") from e

    def _init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)

    async def connect(self) -> None:
        if self._connected:
            return
        try:
            await asyncio.to_thread(self._init_db)
        except (sqlite3.Error, OSError) as e:
            raise BackendError(f"Failed to open SQLite store at {self.db_path}: {e}") from e
        self._connected = True
        logger.info(f"Connected to SQLite store at {self.db_path}")

    async def close(self) -> None:
        self._connected = False

    def is_connected(self) -> bool:
        return self._connected

    def _create_bucket(self, name: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO kv_buckets (name, created_at) VALUES (?, ?)",
                (name, self.clock()),
            )

    def _bucket_exists(self, name: str) -> bool:
        with self._connect() as conn:
            row = conn.execute("SELECT 1 FROM kv_buckets WHERE name = ?", (name,)).fetchone()
        return row is not None

    async def create_bucket_if_absent(self, name: str) -> SQLiteBucket:
        await self._run(self._create_bucket, name)
        return SQLiteBucket(self, name)

    async def open_bucket(self, name: str) -> Optional[SQLiteBucket]:
        if await self._run(self._bucket_exists, name):
            return SQLiteBucket(self, name)
        return None
