"""
SQLite implementation of the key-value store.

Uses aiosqlite for async operations. Several processes may share one
database file: every operation is a single SQL statement committed on its
own, which SQLite applies atomically across connections.
"""

import asyncio
import logging
import sqlite3

import aiosqlite

from gc_common.errors import StoreUnavailableError
from gc_common.store import KeyValueStore

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore(KeyValueStore):
    """
    SQLite-based key-value storage.

    Uses a single table:
    - kv: key TEXT PRIMARY KEY, value TEXT

    One connection is opened lazily and reused for every operation. An
    asyncio.Lock scopes each operation so that a statement and its commit
    are never interleaved with another coroutine's statement.
    """

    def __init__(self, db_path: str = "gc_tickets.db", busy_timeout: float = 5.0):
        """
        Initialize the SQLite store.

        Args:
            db_path: Path to the SQLite database file
            busy_timeout: Seconds to wait for a lock held by another process
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._closed = False

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._closed:
            raise StoreUnavailableError("Store has been closed")
        if self._connection is None:
            try:
                conn = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout)
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
                await conn.commit()
            except (sqlite3.Error, OSError) as e:
                raise StoreUnavailableError(
                    f"Cannot open store at {self.db_path}: {e}"
                ) from e
            self._connection = conn
        return self._connection

    async def initialize(self) -> None:
        """Open the connection and create the kv table if it doesn't exist."""
        async with self._lock:
            await self._get_connection()
        logger.info(f"Key-value store ready at {self.db_path}")

    async def incr(self, key: str) -> int:
        async with self._lock:
            conn = await self._get_connection()
            try:
                cursor = await conn.execute(
                    """
                    INSERT INTO kv (key, value) VALUES (?, '1')
                    ON CONFLICT(key) DO UPDATE
                    SET value = CAST(value AS INTEGER) + 1
                    RETURNING value
                    """,
                    (key,),
                )
                row = await cursor.fetchone()
                await cursor.close()
                await conn.commit()
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"incr({key!r}) failed: {e}") from e

        if row is None:
            raise StoreUnavailableError(f"incr({key!r}) returned no value")
        return int(row[0])

    async def get(self, key: str) -> str | None:
        async with self._lock:
            conn = await self._get_connection()
            try:
                cursor = await conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
                row = await cursor.fetchone()
                await cursor.close()
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"get({key!r}) failed: {e}") from e

        return None if row is None else str(row[0])

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            conn = await self._get_connection()
            try:
                await conn.execute(
                    """
                    INSERT INTO kv (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value),
                )
                await conn.commit()
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"set({key!r}) failed: {e}") from e

    async def delete(self, key: str) -> None:
        async with self._lock:
            conn = await self._get_connection()
            try:
                await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                await conn.commit()
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"delete({key!r}) failed: {e}") from e

    async def close(self) -> None:
        """Close database connection."""
        async with self._lock:
            self._closed = True
            if self._connection:
                await self._connection.close()
                self._connection = None
