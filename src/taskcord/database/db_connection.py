"""
Database connection management: one long-lived aiosqlite connection.

SQLite is single-writer. Writes go through :meth:`ConnectionManager.transaction`,
which serialises writers with a lock and commits or rolls back as a unit.
Every caller shares one connection, so an open transaction is visible to any
query run on it. Reads therefore wait on the same lock and only ever see
committed rows.

Usage
-----
    await db_connection.open(path)

    async with db_connection.read() as conn:
        rows = await task_repo.list_for_guild(conn, guild_id)

    async with db_connection.transaction() as conn:
        await task_repo.insert(conn, task)
        await history_repo.insert(conn, change)

    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from taskcord.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA cache_size = -65536",     # 64 MB page cache
    "PRAGMA temp_store = MEMORY",
    "PRAGMA wal_autocheckpoint = 1000",
]


class ConnectionManager:
    """
    Wrapper around the bot's single aiosqlite connection.

    * Reads: ``async with read()``; waits for any open transaction.
    * Writes: ``async with transaction()``; one writer at a time.

    The lock is not re-entrant: never open ``read()`` inside ``transaction()``,
    use the transaction's connection instead.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_lock: asyncio.Lock | None = None
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def path(self) -> Path | None:
        return self._path

    async def open(self, path: Path) -> None:
        """
        Open the database file and apply pragmas.

        Called once during startup, before any service is used.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row
        # Created here so the lock binds to the loop that owns the connection
        self._write_lock = asyncio.Lock()

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL into the main file and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            self._write_lock = None
            logger.info("[DB CONNECTION] Connection closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw connection.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await db_connection.open(path) at startup."
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction.

        Commits on clean exit and rolls back if the body raises; the
        exception is re-raised to the caller.
        """
        conn = self.connection
        assert self._write_lock is not None

        async with self._write_lock:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read context. Holds the write lock so uncommitted rows are never seen."""
        conn = self.connection
        assert self._write_lock is not None

        async with self._write_lock:
            yield conn


db_connection = ConnectionManager()
