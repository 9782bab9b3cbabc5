"""
Database connection management: one long-lived aiosqlite connection.

Writes are serialised through :meth:`ConnectionManager.transaction`, which
commits on clean exit and rolls back on error. Reads use the connection
directly; WAL mode lets them run alongside a writer.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from modwarden.util.logger import get_logger

logger = get_logger("database_connection")

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
]


class ConnectionManager:
    """Wrapper around a single aiosqlite connection."""

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, path: Path) -> None:
        """Open the database and apply pragmas. Calling it twice is a no-op."""
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists - ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL and close the connection."""
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
            logger.info("[DB CONNECTION] Connection closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw connection for reads.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError("ConnectionManager: connection is not open. Call open(path) first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialised write transaction; commits on exit, rolls back on error."""
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise
