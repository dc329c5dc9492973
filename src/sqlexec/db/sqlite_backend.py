"""SQLite implementation of the Connection protocol.

Thin wrapper around aiosqlite.Connection — no SQL translation needed
since SQLite understands ``?`` placeholders natively. The connection is
opened with ``isolation_level=None`` so the driver never starts
transactions on its own; manual-commit mode issues ``BEGIN`` itself.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import aiosqlite

from sqlexec.errors import QueryError

if TYPE_CHECKING:
    from sqlexec.db.backend import Row

logger = logging.getLogger(__name__)


class SQLiteCursor:
    """Wraps aiosqlite.Cursor to satisfy the Cursor protocol."""

    def __init__(self, cursor: aiosqlite.Cursor, sql: str, *, track_key: bool = False) -> None:
        """Initialize with an aiosqlite cursor and the SQL it ran."""
        self._cursor = cursor
        self._sql = sql
        self._track_key = track_key
        self._closed = False

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    @property
    def generated_key(self) -> int | None:
        """The inserted rowid, when one was requested and reported."""
        if not self._track_key or self.rowcount <= 0:
            return None
        # WITHOUT ROWID tables leave lastrowid at 0 on a fresh connection
        key = self._cursor.lastrowid
        return key if key else None

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        try:
            return await self._cursor.fetchone()
        except aiosqlite.Error as e:
            raise QueryError(f"Failed to read result row: {e}", self._sql) from e

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        try:
            return list(await self._cursor.fetchall())
        except aiosqlite.Error as e:
            raise QueryError(f"Failed to read result rows: {e}", self._sql) from e

    async def close(self) -> None:
        """Close the underlying cursor once."""
        if self._closed:
            return
        self._closed = True
        await self._cursor.close()


class SQLiteConnection:
    """SQLite implementation of the Connection protocol.

    Passes all calls through to the underlying aiosqlite.Connection.
    """

    def __init__(self, conn: aiosqlite.Connection) -> None:
        """Initialize with an aiosqlite connection opened in autocommit mode."""
        self._conn = conn
        self._autocommit = True
        self._closed = False

    @classmethod
    async def open(cls, path: str) -> SQLiteConnection:
        """Open a connection to the database file at ``path``."""
        conn = await aiosqlite.connect(path, isolation_level=None)
        conn.row_factory = aiosqlite.Row
        await conn.execute("PRAGMA foreign_keys=ON")
        return cls(conn)

    @property
    def autocommit(self) -> bool:
        """True when every statement commits on its own."""
        return self._autocommit

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        return self._closed

    async def set_autocommit(self, enabled: bool) -> None:
        """Switch commit mode. Enabling autocommit commits any open transaction."""
        if enabled and self._conn.in_transaction:
            await self.commit()
        self._autocommit = enabled

    async def _begin_if_needed(self) -> None:
        if not self._autocommit and not self._conn.in_transaction:
            await self._conn.execute("BEGIN")

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        return_generated_key: bool = False,
    ) -> SQLiteCursor:
        """Execute a single SQL statement and return a cursor."""
        try:
            await self._begin_if_needed()
            cursor = await self._conn.execute(sql, tuple(params))
        except aiosqlite.Error as e:
            raise QueryError(f"Statement failed: {e}", sql) from e
        return SQLiteCursor(cursor, sql, track_key=return_generated_key)

    async def execute_batch(self, sql: str, param_sets: Sequence[Sequence[Any]]) -> list[int]:
        """Execute ``sql`` once per parameter set, collecting row counts."""
        counts: list[int] = []
        try:
            await self._begin_if_needed()
            for params in param_sets:
                cursor = await self._conn.execute(sql, tuple(params))
                counts.append(cursor.rowcount)
                await cursor.close()
        except aiosqlite.Error as e:
            raise QueryError(f"Batch failed after {len(counts)} statements: {e}", sql) from e
        return counts

    async def commit(self) -> None:
        """Commit the open transaction, if any."""
        try:
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise QueryError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        """Roll back the open transaction, if any."""
        try:
            await self._conn.rollback()
        except aiosqlite.Error as e:
            raise QueryError(f"Rollback failed: {e}") from e

    async def close(self) -> None:
        """Close the database connection."""
        if self._closed:
            return
        self._closed = True
        await self._conn.close()
        logger.debug("SQLite connection closed")
