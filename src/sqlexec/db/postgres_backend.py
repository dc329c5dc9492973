"""PostgreSQL implementation of the Connection protocol.

Uses asyncpg for async access. All calling code uses ``?`` placeholders —
this backend translates them to ``$N`` at execute time.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any

import asyncpg

from sqlexec.errors import QueryError

if TYPE_CHECKING:
    from sqlexec.db.backend import Row

logger = logging.getLogger(__name__)

# Pre-compiled regex for placeholder translation
_PLACEHOLDER_RE = re.compile(r"\?")
_RETURNING_RE = re.compile(r"\breturning\b", re.IGNORECASE)

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError)


def _translate_placeholders(sql: str) -> str:
    """Convert ``?`` placeholders to ``$1, $2, ...`` for asyncpg."""
    counter = 0

    def _replace(_match: re.Match[str]) -> str:
        nonlocal counter
        counter += 1
        return f"${counter}"

    return _PLACEHOLDER_RE.sub(_replace, sql)


def _with_returning(sql: str) -> str:
    """Append ``RETURNING *`` unless the statement already returns rows."""
    if _RETURNING_RE.search(sql):
        return sql
    return sql.rstrip().rstrip(";") + " RETURNING *"


class PostgresRow:
    """Wraps asyncpg.Record to satisfy the Row protocol."""

    def __init__(self, record: asyncpg.Record) -> None:
        """Initialize with an asyncpg Record."""
        self._record = record

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        return self._record[key]

    def keys(self) -> list[str]:
        """Return column names."""
        return list(self._record.keys())


class PostgresCursor:
    """Wraps a list of asyncpg.Record as a Cursor.

    asyncpg returns results eagerly — there's no server-side cursor for
    simple queries. This wraps the result list to match the Cursor protocol.
    """

    def __init__(
        self,
        rows: list[asyncpg.Record],
        status: str | None = None,
        *,
        track_key: bool = False,
    ) -> None:
        """Initialize with result rows and optional status string."""
        self._rows = rows
        self._index = 0
        self._rowcount = self._parse_rowcount(status)
        self._generated_key = self._first_key(rows) if track_key else None

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        return self._rowcount

    @property
    def generated_key(self) -> int | None:
        """First column of the first returned row, when it is an integer."""
        return self._generated_key

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        if self._index >= len(self._rows):
            return None
        row = PostgresRow(self._rows[self._index])
        self._index += 1
        return row

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        remaining: list[Row] = [PostgresRow(r) for r in self._rows[self._index :]]
        self._index = len(self._rows)
        return remaining

    async def close(self) -> None:
        """Drop buffered rows."""
        self._rows = []
        self._index = 0

    @staticmethod
    def _first_key(rows: list[asyncpg.Record]) -> int | None:
        if not rows:
            return None
        value = rows[0][0]
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    @staticmethod
    def _parse_rowcount(status: str | None) -> int:
        """Parse affected row count from asyncpg status string.

        Examples: "INSERT 0 1" → 1, "UPDATE 3" → 3, "DELETE 0" → 0.
        """
        if not status:
            return -1
        parts = status.split()
        if len(parts) >= 2:
            try:
                return int(parts[-1])
            except ValueError:
                pass
        return -1


class PostgresConnection:
    """PostgreSQL implementation of the Connection protocol.

    Wraps one asyncpg connection. ``release`` decides what closing means:
    pooled connections go back to their pool, unpooled ones are closed.
    Manual-commit mode starts an asyncpg transaction before the first
    statement and ends it on commit/rollback.
    """

    def __init__(
        self,
        conn: asyncpg.Connection,
        release: Callable[[asyncpg.Connection], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize with an asyncpg connection and an optional release hook."""
        self._conn = conn
        self._release = release
        self._tx: asyncpg.transaction.Transaction | None = None
        self._autocommit = True
        self._closed = False

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
        if enabled and self._tx is not None:
            await self.commit()
        self._autocommit = enabled

    async def _begin_if_needed(self) -> None:
        if not self._autocommit and self._tx is None:
            tx = self._conn.transaction()
            await tx.start()
            self._tx = tx

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        return_generated_key: bool = False,
    ) -> PostgresCursor:
        """Prepare, bind and execute a single statement."""
        pg_sql = _translate_placeholders(sql)
        if return_generated_key:
            pg_sql = _with_returning(pg_sql)
        try:
            await self._begin_if_needed()
            stmt = await self._conn.prepare(pg_sql)
            rows = await stmt.fetch(*params)
            status = stmt.get_statusmsg()
        except _DRIVER_ERRORS as e:
            raise QueryError(f"Statement failed: {e}", sql) from e
        return PostgresCursor(rows, status=status, track_key=return_generated_key)

    async def execute_batch(self, sql: str, param_sets: Sequence[Sequence[Any]]) -> list[int]:
        """Execute one prepared statement per parameter set."""
        pg_sql = _translate_placeholders(sql)
        counts: list[int] = []
        try:
            await self._begin_if_needed()
            stmt = await self._conn.prepare(pg_sql)
            for params in param_sets:
                await stmt.fetch(*params)
                counts.append(PostgresCursor._parse_rowcount(stmt.get_statusmsg()))
        except _DRIVER_ERRORS as e:
            raise QueryError(f"Batch failed after {len(counts)} statements: {e}", sql) from e
        return counts

    async def commit(self) -> None:
        """Commit the open transaction, if any."""
        tx, self._tx = self._tx, None
        if tx is None:
            return
        try:
            await tx.commit()
        except _DRIVER_ERRORS as e:
            raise QueryError(f"Commit failed: {e}") from e

    async def rollback(self) -> None:
        """Roll back the open transaction, if any.

        After a failed commit the asyncpg transaction object is spent, but
        the server session may still be inside a transaction block; a plain
        ``ROLLBACK`` clears it.
        """
        tx, self._tx = self._tx, None
        try:
            if tx is not None:
                await tx.rollback()
            elif self._conn.is_in_transaction():
                await self._conn.execute("ROLLBACK")
        except _DRIVER_ERRORS as e:
            raise QueryError(f"Rollback failed: {e}") from e

    async def close(self) -> None:
        """Return the connection to its pool, or close it.

        An open transaction is discarded either way: asyncpg resets pooled
        connections with ROLLBACK on release.
        """
        if self._closed:
            return
        self._closed = True
        self._tx = None
        if self._release is not None:
            await self._release(self._conn)
        else:
            await self._conn.close()
