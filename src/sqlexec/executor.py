"""Statement executor: runs parameterized SQL and maps the results.

Every operation follows the same lifetime rules. If a transaction is bound
to the caller, its connection is reused and never closed here. Otherwise a
fresh connection is acquired and closed when the operation ends. Cursors
are always closed. Cleanup failures during error handling are logged and
never replace the original error.
"""

import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from typing import Any, Protocol, TypeVar

from sqlexec.db.backend import Connection, Cursor
from sqlexec.db.connection import ConnectionSource
from sqlexec.errors import NoRowsAffectedError
from sqlexec.mapping import RowMapper
from sqlexec.models.statement import Statement
from sqlexec.transaction import TransactionScope

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Closeable(Protocol):
    async def close(self) -> None: ...


@asynccontextmanager
async def _closing(resource: _Closeable, what: str) -> AsyncIterator[None]:
    """Close ``resource`` on exit without letting a close error mask another error."""
    try:
        yield
    except BaseException:
        try:
            await resource.close()
        except Exception as e:
            logger.warning("Failed to close %s after error: %s", what, e)
        raise
    await resource.close()


def _resolve(sql: str | Statement, params: tuple[Any, ...]) -> tuple[str, tuple[Any, ...]]:
    """Split a SQL text or Statement into text and positional parameters."""
    if isinstance(sql, Statement):
        if params:
            raise TypeError("Parameters must be inside the Statement, not passed alongside it")
        return sql.sql, sql.params
    return sql, params


class StatementExecutor:
    """Executes statements against the transaction's connection or a fresh one.

    Any method taking SQL text also accepts a :class:`Statement`, in which
    case the parameters come from the statement.
    """

    def __init__(self, source: ConnectionSource, scope: TransactionScope) -> None:
        """Initialize with a connection source and the transaction scope to consult."""
        self._source = source
        self._scope = scope

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[Connection]:
        """Yield the bound transaction connection, or a fresh one closed afterwards."""
        bound = self._scope.current_connection()
        if bound is not None:
            logger.debug("Reusing transaction connection")
            yield bound
            return

        conn = await self._source.acquire()
        async with _closing(conn, "connection"):
            yield conn

    @asynccontextmanager
    async def query(self, sql: str | Statement, *params: Any) -> AsyncIterator[Cursor]:
        """Run a read query and yield its live cursor.

        The cursor (and a non-transactional connection) stays open until the
        ``async with`` block exits.
        """
        text, args = _resolve(sql, params)
        async with self._connection() as conn:
            cursor = await conn.execute(text, args)
            async with _closing(cursor, "cursor"):
                yield cursor

    async def execute_update(self, sql: str | Statement, *params: Any) -> int:
        """Run a write statement and return the number of affected rows."""
        text, args = _resolve(sql, params)
        async with self._connection() as conn:
            cursor = await conn.execute(text, args)
            async with _closing(cursor, "cursor"):
                return cursor.rowcount

    async def execute_insert(self, sql: str | Statement, *params: Any) -> int | None:
        """Run an insert and return the first generated key, if the database reports one.

        Raises:
            NoRowsAffectedError: If the insert affected no rows.
        """
        text, args = _resolve(sql, params)
        async with self._connection() as conn:
            cursor = await conn.execute(text, args, return_generated_key=True)
            async with _closing(cursor, "cursor"):
                if cursor.rowcount == 0:
                    raise NoRowsAffectedError("Executing insert failed, no rows affected", text)
                return cursor.generated_key

    async def query_for_object(
        self, sql: str | Statement, mapper: RowMapper[T], *params: Any
    ) -> T | None:
        """Map the first row of a query, or return None if there are no rows.

        Exceptions raised by ``mapper`` propagate unchanged.
        """
        text, args = _resolve(sql, params)
        async with self._connection() as conn:
            cursor = await conn.execute(text, args)
            async with _closing(cursor, "cursor"):
                row = await cursor.fetchone()
                if row is None:
                    return None
                return mapper(row)

    async def query_for_list(
        self, sql: str | Statement, mapper: RowMapper[T], *params: Any
    ) -> list[T]:
        """Map every row of a query, in cursor order.

        Exceptions raised by ``mapper`` propagate unchanged.
        """
        text, args = _resolve(sql, params)
        async with self._connection() as conn:
            cursor = await conn.execute(text, args)
            async with _closing(cursor, "cursor"):
                return [mapper(row) for row in await cursor.fetchall()]

    async def batch_update(
        self, sql: str | Statement, param_sets: Iterable[Sequence[Any] | None]
    ) -> list[int]:
        """Run one statement for each parameter set as a batch.

        Returns the affected-row count of each set, in input order. An empty
        ``param_sets`` returns ``[]`` without acquiring a connection. When a
        Statement is given only its SQL text is used.
        """
        text = sql.sql if isinstance(sql, Statement) else sql
        sets = [tuple(params) if params is not None else () for params in param_sets]
        if not sets:
            return []
        async with self._connection() as conn:
            return await conn.execute_batch(text, sets)
