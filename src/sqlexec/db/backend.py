"""Database backend protocol — thin abstraction over async DB connections.

The executor and transaction scope program against these protocols. Each
backend (SQLite, Postgres, ...) provides a concrete implementation. SQL
dialect differences are handled inside the backend, not in calling code.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Row(Protocol):
    """A database row supporting both named and positional access."""

    def __getitem__(self, key: str | int) -> Any:
        """Get a column value by name or position."""
        ...

    def keys(self) -> Any:
        """Return column names."""
        ...


@runtime_checkable
class Cursor(Protocol):
    """Async cursor returned by Connection.execute()."""

    @property
    def rowcount(self) -> int:
        """Number of rows affected by the last operation."""
        ...

    @property
    def generated_key(self) -> int | None:
        """First generated key reported by an insert, if any."""
        ...

    async def fetchone(self) -> Row | None:
        """Fetch the next row, or None if exhausted."""
        ...

    async def fetchall(self) -> list[Row]:
        """Fetch all remaining rows."""
        ...

    async def close(self) -> None:
        """Release the cursor. Safe to call more than once."""
        ...


@runtime_checkable
class Connection(Protocol):
    """An exclusively owned async database session.

    All SQL uses ``?`` positional placeholders. Non-SQLite backends
    translate at execute time (``?`` → ``$N``).

    A connection is either in autocommit mode (every statement is its own
    unit of work) or manual-commit mode (statements accumulate until
    commit/rollback). Manual-commit mode opens the transaction lazily with
    the first statement.
    """

    @property
    def autocommit(self) -> bool:
        """True when every statement commits on its own."""
        ...

    @property
    def closed(self) -> bool:
        """True once close() has been called."""
        ...

    async def set_autocommit(self, enabled: bool) -> None:
        """Switch commit mode. Enabling autocommit commits any open transaction."""
        ...

    async def execute(
        self,
        sql: str,
        params: Sequence[Any] = (),
        *,
        return_generated_key: bool = False,
    ) -> Cursor:
        """Prepare ``sql``, bind ``params`` positionally, execute, return a cursor."""
        ...

    async def execute_batch(self, sql: str, param_sets: Sequence[Sequence[Any]]) -> list[int]:
        """Execute one statement per parameter set, returning per-set row counts."""
        ...

    async def commit(self) -> None:
        """Commit the open transaction, if any."""
        ...

    async def rollback(self) -> None:
        """Roll back the open transaction, if any."""
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...
