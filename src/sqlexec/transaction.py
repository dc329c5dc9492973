"""Transaction scope: binds one connection to the current call chain.

The binding lives in a ``contextvars.ContextVar`` and records the asyncio
task that began the transaction. Tasks spawned while a transaction is open
copy the context but not the ownership, so they start with no transaction
of their own, just like the calling task's siblings. Concurrent tasks can
each hold an active transaction without seeing each other's connection.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from sqlexec.db.backend import Connection
from sqlexec.db.connection import ConnectionSource
from sqlexec.errors import (
    CommitFailedError,
    NoActiveTransactionError,
    TransactionAlreadyActiveError,
)

logger = logging.getLogger(__name__)


def _current_task() -> asyncio.Task | None:
    """Return the running task, or None when called outside an event loop."""
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class TransactionScope:
    """Begin, commit and roll back transactions for the calling task.

    States are ``no transaction`` and ``active(connection)``. ``begin()``
    acquires a connection from the source and switches it to manual-commit
    mode. ``commit()`` and ``rollback()`` always end the transaction: the
    connection is closed and unbound, even when the database call itself
    fails. Autocommit is restored first unless the rollback failed, in
    which case the connection is closed with its transaction still open so
    the database discards the pending work.
    """

    def __init__(self, source: ConnectionSource) -> None:
        """Initialize with the source transactions draw connections from."""
        self._source = source
        self._binding: ContextVar[tuple[asyncio.Task | None, Connection] | None] = ContextVar(
            f"sqlexec_transaction_{id(self):x}", default=None
        )

    def current_connection(self) -> Connection | None:
        """Return the connection bound to the calling task, or None."""
        binding = self._binding.get()
        if binding is None:
            return None
        owner, conn = binding
        # Inherited from the task that spawned us
        if owner is not _current_task():
            return None
        return conn

    def is_active(self) -> bool:
        """True when a transaction is bound to the calling task."""
        return self.current_connection() is not None

    async def begin(self) -> Connection:
        """Start a transaction for the calling task and return its connection.

        Raises:
            TransactionAlreadyActiveError: If one is already bound; the
                existing binding is left untouched.
            DatabaseConnectionError: If no connection could be acquired.
        """
        if self.current_connection() is not None:
            raise TransactionAlreadyActiveError("A transaction is already active in this context")

        conn = await self._source.acquire()
        try:
            await conn.set_autocommit(False)
        except Exception:
            try:
                await conn.close()
            except Exception as close_error:
                logger.warning("Failed to close connection after begin failure: %s", close_error)
            raise
        self._binding.set((_current_task(), conn))
        logger.debug("Transaction started")
        return conn

    async def commit(self) -> None:
        """Commit the calling task's transaction.

        If the commit fails, a rollback is attempted on the same connection
        before the failure is reported. The commit failure always wins: a
        failing rollback is logged and kept on ``rollback_error``.

        Raises:
            NoActiveTransactionError: If no transaction is bound.
            CommitFailedError: If the commit failed (chained from the cause).
        """
        conn = self.current_connection()
        if conn is None:
            raise NoActiveTransactionError("No active transaction to commit")

        try:
            await conn.commit()
        except Exception as e:
            logger.error("Commit failed, rolling back: %s", e)
            rollback_error: Exception | None = None
            try:
                await conn.rollback()
            except Exception as rb:
                logger.warning("Rollback after failed commit also failed: %s", rb)
                rollback_error = rb
            await self._finish(conn, failed=True, discard=rollback_error is not None)
            raise CommitFailedError(
                "Failed to commit transaction; it has been rolled back", rollback_error
            ) from e

        await self._finish(conn, failed=False)
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        """Roll back the calling task's transaction.

        Raises:
            NoActiveTransactionError: If no transaction is bound.
            QueryError: If the rollback failed; cleanup has still run.
        """
        conn = self.current_connection()
        if conn is None:
            raise NoActiveTransactionError("No active transaction to rollback")

        try:
            await conn.rollback()
        except Exception:
            await self._finish(conn, failed=True, discard=True)
            raise

        await self._finish(conn, failed=False)
        logger.debug("Transaction rolled back")

    async def _finish(self, conn: Connection, *, failed: bool, discard: bool = False) -> None:
        """Restore autocommit, close and unbind. Every step runs.

        With ``discard`` the transaction may still be open, so autocommit is
        left off: switching it on would commit the pending work, while
        closing the connection makes the database throw it away.

        When the transaction already failed, cleanup errors are only logged so
        they never hide the primary failure.
        """
        errors: list[Exception] = []
        if not discard:
            try:
                await conn.set_autocommit(True)
            except Exception as e:
                errors.append(e)
        try:
            await conn.close()
        except Exception as e:
            errors.append(e)
        self._binding.set(None)

        if not errors:
            return
        if failed:
            for error in errors:
                logger.warning("Transaction cleanup failed: %s", error)
            return
        raise errors[0]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Connection]:
        """
        Context manager for a transaction.

        Commits on success, rolls back on exception.
        """
        conn = await self.begin()
        try:
            yield conn
        except BaseException:
            try:
                await self.rollback()
            except Exception as rb:
                logger.warning("Rollback failed while handling an error: %s", rb)
            raise
        await self.commit()
