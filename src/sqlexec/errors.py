"""sqlexec error types.

All custom exceptions inherit from DataAccessError to allow
catching any sqlexec-specific error.
"""


class DataAccessError(Exception):
    """Base exception for all sqlexec errors."""


class DatabaseConnectionError(DataAccessError, ConnectionError):
    """A connection could not be acquired, or a pool could not be shut down."""


class TransactionError(DataAccessError):
    """Transaction state-machine violation or failed transaction boundary."""


class TransactionAlreadyActiveError(TransactionError):
    """begin() was called while a transaction is bound to the caller."""


class NoActiveTransactionError(TransactionError):
    """commit() or rollback() was called with no transaction bound."""


class CommitFailedError(TransactionError):
    """The commit failed and a rollback was attempted on the same connection.

    The commit failure is chained as ``__cause__``. If the compensating
    rollback failed too, that exception is kept on ``rollback_error``.
    """

    def __init__(self, message: str, rollback_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.rollback_error = rollback_error


class QueryError(DataAccessError):
    """Statement preparation, execution or result access failed."""

    def __init__(self, message: str, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


class NoRowsAffectedError(QueryError):
    """An insert that should produce a generated key affected no rows."""
