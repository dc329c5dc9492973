"""Async SQL access: connection sources, transaction scope and statement execution."""

from sqlexec.db import (
    Connection,
    ConnectionSource,
    Cursor,
    PooledConnectionSource,
    Row,
    SQLiteConnectionSource,
    UnpooledConnectionSource,
    create_source,
)
from sqlexec.errors import (
    CommitFailedError,
    DataAccessError,
    DatabaseConnectionError,
    NoActiveTransactionError,
    NoRowsAffectedError,
    QueryError,
    TransactionAlreadyActiveError,
    TransactionError,
)
from sqlexec.executor import StatementExecutor
from sqlexec.mapping import RowMapper, as_dict, as_tuple, scalar
from sqlexec.models.config import DatabaseConfig, PoolConfig
from sqlexec.models.statement import Statement
from sqlexec.transaction import TransactionScope

__all__ = [
    "CommitFailedError",
    "Connection",
    "ConnectionSource",
    "Cursor",
    "DataAccessError",
    "DatabaseConfig",
    "DatabaseConnectionError",
    "NoActiveTransactionError",
    "NoRowsAffectedError",
    "PoolConfig",
    "PooledConnectionSource",
    "QueryError",
    "Row",
    "RowMapper",
    "SQLiteConnectionSource",
    "Statement",
    "StatementExecutor",
    "TransactionAlreadyActiveError",
    "TransactionError",
    "TransactionScope",
    "UnpooledConnectionSource",
    "as_dict",
    "as_tuple",
    "create_source",
    "scalar",
]
