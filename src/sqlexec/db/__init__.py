"""Database backends and connection sources."""

from sqlexec.db.backend import Connection, Cursor, Row
from sqlexec.db.connection import (
    ConnectionSource,
    PooledConnectionSource,
    SQLiteConnectionSource,
    UnpooledConnectionSource,
    create_source,
)
from sqlexec.db.postgres_backend import PostgresConnection
from sqlexec.db.sqlite_backend import SQLiteConnection

__all__ = [
    "Connection",
    "ConnectionSource",
    "Cursor",
    "PooledConnectionSource",
    "PostgresConnection",
    "Row",
    "SQLiteConnection",
    "SQLiteConnectionSource",
    "UnpooledConnectionSource",
    "create_source",
]
