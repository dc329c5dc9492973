"""Shared test fixtures."""

from typing import Any

import pytest
import pytest_asyncio

from sqlexec.db.connection import SQLiteConnectionSource
from sqlexec.executor import StatementExecutor
from sqlexec.transaction import TransactionScope


class FakeRow:
    """Dict-backed row supporting named and positional access."""

    def __init__(self, data: dict[str, Any]):
        self._data = data
        self._values = list(data.values())

    def __getitem__(self, key):
        if isinstance(key, int):
            return self._values[key]
        return self._data[key]

    def keys(self):
        return list(self._data)


class FakeCursor:
    """Cursor over canned rows that records whether it was closed."""

    def __init__(
        self,
        rows: list[dict[str, Any]] | None = None,
        rowcount: int = -1,
        generated_key: int | None = None,
    ):
        self.rows = [FakeRow(r) for r in rows or []]
        self.rowcount = rowcount
        self.generated_key = generated_key
        self.closed = False
        self._index = 0

    async def fetchone(self):
        if self._index >= len(self.rows):
            return None
        row = self.rows[self._index]
        self._index += 1
        return row

    async def fetchall(self):
        remaining = self.rows[self._index :]
        self._index = len(self.rows)
        return remaining

    async def close(self):
        self.closed = True


class FakeConnection:
    """Recording connection double.

    Returns queued cursors from ``results`` in order, records every call, and
    raises the configured ``fail_*`` exceptions on demand.
    """

    def __init__(self, results: list[FakeCursor] | None = None):
        self.results = list(results or [])
        self.executed: list[tuple[str, tuple]] = []
        self.key_requests: list[bool] = []
        self.batches: list[tuple[str, list[tuple]]] = []
        self.cursors: list[FakeCursor] = []
        self.autocommit = True
        self.autocommit_changes: list[bool] = []
        self.commits = 0
        self.rollbacks = 0
        self.close_calls = 0
        self.fail_execute: Exception | None = None
        self.fail_commit: Exception | None = None
        self.fail_rollback: Exception | None = None
        self.fail_close: Exception | None = None
        self.fail_set_autocommit: Exception | None = None

    @property
    def closed(self) -> bool:
        return self.close_calls > 0

    async def set_autocommit(self, enabled: bool) -> None:
        self.autocommit_changes.append(enabled)
        if self.fail_set_autocommit:
            raise self.fail_set_autocommit
        self.autocommit = enabled

    async def execute(self, sql, params=(), *, return_generated_key=False):
        self.executed.append((sql, tuple(params)))
        self.key_requests.append(return_generated_key)
        if self.fail_execute:
            raise self.fail_execute
        cursor = self.results.pop(0) if self.results else FakeCursor()
        self.cursors.append(cursor)
        return cursor

    async def execute_batch(self, sql, param_sets):
        self.batches.append((sql, [tuple(p) for p in param_sets]))
        if self.fail_execute:
            raise self.fail_execute
        return [len(p) for p in param_sets]

    async def commit(self) -> None:
        self.commits += 1
        if self.fail_commit:
            raise self.fail_commit

    async def rollback(self) -> None:
        self.rollbacks += 1
        if self.fail_rollback:
            raise self.fail_rollback

    async def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise self.fail_close


class FakeSource:
    """Connection source handing out FakeConnections.

    Preconfigured connections in ``queued`` are handed out first.
    """

    def __init__(self):
        self.queued: list[FakeConnection] = []
        self.acquired: list[FakeConnection] = []
        self.shutdown_calls = 0
        self.fail_acquire: Exception | None = None

    async def acquire(self):
        if self.fail_acquire:
            raise self.fail_acquire
        conn = self.queued.pop(0) if self.queued else FakeConnection()
        self.acquired.append(conn)
        return conn

    async def shutdown(self) -> None:
        self.shutdown_calls += 1


@pytest.fixture
def source():
    """Recording fake connection source."""
    return FakeSource()


@pytest.fixture
def scope(source):
    """Transaction scope over the fake source."""
    return TransactionScope(source)


@pytest.fixture
def executor(source, scope):
    """Statement executor over the fake source."""
    return StatementExecutor(source, scope)


@pytest.fixture
def sqlite_source(tmp_path):
    """SQLite source backed by a temporary database file."""
    return SQLiteConnectionSource(tmp_path / "test.db")


@pytest.fixture
def sqlite_scope(sqlite_source):
    """Transaction scope over the SQLite source."""
    return TransactionScope(sqlite_source)


@pytest_asyncio.fixture
async def sqlite_executor(sqlite_source, sqlite_scope):
    """Executor over a SQLite database with an empty ``t`` table."""
    executor = StatementExecutor(sqlite_source, sqlite_scope)
    await executor.execute_update(
        "CREATE TABLE t (id INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT)"
    )
    yield executor
    await sqlite_source.shutdown()
