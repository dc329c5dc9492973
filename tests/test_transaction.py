"""Tests for TransactionScope state transitions and cleanup."""

import asyncio

import pytest

from sqlexec.errors import (
    CommitFailedError,
    DatabaseConnectionError,
    NoActiveTransactionError,
    QueryError,
    TransactionAlreadyActiveError,
)
from tests.conftest import FakeConnection


@pytest.mark.asyncio
async def test_initially_inactive(scope):
    assert not scope.is_active()
    assert scope.current_connection() is None


@pytest.mark.asyncio
async def test_begin_binds_manual_commit_connection(scope, source):
    await scope.begin()
    conn = source.acquired[0]
    assert scope.is_active()
    assert scope.current_connection() is conn
    assert conn.autocommit is False
    assert not conn.closed


@pytest.mark.asyncio
async def test_begin_returns_bound_connection(scope, source):
    conn = await scope.begin()
    assert conn is source.acquired[0]
    assert scope.current_connection() is conn
    await scope.rollback()


@pytest.mark.asyncio
async def test_begin_twice_keeps_original_binding(scope, source):
    await scope.begin()
    first = scope.current_connection()

    with pytest.raises(TransactionAlreadyActiveError):
        await scope.begin()

    assert scope.current_connection() is first
    assert len(source.acquired) == 1


@pytest.mark.asyncio
async def test_begin_acquire_failure_leaves_scope_inactive(scope, source):
    source.fail_acquire = DatabaseConnectionError("down")
    with pytest.raises(DatabaseConnectionError):
        await scope.begin()
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_begin_closes_connection_when_manual_mode_fails(scope, source):
    conn = FakeConnection()
    conn.fail_set_autocommit = QueryError("nope")
    source.queued.append(conn)

    with pytest.raises(QueryError):
        await scope.begin()

    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_commit_without_transaction(scope, source):
    with pytest.raises(NoActiveTransactionError):
        await scope.commit()
    assert source.acquired == []


@pytest.mark.asyncio
async def test_rollback_without_transaction(scope, source):
    with pytest.raises(NoActiveTransactionError):
        await scope.rollback()
    assert source.acquired == []


@pytest.mark.asyncio
async def test_commit_ends_transaction(scope, source):
    await scope.begin()
    conn = source.acquired[0]

    await scope.commit()

    assert conn.commits == 1
    assert conn.rollbacks == 0
    assert conn.autocommit is True
    assert conn.close_calls == 1
    assert not scope.is_active()
    assert scope.current_connection() is None


@pytest.mark.asyncio
async def test_rollback_ends_transaction(scope, source):
    await scope.begin()
    conn = source.acquired[0]

    await scope.rollback()

    assert conn.rollbacks == 1
    assert conn.commits == 0
    assert conn.autocommit is True
    assert conn.close_calls == 1
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_failed_commit_rolls_back_and_wraps(scope, source):
    await scope.begin()
    conn = source.acquired[0]
    original = QueryError("serialization failure")
    conn.fail_commit = original

    with pytest.raises(CommitFailedError) as exc_info:
        await scope.commit()

    assert exc_info.value.__cause__ is original
    assert exc_info.value.rollback_error is None
    assert conn.rollbacks == 1
    assert conn.autocommit is True
    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_failed_commit_reports_commit_error_when_rollback_also_fails(scope, source):
    """The commit failure takes precedence; the rollback failure is attached."""
    await scope.begin()
    conn = source.acquired[0]
    commit_error = QueryError("commit broke")
    rollback_error = QueryError("rollback broke")
    conn.fail_commit = commit_error
    conn.fail_rollback = rollback_error

    with pytest.raises(CommitFailedError) as exc_info:
        await scope.commit()

    assert exc_info.value.__cause__ is commit_error
    assert exc_info.value.rollback_error is rollback_error
    assert conn.autocommit_changes == [False]
    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_failed_commit_cleanup_errors_do_not_mask(scope, source):
    await scope.begin()
    conn = source.acquired[0]
    conn.fail_commit = QueryError("commit broke")
    conn.fail_set_autocommit = QueryError("mode broke")
    conn.fail_close = QueryError("close broke")

    with pytest.raises(CommitFailedError):
        await scope.commit()

    assert conn.close_calls == 1
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_failed_rollback_still_cleans_up(scope, source):
    await scope.begin()
    conn = source.acquired[0]
    conn.fail_rollback = QueryError("rollback broke")

    with pytest.raises(QueryError, match="rollback broke"):
        await scope.rollback()

    # Turning autocommit back on would commit the open transaction
    assert conn.autocommit_changes == [False]
    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_close_failure_after_successful_commit_propagates(scope, source):
    await scope.begin()
    conn = source.acquired[0]
    conn.fail_close = QueryError("close broke")

    with pytest.raises(QueryError, match="close broke"):
        await scope.commit()

    assert conn.commits == 1
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_begin_again_after_commit(scope, source):
    await scope.begin()
    await scope.commit()
    await scope.begin()
    assert scope.current_connection() is source.acquired[1]
    await scope.rollback()


@pytest.mark.asyncio
async def test_bindings_are_isolated_per_task(scope, source):
    """Two concurrent tasks each get their own transaction."""
    started = asyncio.Event()
    seen: dict[str, object] = {}

    async def with_transaction():
        await scope.begin()
        seen["a"] = scope.current_connection()
        started.set()
        await asyncio.sleep(0)
        seen["a_after"] = scope.current_connection()
        await scope.commit()

    async def without_transaction():
        await started.wait()
        seen["b"] = scope.current_connection()
        seen["b_active"] = scope.is_active()

    await asyncio.gather(with_transaction(), without_transaction())

    assert seen["a"] is source.acquired[0]
    assert seen["a_after"] is source.acquired[0]
    assert seen["b"] is None
    assert seen["b_active"] is False


@pytest.mark.asyncio
async def test_two_tasks_can_hold_transactions_concurrently(scope, source):
    both_started = asyncio.Barrier(2)
    connections = []

    async def worker():
        await scope.begin()
        await both_started.wait()
        connections.append(scope.current_connection())
        await scope.commit()

    await asyncio.gather(worker(), worker())

    assert len(connections) == 2
    assert connections[0] is not connections[1]
    assert all(conn.commits == 1 for conn in source.acquired)


@pytest.mark.asyncio
async def test_spawned_task_does_not_inherit_transaction(scope, source):
    parent = await scope.begin()
    seen = {}

    async def child():
        seen["inherited"] = scope.current_connection()
        seen["active"] = scope.is_active()
        own = await scope.begin()
        seen["own"] = own
        await scope.commit()

    await asyncio.create_task(child())

    assert seen["inherited"] is None
    assert seen["active"] is False
    assert seen["own"] is source.acquired[1]
    assert seen["own"] is not parent
    assert seen["own"].commits == 1

    # The child's commit leaves the parent's transaction alone
    assert scope.current_connection() is parent
    assert not parent.closed
    await scope.commit()
    assert parent.commits == 1


@pytest.mark.asyncio
async def test_spawned_task_cannot_end_parent_transaction(scope, source):
    parent = await scope.begin()

    async def child():
        await scope.commit()

    with pytest.raises(NoActiveTransactionError):
        await asyncio.create_task(child())

    assert scope.is_active()
    assert parent.commits == 0
    assert not parent.closed
    await scope.rollback()


@pytest.mark.asyncio
async def test_separate_scopes_do_not_share_bindings(source):
    from sqlexec.transaction import TransactionScope

    first = TransactionScope(source)
    second = TransactionScope(source)
    await first.begin()
    assert first.is_active()
    assert not second.is_active()
    await first.rollback()


@pytest.mark.asyncio
async def test_transaction_context_manager_commits(scope, source):
    async with scope.transaction() as conn:
        assert scope.current_connection() is conn

    assert conn.commits == 1
    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_transaction_context_manager_rolls_back_on_error(scope, source):
    with pytest.raises(ValueError, match="boom"):
        async with scope.transaction():
            raise ValueError("boom")

    conn = source.acquired[0]
    assert conn.rollbacks == 1
    assert conn.commits == 0
    assert conn.closed
    assert not scope.is_active()


@pytest.mark.asyncio
async def test_transaction_context_manager_keeps_original_error_when_rollback_fails(
    scope, source
):
    with pytest.raises(ValueError, match="boom"):
        async with scope.transaction() as conn:
            conn.fail_rollback = QueryError("rollback broke")
            raise ValueError("boom")

    assert not scope.is_active()
