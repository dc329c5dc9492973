"""Row mappers: functions turning one result row into a value."""

from collections.abc import Callable
from typing import Any, TypeVar

from sqlexec.db.backend import Row

T = TypeVar("T")

RowMapper = Callable[[Row], T]


def scalar(row: Row) -> Any:
    """Return the first column."""
    return row[0]


def as_dict(row: Row) -> dict[str, Any]:
    """Convert a row to a column-name → value dict."""
    return {key: row[key] for key in row.keys()}


def as_tuple(row: Row) -> tuple[Any, ...]:
    """Convert a row to a tuple in column order."""
    return tuple(row[i] for i in range(len(list(row.keys()))))
