"""Reusable statement descriptors."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Statement:
    """SQL text paired with its positional parameters.

    Parameter ``params[i]`` binds to the ``i``-th ``?`` placeholder.
    """

    sql: str
    params: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple so the descriptor stays immutable
        object.__setattr__(self, "params", tuple(self.params))

    @classmethod
    def of(cls, sql: str, *params: Any) -> "Statement":
        """Build a statement from SQL text and inline parameters."""
        return cls(sql, params)
