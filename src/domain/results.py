from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailurePolicy(StrEnum):
    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


@dataclass(frozen=True)
class QueryOk(Generic[T]):
    """Rows fetched successfully. An empty tuple means nothing is configured."""

    rows: tuple[T, ...]

    @property
    def is_empty(self) -> bool:
        return not self.rows


@dataclass(frozen=True)
class QueryError:
    cause: BaseException


QueryResult = QueryOk[T] | QueryError


__all__ = ["FailurePolicy", "QueryError", "QueryOk", "QueryResult"]
