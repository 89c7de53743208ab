"""
Result containers returned by the query engine.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import StreamClosed


class FetchMode(str, Enum):
    """Shape of returned rows."""

    DICT = "dict"  # column name -> value
    TUPLE = "tuple"  # positional
    BOTH = "both"  # names and positions in one mapping


class ReturnType(str, Enum):
    """Per-query return hint for row-set results."""

    ROWS = "rows"
    JSON = "json"


@dataclass(frozen=True)
class LastError:
    """Structured description of the last driver failure."""

    sql_state: Optional[str]
    driver_code: Any
    message: str

    def __str__(self) -> str:
        return f"[{self.sql_state}] ({self.driver_code}) {self.message}"


@dataclass
class PaginationResult:
    """One page of rows plus totals ignoring the page limit."""

    rows: List[Any]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def record_count(self) -> int:
        """Number of rows on this page."""
        return len(self.rows)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "records": self.rows,
            "record_count": self.record_count,
            "total_records": self.total_count,
            "total_pages": self.total_pages,
            "page": self.page,
            "page_size": self.page_size,
        }


@dataclass(frozen=True)
class TraceEntry:
    """One executed statement recorded while tracing is enabled."""

    sql: str
    param_count: int
    duration: float
    succeeded: bool


class RowStream:
    """
    Forward-only, single-pass iterator over an open cursor.

    Rows are fetched one at a time. The stream holds the cursor (and the
    connection it belongs to) until it is exhausted or closed; iterating it
    again afterwards raises StreamClosed.
    """

    def __init__(
        self,
        cursor,
        shape_row: Callable[[Any], Any],
        on_close: Optional[Callable[[], None]] = None,
    ):
        self._cursor = cursor
        self._shape_row = shape_row
        self._on_close = on_close
        self._closed = False
        self._exhausted = False
        self.rows_read = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "RowStream":
        if self._closed:
            raise StreamClosed("exhausted" if self._exhausted else "closed")
        return self

    def __next__(self) -> Any:
        if self._closed:
            if self._exhausted:
                raise StopIteration
            raise StreamClosed("closed")
        row = self._cursor.fetchone()
        if row is None:
            self._exhausted = True
            self.close()
            raise StopIteration
        self.rows_read += 1
        return self._shape_row(row)

    def close(self) -> None:
        """Release the cursor; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        finally:
            if self._on_close is not None:
                self._on_close()

    def __enter__(self) -> "RowStream":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"RowStream({state}, rows_read={self.rows_read})"
