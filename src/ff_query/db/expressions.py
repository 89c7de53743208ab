"""
Literal SQL expressions.

Values wrapped in an ``Expression`` are spliced into the statement text
instead of being bound as parameters. Any parameters an expression carries
are bound at the point where its text is written.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple

from ..exceptions import QueryBuilderError
from .binder import check_placeholders

INTERVAL_UNITS = {
    "s": "second",
    "m": "minute",
    "h": "hour",
    "d": "day",
    "w": "week",
    "M": "month",
    "Y": "year",
}

_INTERVAL_PATTERN = re.compile(r"^\s*([+-]?)\s*(\d+)\s*([smhdwMY])\s*$")


@dataclass(frozen=True)
class Interval:
    """A signed time offset such as ``-1d`` or ``+10Y``."""

    amount: int
    unit: str

    @classmethod
    def parse(cls, text: str) -> "Interval":
        """
        Parse ``[+|-]<amount><unit>`` where unit is one of s, m, h, d, w, M, Y.

        Raises:
            QueryBuilderError: If the text is not a valid offset
        """
        match = _INTERVAL_PATTERN.match(text)
        if not match:
            raise QueryBuilderError(
                f"Invalid time offset {text!r}; expected e.g. '-1d', '+2h', '10M'"
            )
        sign, amount, unit = match.groups()
        value = int(amount)
        return cls(amount=-value if sign == "-" else value, unit=INTERVAL_UNITS[unit])


class Expression(ABC):
    """SQL text that is written verbatim into a statement."""

    @abstractmethod
    def render(self, dialect, binder) -> str:
        """
        Render the expression for a dialect.

        Args:
            dialect: Active Dialect
            binder: ParameterBinder receiving any values the expression carries

        Returns:
            SQL text
        """
        pass


@dataclass(frozen=True)
class RawExpression(Expression):
    """Arbitrary SQL fragment with its own ``?`` parameters."""

    sql: str
    params: Sequence[Any] = field(default_factory=tuple)

    def __post_init__(self):
        check_placeholders(self.sql, len(self.params))

    def render(self, dialect, binder) -> str:
        binder.append_many(self.params)
        return self.sql


@dataclass(frozen=True)
class Now(Expression):
    """Current timestamp, optionally shifted by an interval."""

    offset: Optional[Interval] = None
    function: Optional[str] = None

    def render(self, dialect, binder) -> str:
        return dialect.now(self.offset, self.function)


@dataclass(frozen=True)
class ColumnDelta(Expression):
    """``field + ?`` / ``field - ?`` with the delta bound."""

    field: str
    delta: Any
    operator: str = "+"

    def render(self, dialect, binder) -> str:
        return f"{dialect.quote_column(self.field)} {self.operator} {binder.append(self.delta)}"


def now(offset: Optional[str] = None, function: Optional[str] = None) -> Now:
    """
    Current timestamp expression.

    Args:
        offset: Optional shift such as ``"-1d"`` or ``"+2h"``
        function: Base expression to shift instead of the dialect's NOW()
    """
    return Now(offset=Interval.parse(offset) if offset else None, function=function)


def increment(field: str, delta: Any = 1) -> ColumnDelta:
    """``field = field + delta`` when used as an update value."""
    return ColumnDelta(field=field, delta=delta, operator="+")


def decrement(field: str, delta: Any = 1) -> ColumnDelta:
    """``field = field - delta`` when used as an update value."""
    return ColumnDelta(field=field, delta=delta, operator="-")


def raw_function(expression: str, params: Optional[List[Any]] = None) -> RawExpression:
    """
    Literal SQL function call or expression, e.g. ``raw_function("SHA1(?)", [secret])``.

    Raises:
        ParameterCountMismatch: If the placeholder count differs from len(params)
    """
    return RawExpression(sql=expression, params=tuple(params or ()))


class SubqueryExpression(Expression):
    """
    Nested query spliced into a parent statement.

    The nested query is compiled with its own binder; its values are merged
    into the parent's binder at the point its text is written.
    """

    @abstractmethod
    def compile(self, dialect) -> Tuple[str, List[Any]]:
        """Return the nested statement text and its bound values."""
        pass

    def render(self, dialect, binder) -> str:
        sql, params = self.compile(dialect)
        binder.extend(params)
        return f"({sql})"
