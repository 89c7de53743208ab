"""
Per-query builder state.

A QueryState collects everything staged by chained calls. The engine swaps
it for a fresh instance when a terminal call finishes, whichever way it
finishes.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from ..exceptions import InvalidQueryOption, QueryBuilderError
from .conditions import ConditionBuilder
from .results import ReturnType

JOIN_KINDS = {
    "INNER": "INNER JOIN",
    "LEFT": "LEFT JOIN",
    "RIGHT": "RIGHT JOIN",
    "OUTER": "FULL OUTER JOIN",
    "FULL": "FULL OUTER JOIN",
    "LEFT OUTER": "LEFT OUTER JOIN",
    "RIGHT OUTER": "RIGHT OUTER JOIN",
    "NATURAL": "NATURAL JOIN",
    "CROSS": "CROSS JOIN",
}


class QueryOption(str, Enum):
    """Statement options accepted by set_option."""

    DISTINCT = "DISTINCT"
    FOR_UPDATE = "FOR UPDATE"
    FOR_SHARE = "FOR SHARE"
    IGNORE = "IGNORE"
    SQL_NO_CACHE = "SQL_NO_CACHE"
    HIGH_PRIORITY = "HIGH_PRIORITY"
    LOW_PRIORITY = "LOW_PRIORITY"
    QUICK = "QUICK"

    @classmethod
    def parse(cls, option: Union[str, "QueryOption"]) -> "QueryOption":
        """
        Accept an enum member, its value or its name (case-insensitive).

        Raises:
            InvalidQueryOption: If the option is unknown
        """
        if isinstance(option, cls):
            return option
        if isinstance(option, str):
            key = option.strip().upper()
            for member in cls:
                if key in (member.value, member.name):
                    return member
        raise InvalidQueryOption(option)


@dataclass
class JoinSpec:
    """One JOIN: target table (or aliased subquery), ON text and extra ON conditions."""

    target: Any
    on: Optional[str]
    kind: str
    conditions: ConditionBuilder = field(default_factory=ConditionBuilder)


@dataclass
class OrderSpec:
    """ORDER BY item; custom_values orders by an explicit value list."""

    field: str
    direction: str = "ASC"
    custom_values: Optional[Sequence[Any]] = None


@dataclass
class QueryState:
    """Mutable state for exactly one logical query."""

    tables: List[str] = field(default_factory=list)
    columns: List[Any] = field(default_factory=list)
    where: ConditionBuilder = field(default_factory=ConditionBuilder)
    having: ConditionBuilder = field(default_factory=ConditionBuilder)
    joins: List[JoinSpec] = field(default_factory=list)
    order: List[OrderSpec] = field(default_factory=list)
    group_by: List[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None
    options: List[QueryOption] = field(default_factory=list)
    # on_duplicate: column name -> value (NOT_SET means "the inserted value", None binds NULL)
    on_duplicate: Optional[Dict[str, Any]] = None
    on_duplicate_id: Optional[str] = None
    return_type: ReturnType = ReturnType.ROWS
    generator: bool = False
    with_total_count: bool = False
    map_by: Optional[str] = None
    allow_unscoped: bool = False

    def has_option(self, option: QueryOption) -> bool:
        return option in self.options

    def set_limit_spec(self, limit_spec) -> None:
        """
        Apply an integer row cap or an ``[offset, limit]`` pair.

        None leaves the current limit untouched.
        """
        if limit_spec is None:
            return
        if isinstance(limit_spec, (list, tuple)):
            if len(limit_spec) != 2:
                raise QueryBuilderError(f"Limit pair must be [offset, limit], got {limit_spec!r}")
            offset, limit = limit_spec
            self.offset = int(offset)
            self.limit = int(limit)
        else:
            self.limit = int(limit_spec)

    def limit_pair(self) -> Tuple[Optional[int], Optional[int]]:
        return self.limit, self.offset
