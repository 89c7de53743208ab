"""
WHERE / HAVING condition trees.

A ConditionBuilder holds an ordered list of nodes. Rendering walks the tree
once, writing text and binding values in the same step, so placeholders and
bound values can never drift apart. Malformed conditions are rejected when
they are added, before any SQL is produced.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence

from ..exceptions import (
    EmptyInList,
    InvalidArity,
    InvalidOperator,
    QueryBuilderError,
)
from .binder import check_placeholders
from .expressions import Expression, SubqueryExpression


class _NotSet:
    """Marker for "no value supplied"; distinct from None and from any real value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_SET"

    def __bool__(self) -> bool:
        return False


NOT_SET = _NotSet()

SINGLE_VALUE_OPERATORS = {
    "=", "!=", "<>", ">", ">=", "<", "<=", "LIKE", "NOT LIKE", "REGEXP", "NOT REGEXP",
}
LIST_OPERATORS = {"IN", "NOT IN"}
RANGE_OPERATORS = {"BETWEEN", "NOT BETWEEN"}
NULL_OPERATORS = {"IS NULL", "IS NOT NULL"}
EXISTS_OPERATORS = {"EXISTS", "NOT EXISTS"}
CONNECTORS = {"AND", "OR"}

_WHITESPACE = re.compile(r"\s+")


def normalize_operator(operator: str) -> str:
    """
    Upper-case and validate a comparison operator.

    Raises:
        InvalidOperator: If the operator is not supported
    """
    normalized = _WHITESPACE.sub(" ", str(operator).strip()).upper()
    if normalized == "IS":
        normalized = "IS NULL"
    elif normalized == "IS NOT":
        normalized = "IS NOT NULL"
    known = (
        SINGLE_VALUE_OPERATORS | LIST_OPERATORS | RANGE_OPERATORS | NULL_OPERATORS | EXISTS_OPERATORS
    )
    if normalized not in known:
        raise InvalidOperator(operator)
    return normalized


def normalize_connector(connector: str) -> str:
    normalized = str(connector).strip().upper()
    if normalized not in CONNECTORS:
        raise QueryBuilderError(f"Condition connector must be AND or OR, got {connector!r}")
    return normalized


def render_value(value: Any, dialect, binder) -> str:
    """Splice expressions verbatim, bind everything else."""
    if isinstance(value, Expression):
        return value.render(dialect, binder)
    return binder.append(value)


# ==================== Nodes ====================


@dataclass
class Comparison:
    """``field <operator> value`` with a validated operator and value shape."""

    field: str
    operator: str
    value: Any
    connector: str = "AND"

    def render(self, dialect, binder) -> str:
        column = dialect.quote_column(self.field)
        operator = self.operator

        if operator in NULL_OPERATORS:
            return f"{column} {operator}"

        if operator in LIST_OPERATORS:
            placeholders = [render_value(item, dialect, binder) for item in self.value]
            return f"{column} {operator} ({','.join(placeholders)})"

        if operator in RANGE_OPERATORS:
            low = render_value(self.value[0], dialect, binder)
            high = render_value(self.value[1], dialect, binder)
            return f"{column} {operator} {low} AND {high}"

        if operator in ("REGEXP", "NOT REGEXP"):
            operator = dialect.regexp_operator(negate=operator == "NOT REGEXP")

        return f"{column} {operator} {render_value(self.value, dialect, binder)}"


@dataclass
class RawFragment:
    """Literal SQL condition with its own ``?`` parameters."""

    sql: str
    params: Sequence[Any] = ()
    connector: str = "AND"

    def render(self, dialect, binder) -> str:
        binder.append_many(self.params)
        return self.sql


@dataclass
class Group:
    """Parenthesised sub-tree joined to its siblings by its own connector."""

    conditions: "ConditionBuilder"
    connector: str = "AND"

    def render(self, dialect, binder) -> str:
        inner = self.conditions.render(dialect, binder)
        return f"({inner})" if inner else ""


@dataclass
class SubqueryComparison:
    """``field <operator> (SELECT ...)`` or ``[NOT] EXISTS (SELECT ...)``."""

    field: Any
    operator: str
    subquery: SubqueryExpression
    connector: str = "AND"

    def render(self, dialect, binder) -> str:
        subquery_sql = self.subquery.render(dialect, binder)
        if self.operator in EXISTS_OPERATORS:
            return f"{self.operator} {subquery_sql}"
        return f"{dialect.quote_column(self.field)} {self.operator} {subquery_sql}"


# ==================== Builder ====================


class ConditionBuilder:
    """
    Ordered boolean condition tree for WHERE, HAVING and JOIN ... ON.

    The first rendered node omits its connector; every later node is
    prefixed with its own AND/OR.
    """

    def __init__(self):
        self.nodes: List[Any] = []

    def __bool__(self) -> bool:
        return bool(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

    def add_condition(
        self, field: str, value: Any = NOT_SET, operator: str = "=", connector: str = "AND"
    ) -> "ConditionBuilder":
        """
        Add a comparison.

        With no value and the default operator the field is treated as a raw
        SQL fragment. A None value turns ``=`` into IS NULL and ``!=``/``<>``
        into IS NOT NULL.

        Raises:
            InvalidOperator: Unknown operator
            EmptyInList: IN / NOT IN with an empty sequence
            InvalidArity: BETWEEN / NOT BETWEEN without exactly two values
        """
        connector = normalize_connector(connector)
        operator = normalize_operator(operator)

        if isinstance(value, SubqueryExpression):
            return self.add_subquery_condition(field, operator, value, connector)

        if value is NOT_SET and operator == "=":
            return self.add_raw(field, connector=connector)

        if operator in EXISTS_OPERATORS:
            raise QueryBuilderError(f"{operator} needs a subquery value")

        if value is None and operator in ("=", "!=", "<>"):
            operator = "IS NULL" if operator == "=" else "IS NOT NULL"

        if operator in NULL_OPERATORS:
            value = NOT_SET
        elif value is NOT_SET:
            raise QueryBuilderError(f"Operator {operator} on {field!r} needs a value")
        elif operator in LIST_OPERATORS:
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
                raise QueryBuilderError(f"{operator} on {field!r} needs a sequence of values")
            value = list(value)
            if not value:
                raise EmptyInList(field, operator)
        elif operator in RANGE_OPERATORS:
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                received = len(value) if isinstance(value, (list, tuple)) else 1
                raise InvalidArity(field, operator, received)
            value = list(value)

        self.nodes.append(Comparison(field, operator, value, connector))
        return self

    def add_raw(self, sql: str, params: Sequence[Any] = (), connector: str = "AND") -> "ConditionBuilder":
        """
        Add a literal SQL condition.

        Raises:
            ParameterCountMismatch: If ``?`` count differs from len(params)
        """
        params = list(params or ())
        check_placeholders(sql, len(params))
        self.nodes.append(RawFragment(sql, params, normalize_connector(connector)))
        return self

    def add_group(
        self, build: Callable[["ConditionBuilder"], Any], connector: str = "AND"
    ) -> "ConditionBuilder":
        """
        Add a parenthesised group built by a callback.

        Args:
            build: Receives a fresh ConditionBuilder to chain conditions on
            connector: How the group joins its preceding siblings
        """
        group = ConditionBuilder()
        build(group)
        self.nodes.append(Group(group, normalize_connector(connector)))
        return self

    def add_subquery_condition(
        self, field: Any, operator: str, subquery: SubqueryExpression, connector: str = "AND"
    ) -> "ConditionBuilder":
        """Compare a field against (or test existence of) a nested query."""
        operator = normalize_operator(operator)
        if operator in RANGE_OPERATORS or operator in NULL_OPERATORS:
            raise QueryBuilderError(f"{operator} cannot take a subquery")
        self.nodes.append(SubqueryComparison(field, operator, subquery, normalize_connector(connector)))
        return self

    def render(self, dialect, binder) -> str:
        """Render the tree, binding values in text order."""
        parts = []
        for node in self.nodes:
            sql = node.render(dialect, binder)
            if not sql:
                continue
            parts.append(f"{node.connector} {sql}" if parts else sql)
        return " ".join(parts)

    # Fluent aliases used inside group callbacks

    def where(self, field: str, value: Any = NOT_SET, operator: str = "=") -> "ConditionBuilder":
        return self.add_condition(field, value, operator, "AND")

    def or_where(self, field: str, value: Any = NOT_SET, operator: str = "=") -> "ConditionBuilder":
        return self.add_condition(field, value, operator, "OR")

    def where_raw(self, sql: str, params: Sequence[Any] = ()) -> "ConditionBuilder":
        return self.add_raw(sql, params, "AND")

    def or_where_raw(self, sql: str, params: Sequence[Any] = ()) -> "ConditionBuilder":
        return self.add_raw(sql, params, "OR")

    def where_group(self, build: Callable[["ConditionBuilder"], Any]) -> "ConditionBuilder":
        return self.add_group(build, "AND")

    def or_where_group(self, build: Callable[["ConditionBuilder"], Any]) -> "ConditionBuilder":
        return self.add_group(build, "OR")

    def __repr__(self) -> str:
        return f"ConditionBuilder(nodes={self.nodes!r})"
