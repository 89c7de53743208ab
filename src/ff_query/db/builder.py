"""
Fluent query builder.

Every chained call mutates the pending QueryState and returns the builder.
Rendering is left to StatementCompiler; execution lives on QueryEngine.
"""

import logging
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, Union

from ..config import EngineSettings
from ..exceptions import InvalidOrderDirection, QueryBuilderError
from .compiler import CompiledQuery, StatementCompiler, split_columns
from .conditions import NOT_SET, ConditionBuilder
from .expressions import SubqueryExpression, decrement, increment, now, raw_function
from .results import ReturnType
from .state import JOIN_KINDS, JoinSpec, OrderSpec, QueryOption, QueryState

ConditionCallback = Callable[[ConditionBuilder], Any]


class QueryBuilder:
    """
    Chainable query state for one dialect.

    Args:
        dialect: Active Dialect
        prefix: Table prefix applied to unqualified table names at render time
        settings: Engine defaults (page size, fetch mode, unscoped policy)
        logger: Optional logger instance
    """

    # Literal SQL helpers
    now = staticmethod(now)
    increment = staticmethod(increment)
    decrement = staticmethod(decrement)
    raw_function = staticmethod(raw_function)

    def __init__(
        self,
        dialect,
        prefix: str = "",
        settings: Optional[EngineSettings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.dialect = dialect
        self.prefix = prefix or ""
        self.settings = settings or EngineSettings()
        self.logger = logger or logging.getLogger(__name__)
        self._state = QueryState()

    # ==================== State ====================

    @property
    def state(self) -> QueryState:
        """The pending state of the current logical query."""
        return self._state

    def reset(self) -> "QueryBuilder":
        """Discard everything staged since the last terminal call."""
        self._state = QueryState()
        return self

    @property
    def compiler(self) -> StatementCompiler:
        return StatementCompiler(self.dialect, self.prefix)

    def use_prefix(self, prefix: str) -> "QueryBuilder":
        """
        Set the table prefix.

        The prefix replaces any previous one and is applied when SQL is
        rendered, so setting it repeatedly never stacks.
        """
        self.prefix = prefix or ""
        return self

    # ==================== Tables & columns ====================

    def table(self, *tables: Union[str, SubqueryExpression]) -> "QueryBuilder":
        """Add FROM tables; ``"users u"`` and ``"users AS u"`` set an alias."""
        for table in tables:
            if isinstance(table, str):
                self._state.tables.extend(t.strip() for t in table.split(",") if t.strip())
            else:
                self._state.tables.append(table)
        return self

    def columns(self, *columns: Any) -> "QueryBuilder":
        """Add selected columns; strings may list several separated by commas."""
        for column in columns:
            self._state.columns.extend(split_columns(column))
        return self

    # ==================== WHERE ====================

    def where(self, field: Any, value: Any = NOT_SET, operator: str = "=") -> "QueryBuilder":
        self._state.where.add_condition(field, value, operator, "AND")
        return self

    def or_where(self, field: Any, value: Any = NOT_SET, operator: str = "=") -> "QueryBuilder":
        self._state.where.add_condition(field, value, operator, "OR")
        return self

    def where_raw(self, sql: str, params: Optional[Sequence[Any]] = None) -> "QueryBuilder":
        self._state.where.add_raw(sql, params or (), "AND")
        return self

    def or_where_raw(self, sql: str, params: Optional[Sequence[Any]] = None) -> "QueryBuilder":
        self._state.where.add_raw(sql, params or (), "OR")
        return self

    def where_group(self, build: ConditionCallback) -> "QueryBuilder":
        """
        AND a parenthesised group.

        Example:
            engine.where("a", 1).where_group(
                lambda g: g.where("b", 2).or_where("c", 3)
            )
        """
        self._state.where.add_group(build, "AND")
        return self

    def or_where_group(self, build: ConditionCallback) -> "QueryBuilder":
        self._state.where.add_group(build, "OR")
        return self

    def where_exists(self, subquery: SubqueryExpression) -> "QueryBuilder":
        self._state.where.add_subquery_condition(None, "EXISTS", subquery, "AND")
        return self

    def where_not_exists(self, subquery: SubqueryExpression) -> "QueryBuilder":
        self._state.where.add_subquery_condition(None, "NOT EXISTS", subquery, "AND")
        return self

    # ==================== HAVING ====================

    def having(self, field: Any, value: Any = NOT_SET, operator: str = "=") -> "QueryBuilder":
        self._state.having.add_condition(field, value, operator, "AND")
        return self

    def or_having(self, field: Any, value: Any = NOT_SET, operator: str = "=") -> "QueryBuilder":
        self._state.having.add_condition(field, value, operator, "OR")
        return self

    def having_group(self, build: ConditionCallback) -> "QueryBuilder":
        self._state.having.add_group(build, "AND")
        return self

    # ==================== JOIN ====================

    def join(self, table: Any, on: Optional[str] = None, kind: str = "INNER") -> "QueryBuilder":
        """
        Add a JOIN.

        Args:
            table: Table name (optionally aliased) or an aliased subquery
            on: ON condition text, e.g. ``"u.id = p.user_id"``
            kind: INNER, LEFT, RIGHT, OUTER, LEFT OUTER, RIGHT OUTER, NATURAL or CROSS
        """
        key = " ".join(str(kind).upper().split())
        if key not in JOIN_KINDS:
            raise QueryBuilderError(
                f"Unknown join kind: {kind}. Supported: {', '.join(JOIN_KINDS)}"
            )
        if on is None and key not in ("NATURAL", "CROSS"):
            raise QueryBuilderError(f"{JOIN_KINDS[key]} on {table!r} needs an ON condition")
        self._state.joins.append(JoinSpec(target=table, on=on, kind=key))
        return self

    def inner_join(self, table: Any, on: str) -> "QueryBuilder":
        return self.join(table, on, "INNER")

    def left_join(self, table: Any, on: str) -> "QueryBuilder":
        return self.join(table, on, "LEFT")

    def right_join(self, table: Any, on: str) -> "QueryBuilder":
        return self.join(table, on, "RIGHT")

    def outer_join(self, table: Any, on: str) -> "QueryBuilder":
        return self.join(table, on, "OUTER")

    def natural_join(self, table: Any) -> "QueryBuilder":
        return self.join(table, None, "NATURAL")

    def cross_join(self, table: Any) -> "QueryBuilder":
        return self.join(table, None, "CROSS")

    def _find_join(self, table: Any) -> JoinSpec:
        for join in reversed(self._state.joins):
            if join.target is table or join.target == table:
                return join
        raise QueryBuilderError(f"join_where on {table!r} needs a matching join() first")

    def join_where(
        self, table: Any, field: str, value: Any = NOT_SET, operator: str = "="
    ) -> "QueryBuilder":
        """AND an extra condition onto the ON clause of an already staged join."""
        self._find_join(table).conditions.add_condition(field, value, operator, "AND")
        return self

    def join_or_where(
        self, table: Any, field: str, value: Any = NOT_SET, operator: str = "="
    ) -> "QueryBuilder":
        self._find_join(table).conditions.add_condition(field, value, operator, "OR")
        return self

    # ==================== ORDER / GROUP / LIMIT ====================

    def order_by(
        self, field: str, direction: str = "ASC", custom_fields: Optional[Iterable[Any]] = None
    ) -> "QueryBuilder":
        """
        Add an ORDER BY item.

        ``custom_fields`` orders rows by the position of ``field`` in that
        value list; ``order_by("RAND()")`` orders randomly.

        Raises:
            InvalidOrderDirection: If direction is not ASC or DESC
        """
        normalized = str(direction).strip().upper()
        if normalized not in ("ASC", "DESC"):
            raise InvalidOrderDirection(direction)
        custom = list(custom_fields) if custom_fields is not None else None
        if custom is not None and not custom:
            raise QueryBuilderError(f"Custom ordering on {field!r} needs at least one value")
        self._state.order.append(OrderSpec(field=field, direction=normalized, custom_values=custom))
        return self

    def group_by(self, *fields: str) -> "QueryBuilder":
        for group in fields:
            self._state.group_by.extend(split_columns(group))
        return self

    def limit(self, count: Optional[int], offset: Optional[int] = None) -> "QueryBuilder":
        self._state.limit = None if count is None else int(count)
        self._state.offset = None if offset is None else int(offset)
        return self

    # ==================== Options ====================

    def set_option(self, *options: Union[str, QueryOption]) -> "QueryBuilder":
        """
        Add statement options (DISTINCT, FOR UPDATE, IGNORE, SQL_NO_CACHE, ...).

        Raises:
            InvalidQueryOption: If an option is unknown
        """
        for option in options:
            parsed = QueryOption.parse(option)
            if parsed not in self._state.options:
                self._state.options.append(parsed)
        return self

    def on_duplicate(
        self, columns: Union[Sequence[str], Mapping[str, Any]], id_column: Optional[str] = None
    ) -> "QueryBuilder":
        """
        Turn the next insert into an upsert.

        Args:
            columns: Columns to overwrite with the inserted values, or a
                mapping of column to explicit update value
            id_column: Column whose value the insert id should report for
                an updated row
        """
        if isinstance(columns, Mapping):
            self._state.on_duplicate = dict(columns)
        else:
            self._state.on_duplicate = {column: NOT_SET for column in split_columns(columns)}
        self._state.on_duplicate_id = id_column
        return self

    def with_total_count(self) -> "QueryBuilder":
        """Also count all matching rows (ignoring LIMIT) on the next select."""
        self._state.with_total_count = True
        return self

    def map_by(self, column: str) -> "QueryBuilder":
        """Key the next select's rows by this column's value."""
        self._state.map_by = column
        return self

    def as_json(self) -> "QueryBuilder":
        self._state.return_type = ReturnType.JSON
        return self

    def as_generator(self, enabled: bool = True) -> "QueryBuilder":
        """Make the next select return a RowStream instead of a list."""
        self._state.generator = enabled
        return self

    def allow_unscoped(self) -> "QueryBuilder":
        """Permit the next update/delete to run without WHERE conditions."""
        self._state.allow_unscoped = True
        return self

    # ==================== Subqueries ====================

    def subquery(self, alias: Optional[str] = None) -> "Subquery":
        """
        Create a connection-less builder for nesting in this one.

        It shares this builder's dialect and prefix but not its state.
        """
        return Subquery(
            self.dialect, prefix=self.prefix, settings=self.settings, logger=self.logger, alias=alias
        )

    # ==================== Rendering ====================

    def _stage_select(self, table, limit_spec, columns) -> None:
        if table is not None:
            self.table(table)
        self._state.set_limit_spec(limit_spec)
        if columns is not None and columns != "*":
            self.columns(columns)

    def to_sql(self) -> CompiledQuery:
        """Render the pending SELECT without executing or resetting it."""
        return self.compiler.compile_select(self._state)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(dialect={self.dialect.name!r}, prefix={self.prefix!r})"


class Subquery(QueryBuilder, SubqueryExpression):
    """
    Nested SELECT usable as a condition value, a column or a join/FROM target.

    Example:
        active = engine.subquery().where("active", 1).get("users", columns="id")
        engine.where("user_id", active, "IN").select("orders")
    """

    def __init__(self, dialect, prefix: str = "", settings=None, logger=None, alias: Optional[str] = None):
        super().__init__(dialect, prefix=prefix, settings=settings, logger=logger)
        self.alias = alias

    def get(self, table: Any, limit: Any = None, columns: Any = "*") -> "Subquery":
        """Stage the nested SELECT's table, limit and columns."""
        self._stage_select(table, limit, columns)
        return self

    def compile(self, dialect) -> CompiledQuery:
        return StatementCompiler(dialect, self.prefix).compile_select(self._state)
