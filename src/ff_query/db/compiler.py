"""
Statement compiler.

Turns a QueryState into ``(sql, params)`` for one dialect. Every statement is
rendered front to back with a single ParameterBinder, so values are bound in
exactly the order their placeholders appear in the text.
"""

import re
from typing import Any, List, Mapping, NamedTuple, Optional, Sequence

from ..exceptions import QueryBuilderError
from .binder import ParameterBinder
from .conditions import NOT_SET, render_value
from .expressions import Expression, SubqueryExpression
from .state import JOIN_KINDS, QueryOption, QueryState

_TABLE_REF = re.compile(r"^\s*(\S+)(?:\s+(?:AS\s+)?(\S+))?\s*$", re.IGNORECASE)
_RANDOM_ORDER = {"RAND()", "RANDOM()", "NEWID()"}
_LOCK_OPTIONS = (QueryOption.FOR_UPDATE, QueryOption.FOR_SHARE)
_MODIFIER_OPTIONS = (
    QueryOption.SQL_NO_CACHE,
    QueryOption.HIGH_PRIORITY,
    QueryOption.LOW_PRIORITY,
    QueryOption.QUICK,
)


class CompiledQuery(NamedTuple):
    """Rendered statement text and its positional values."""

    sql: str
    params: List[Any]


def split_columns(columns) -> List[Any]:
    """
    Normalize a column spec to a list.

    Strings are split on top-level commas so ``"id, COUNT(x) AS n"`` yields
    two items; expressions are kept as-is.
    """
    if columns is None:
        return []
    if isinstance(columns, (str, Expression)):
        columns = [columns]
    items: List[Any] = []
    for column in columns:
        if not isinstance(column, str):
            items.append(column)
            continue
        depth, start = 0, 0
        for i, char in enumerate(column):
            if char == "(":
                depth += 1
            elif char == ")":
                depth -= 1
            elif char == "," and depth == 0:
                items.append(column[start:i].strip())
                start = i + 1
        tail = column[start:].strip()
        if tail:
            items.append(tail)
    return [item for item in items if item != ""]


class StatementCompiler:
    """
    Renders SELECT, COUNT, INSERT, UPDATE and DELETE statements.

    Args:
        dialect: Active Dialect
        prefix: Table prefix applied to unqualified table names
    """

    def __init__(self, dialect, prefix: str = ""):
        self.dialect = dialect
        self.prefix = prefix or ""

    # ==================== Fragments ====================

    def is_prefixed(self, name: str) -> bool:
        """Whether the prefix applies to this table name."""
        return bool(self.prefix) and "." not in name and not name.startswith(self.dialect.quote_open)

    def table_name(self, name: str) -> str:
        """Prefix and quote a bare table name; qualified names are only quoted."""
        if self.is_prefixed(name):
            name = f"{self.prefix}{name}"
        return self.dialect.quote_identifier(name)

    def table_ref(self, table: Any, binder: ParameterBinder, alias_prefixed: bool = True) -> str:
        """
        Render ``table``, ``table alias``, ``table AS alias`` or an aliased subquery.

        A prefixed table without an alias is aliased to its bare name so
        qualified columns such as ``users.id`` keep resolving.
        """
        if isinstance(table, SubqueryExpression):
            alias = getattr(table, "alias", None)
            if not alias:
                raise QueryBuilderError("A subquery used as a table needs an alias")
            return f"{table.render(self.dialect, binder)} AS {self.dialect.quote_identifier(alias)}"
        match = _TABLE_REF.match(table)
        if not match:
            raise QueryBuilderError(f"Invalid table reference: {table!r}")
        name, alias = match.groups()
        rendered = self.table_name(name)
        if not alias and alias_prefixed and self.is_prefixed(name):
            alias = name
        if alias:
            rendered += f" AS {self.dialect.quote_identifier(alias)}"
        return rendered

    def column(self, column: Any, binder: ParameterBinder) -> str:
        if isinstance(column, SubqueryExpression):
            rendered = column.render(self.dialect, binder)
            alias = getattr(column, "alias", None)
            if alias:
                rendered += f" AS {self.dialect.quote_identifier(alias)}"
            return rendered
        if isinstance(column, Expression):
            return column.render(self.dialect, binder)
        return self.dialect.quote_column(column)

    def _options(self, state: QueryState, allowed: Sequence[QueryOption]) -> List[QueryOption]:
        return [option for option in state.options if option in allowed]

    def _modifiers(self, state: QueryState, allowed: Sequence[QueryOption]) -> List[str]:
        return [
            self.dialect.statement_modifier(option) for option in self._options(state, allowed)
        ]

    def _joins(self, state: QueryState, binder: ParameterBinder) -> List[str]:
        parts = []
        for join in state.joins:
            clause = f"{JOIN_KINDS[join.kind]} {self.table_ref(join.target, binder)}"
            conditions = join.conditions.render(self.dialect, binder) if join.conditions else ""
            if join.on and conditions:
                first = join.conditions.nodes[0].connector
                clause += f" ON {join.on} {first} {conditions}"
            elif join.on or conditions:
                clause += f" ON {join.on or conditions}"
            parts.append(clause)
        return parts

    def _where(self, state: QueryState, binder: ParameterBinder) -> List[str]:
        where = state.where.render(self.dialect, binder)
        return [f"WHERE {where}"] if where else []

    def _order(self, state: QueryState, binder: ParameterBinder) -> List[str]:
        items = []
        for order in state.order:
            if order.custom_values is not None:
                placeholders = [
                    render_value(value, self.dialect, binder) for value in order.custom_values
                ]
                items.append(
                    self.dialect.custom_order(
                        self.dialect.quote_column(order.field), placeholders, order.direction
                    )
                )
            elif order.field.upper() in _RANDOM_ORDER:
                items.append(self.dialect.random_function())
            else:
                items.append(f"{self.dialect.quote_column(order.field)} {order.direction}")
        return [f"ORDER BY {', '.join(items)}"] if items else []

    # ==================== SELECT ====================

    def compile_select(self, state: QueryState, binder: Optional[ParameterBinder] = None) -> CompiledQuery:
        """Render a SELECT for the staged state."""
        binder = binder or ParameterBinder()
        sql = self._select_sql(state, binder, paged=True, ordered=True, locked=True)
        return CompiledQuery(sql, binder.drain())

    def compile_count(self, state: QueryState) -> CompiledQuery:
        """
        Render a COUNT over the same FROM/JOIN/WHERE state, ignoring LIMIT and ORDER.

        Grouped, DISTINCT or HAVING queries are counted through a derived table.
        """
        binder = ParameterBinder()
        if state.group_by or state.having or state.has_option(QueryOption.DISTINCT):
            inner = self._select_sql(state, binder, paged=False, ordered=False, locked=False)
            sql = f"SELECT COUNT(*) FROM ({inner}) AS {self.dialect.quote_identifier('count_source')}"
        else:
            parts = ["SELECT COUNT(*)"]
            parts.extend(self._from(state, binder, locked=False))
            parts.extend(self._joins(state, binder))
            parts.extend(self._where(state, binder))
            sql = " ".join(parts)
        return CompiledQuery(sql, binder.drain())

    def _from(self, state: QueryState, binder: ParameterBinder, locked: bool) -> List[str]:
        if not state.tables:
            raise QueryBuilderError("No table staged for SELECT")
        tables = [self.table_ref(table, binder) for table in state.tables]
        if locked:
            hints = [self.dialect.table_hint(o) for o in self._options(state, _LOCK_OPTIONS)]
            hints = [hint for hint in hints if hint]
            if hints:
                tables[0] = f"{tables[0]} {' '.join(hints)}"
        return [f"FROM {', '.join(tables)}"]

    def _select_sql(
        self, state: QueryState, binder: ParameterBinder, paged: bool, ordered: bool, locked: bool
    ) -> str:
        limit, offset = state.limit_pair() if paged else (None, None)

        head = ["SELECT"]
        head.extend(self._modifiers(state, _MODIFIER_OPTIONS))
        if state.has_option(QueryOption.DISTINCT):
            head.append("DISTINCT")
        top = self.dialect.top_clause(limit, offset)
        if top:
            head.append(top)

        columns = state.columns or ["*"]
        head.append(", ".join(self.column(column, binder) for column in columns))

        parts = [" ".join(head)]
        parts.extend(self._from(state, binder, locked))
        parts.extend(self._joins(state, binder))
        parts.extend(self._where(state, binder))
        if state.group_by:
            parts.append(
                "GROUP BY " + ", ".join(self.dialect.quote_column(f) for f in state.group_by)
            )
        having = state.having.render(self.dialect, binder)
        if having:
            parts.append(f"HAVING {having}")

        if ordered:
            order = self._order(state, binder)
            if not order and offset and self.dialect.requires_order_for_offset():
                order = ["ORDER BY (SELECT NULL)"]
            parts.extend(order)

        limit_clause = self.dialect.limit_clause(limit, offset)
        if limit_clause:
            parts.append(limit_clause)

        if locked:
            for option in self._options(state, _LOCK_OPTIONS):
                lock = self.dialect.lock_clause(option)
                if lock:
                    parts.append(lock)

        return " ".join(parts)

    # ==================== INSERT ====================

    def _insert_head(self, state: QueryState, table: str, columns: Sequence[str], replace: bool):
        if replace:
            verb, suffix = self.dialect.replace_verb(), ""
        elif state.has_option(QueryOption.IGNORE):
            verb, suffix = self.dialect.insert_ignore()
        else:
            verb, suffix = "INSERT", ""
        head = [verb]
        head.extend(self._modifiers(state, (QueryOption.LOW_PRIORITY, QueryOption.HIGH_PRIORITY)))
        head.append(f"INTO {self.table_name(table)}")
        head.append(f"({', '.join(self.dialect.quote_identifier(c) for c in columns)})")
        return " ".join(head), suffix

    def _insert_tail(self, state: QueryState, binder: ParameterBinder, suffix: str, returning: bool) -> List[str]:
        tail = []
        if state.on_duplicate is not None:
            assignments = []
            for column, value in state.on_duplicate.items():
                value_sql = None if value is NOT_SET else render_value(value, self.dialect, binder)
                assignments.append((self.dialect.quote_identifier(column), value_sql))
            id_column = (
                self.dialect.quote_identifier(state.on_duplicate_id) if state.on_duplicate_id else None
            )
            tail.append(self.dialect.upsert_clause(assignments, id_column))
        if suffix:
            tail.append(suffix)
        if returning and self.dialect.insert_id_strategy == "returning":
            tail.append(self.dialect.returning_clause())
        return tail

    def _output(self, returning: bool) -> List[str]:
        if returning and self.dialect.insert_id_strategy == "output":
            return [self.dialect.output_clause()]
        return []

    def compile_insert(
        self,
        state: QueryState,
        table: str,
        row: Mapping[str, Any],
        replace: bool = False,
        returning: bool = True,
    ) -> CompiledQuery:
        """Render a single-row INSERT (or REPLACE / upsert)."""
        if not row:
            raise QueryBuilderError(f"Cannot insert an empty row into {table!r}")
        binder = ParameterBinder()
        head, suffix = self._insert_head(state, table, list(row), replace)
        parts = [head]
        parts.extend(self._output(returning))
        values = [render_value(value, self.dialect, binder) for value in row.values()]
        parts.append(f"VALUES ({', '.join(values)})")
        parts.extend(self._insert_tail(state, binder, suffix, returning))
        return CompiledQuery(" ".join(parts), binder.drain())

    def compile_insert_multi(
        self,
        state: QueryState,
        table: str,
        columns: Sequence[str],
        rows: Sequence[Mapping[str, Any]],
        returning: bool = True,
    ) -> CompiledQuery:
        """Render one INSERT with a VALUES tuple per row, in the given column order."""
        binder = ParameterBinder()
        head, suffix = self._insert_head(state, table, columns, replace=False)
        parts = [head]
        parts.extend(self._output(returning))
        tuples = []
        for row in rows:
            values = [render_value(row[column], self.dialect, binder) for column in columns]
            tuples.append(f"({', '.join(values)})")
        parts.append(f"VALUES {', '.join(tuples)}")
        parts.extend(self._insert_tail(state, binder, suffix, returning))
        return CompiledQuery(" ".join(parts), binder.drain())

    # ==================== UPDATE / DELETE ====================

    def _mutation_cap(self, limit: Optional[int]):
        if limit is None:
            return "", ""
        return self.dialect.mutation_limit(limit)

    def compile_update(
        self, state: QueryState, table: str, values: Mapping[str, Any], limit: Optional[int] = None
    ) -> CompiledQuery:
        """Render an UPDATE with the staged joins, conditions, order and row cap."""
        if not values:
            raise QueryBuilderError(f"Cannot update {table!r} without any column values")
        binder = ParameterBinder()
        prefix, suffix = self._mutation_cap(limit)

        head = ["UPDATE"]
        if prefix:
            head.append(prefix)
        head.extend(self._modifiers(state, (QueryOption.LOW_PRIORITY, QueryOption.IGNORE)))
        head.append(self.table_ref(table, binder, self.dialect.aliases_mutation_target))
        parts = [" ".join(head)]
        parts.extend(self._joins(state, binder))

        assignments = [
            f"{self.dialect.quote_identifier(column)} = {render_value(value, self.dialect, binder)}"
            for column, value in values.items()
        ]
        parts.append(f"SET {', '.join(assignments)}")
        parts.extend(self._where(state, binder))
        parts.extend(self._order(state, binder))
        if suffix:
            parts.append(suffix)
        return CompiledQuery(" ".join(parts), binder.drain())

    def compile_delete(self, state: QueryState, table: str, limit: Optional[int] = None) -> CompiledQuery:
        """Render a DELETE; with joins the target table is named before FROM."""
        binder = ParameterBinder()
        prefix, suffix = self._mutation_cap(limit)

        head = ["DELETE"]
        if prefix:
            head.append(prefix)
        head.extend(self._modifiers(state, (QueryOption.LOW_PRIORITY, QueryOption.QUICK, QueryOption.IGNORE)))
        aliased = self.dialect.aliases_mutation_target
        if state.joins:
            match = _TABLE_REF.match(table)
            name, alias = match.groups() if match else (table, None)
            if not alias and aliased and self.is_prefixed(name):
                alias = name
            head.append(self.dialect.quote_identifier(alias) if alias else self.table_name(name))
        head.append(f"FROM {self.table_ref(table, binder, aliased)}")
        parts = [" ".join(head)]
        parts.extend(self._joins(state, binder))
        parts.extend(self._where(state, binder))
        parts.extend(self._order(state, binder))
        if suffix:
            parts.append(suffix)
        return CompiledQuery(" ".join(parts), binder.drain())

    def compile_raw(self, sql: str, params: Optional[Sequence[Any]] = None) -> CompiledQuery:
        return CompiledQuery(sql, list(params or ()))

