"""
Dialect base class.

A dialect owns everything that differs between backends: identifier quoting,
LIMIT syntax, upsert syntax, insert-id retrieval, the driver's parameter style
and how driver errors are described. The base class implements ANSI behaviour;
backends override what they spell differently.
"""

import re
from abc import ABC
from typing import Any, List, Optional, Sequence, Tuple

from ...exceptions import UnsupportedOperation
from ..binder import tokenize_placeholders
from ..results import LastError

_IDENT = r"[A-Za-z_][A-Za-z0-9_$]*"
_COLUMN_REF = re.compile(rf"^({_IDENT}(?:\.{_IDENT})*(?:\.\*)?|\*)$")
_ALIASED_REF = re.compile(
    rf"^({_IDENT}(?:\.{_IDENT})*)\s+(?:AS\s+)?({_IDENT})$", re.IGNORECASE
)

# DB-API exception class -> SQLSTATE class, for drivers that do not report one
_SQLSTATE_BY_CLASS = {
    "IntegrityError": "23000",
    "DataError": "22000",
    "ProgrammingError": "42000",
    "NotSupportedError": "0A000",
    "OperationalError": "HY000",
    "InterfaceError": "08000",
    "InternalError": "XX000",
}


class Dialect(ABC):
    """
    Base dialect with ANSI SQL behaviour.

    Subclasses set ``name``, ``paramstyle`` and ``driver_modules`` and
    override the hooks their backend spells differently.
    """

    name = "ansi"
    # 'qmark' drivers take ? as-is, 'format' drivers take %s
    paramstyle = "qmark"
    # psycopg2 reads %% as a literal percent; mysql-connector only rewrites %s
    escape_percent = True
    driver_modules: Tuple[str, ...] = ()
    quote_open = '"'
    quote_close = '"'
    # How insert() learns the generated id: 'cursor', 'returning' or 'output'
    insert_id_strategy = "cursor"
    # Whether UPDATE/DELETE targets accept "table AS alias"
    aliases_mutation_target = True
    # Whether a backslash escapes the next character in string literals
    backslash_escapes = False

    # ==================== Identifiers ====================

    def quote_identifier(self, identifier: str) -> str:
        """
        Quote an identifier, handling ``schema.table`` and ``alias.*``.

        Args:
            identifier: Column or table name

        Returns:
            Quoted identifier
        """
        parts = []
        for part in identifier.split("."):
            if part == "*":
                parts.append(part)
            elif part.startswith(self.quote_open) and part.endswith(self.quote_close):
                parts.append(part)
            else:
                escaped = part.replace(self.quote_close, self.quote_close * 2)
                parts.append(f"{self.quote_open}{escaped}{self.quote_close}")
        return ".".join(parts)

    def quote_column(self, expression: str) -> str:
        """
        Quote a column reference when it is a plain identifier.

        ``name``, ``u.name``, ``u.*`` and ``name AS alias`` are quoted;
        anything else (function calls, arithmetic) is returned verbatim.
        """
        expression = expression.strip()
        if _COLUMN_REF.match(expression):
            return self.quote_identifier(expression)
        aliased = _ALIASED_REF.match(expression)
        if aliased:
            column, alias = aliased.groups()
            return f"{self.quote_identifier(column)} AS {self.quote_identifier(alias)}"
        return expression

    # ==================== Limiting ====================

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        """Clause appended after ORDER BY; empty when there is nothing to limit."""
        if limit is None and not offset:
            return ""
        if limit is None:
            return f"OFFSET {int(offset)}"
        if offset:
            return f"LIMIT {int(limit)} OFFSET {int(offset)}"
        return f"LIMIT {int(limit)}"

    def top_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        """Prefix written right after SELECT (TOP-style dialects only)."""
        return ""

    def requires_order_for_offset(self) -> bool:
        """Whether OFFSET needs an ORDER BY to be legal."""
        return False

    def mutation_limit(self, limit: int) -> Tuple[str, str]:
        """
        Row cap for UPDATE/DELETE as ``(prefix, suffix)``.

        Raises:
            UnsupportedOperation: If the dialect cannot cap mutations
        """
        raise UnsupportedOperation(self.name, "row cap on UPDATE/DELETE")

    # ==================== Expressions ====================

    def now(self, offset=None, function: Optional[str] = None) -> str:
        """
        Current timestamp, optionally shifted.

        Args:
            offset: Optional Interval
            function: Base expression replacing the dialect's NOW()
        """
        base = function or "CURRENT_TIMESTAMP"
        if offset is None:
            return base
        sign = "-" if offset.amount < 0 else "+"
        return f"{base} {sign} INTERVAL '{abs(offset.amount)} {offset.unit}'"

    def random_function(self) -> str:
        return "RANDOM()"

    def regexp_operator(self, negate: bool = False) -> str:
        return "NOT REGEXP" if negate else "REGEXP"

    def custom_order(self, field_sql: str, placeholders: Sequence[str], direction: str) -> str:
        """
        ORDER BY expression placing rows in the order of an explicit value list.

        Values not in the list sort after all listed values.
        """
        whens = " ".join(
            f"WHEN {placeholder} THEN {position}"
            for position, placeholder in enumerate(placeholders)
        )
        return f"CASE {field_sql} {whens} ELSE {len(placeholders)} END {direction}"

    # ==================== Insert variants ====================

    def upsert_clause(self, assignments: List[Tuple[str, Optional[str]]], id_column) -> str:
        """
        Clause appended to INSERT for insert-or-update.

        Args:
            assignments: ``(quoted column, value sql)`` pairs; a value of None
                means "take the value being inserted"
            id_column: Optional quoted id column

        Raises:
            UnsupportedOperation: If the dialect has no native upsert
        """
        raise UnsupportedOperation(self.name, "upsert")

    def insert_ignore(self) -> Tuple[str, str]:
        """``(verb, suffix)`` for an INSERT that skips conflicting rows."""
        raise UnsupportedOperation(self.name, "INSERT IGNORE")

    def replace_verb(self) -> str:
        """Verb for REPLACE-style inserts."""
        raise UnsupportedOperation(self.name, "REPLACE")

    def last_insert_id_expression(self) -> str:
        raise UnsupportedOperation(self.name, "last insert id")

    def returning_clause(self) -> str:
        """Suffix making INSERT return the new rows ('returning' strategy)."""
        return ""

    def output_clause(self) -> str:
        """Clause placed before VALUES making INSERT return new rows ('output' strategy)."""
        return ""

    # ==================== Options ====================

    def lock_clause(self, option) -> str:
        """Suffix for a row-locking query option."""
        raise UnsupportedOperation(self.name, option.value)

    def table_hint(self, option) -> str:
        """Hint written after the FROM table (SQL Server)."""
        return ""

    def statement_modifier(self, option) -> str:
        """Keyword written after the statement verb (MySQL priority/cache modifiers)."""
        raise UnsupportedOperation(self.name, option.value)

    # ==================== Catalog ====================

    def table_exists_sql(self, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = ?",
            [table],
        )

    # ==================== Driver ====================

    def convert_placeholders(self, sql: str) -> str:
        """
        Convert ``?`` placeholders to the driver's parameter style.

        For 'format' drivers that unescape ``%%``, literal percent signs are
        doubled so they survive the driver's interpolation.
        """
        if self.paramstyle == "qmark":
            return sql
        parts = []
        for kind, text in tokenize_placeholders(sql, self.backslash_escapes):
            if kind == "placeholder":
                parts.append("%s")
            else:
                parts.append(text.replace("%", "%%") if self.escape_percent else text)
        return "".join(parts)

    def is_driver_error(self, error: BaseException) -> bool:
        """Whether an exception was raised by this dialect's driver."""
        module = type(error).__module__ or ""
        return any(module == m or module.startswith(m + ".") for m in self.driver_modules)

    def describe_error(self, error: BaseException) -> LastError:
        """Turn a driver exception into a structured LastError."""
        sql_state = getattr(error, "sqlstate", None) or _SQLSTATE_BY_CLASS.get(
            type(error).__name__, "HY000"
        )
        driver_code = getattr(error, "errno", None)
        message = str(error).strip()
        return LastError(sql_state=sql_state, driver_code=driver_code, message=message)

    def is_timeout_error(self, error: BaseException) -> bool:
        return False

    def apply_timeout(self, connection, seconds: Optional[float]) -> None:
        """
        Apply (or clear, when seconds is None) a statement timeout on a raw connection.

        The base implementation does nothing; a deadline is then only checked
        between statements.
        """
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
