"""
MySQL dialect.

Handles MySQL-specific SQL generation:
- Backtick quoting for identifiers
- %s placeholders for mysql-connector
- LIMIT offset, count
- ON DUPLICATE KEY UPDATE upserts, with LAST_INSERT_ID(id) so the insert id
  also points at an updated row
"""

from typing import Any, List, Optional, Sequence, Tuple

from .base import Dialect
from ..results import LastError

# ER_QUERY_TIMEOUT, ER_QUERY_INTERRUPTED
_TIMEOUT_ERRNOS = {3024, 1317}

_MODIFIERS = {"SQL_NO_CACHE", "HIGH_PRIORITY", "LOW_PRIORITY", "QUICK", "IGNORE"}


class MySQLDialect(Dialect):
    """Backtick-quoting dialect with native upsert."""

    name = "mysql"
    paramstyle = "format"
    escape_percent = False
    backslash_escapes = True
    driver_modules = ("mysql.connector", "mysql")
    quote_open = "`"
    quote_close = "`"

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        if limit is None and not offset:
            return ""
        if limit is None:
            # Largest BIGINT UNSIGNED, the documented "no limit" value
            return f"LIMIT {int(offset)}, 18446744073709551615"
        if offset:
            return f"LIMIT {int(offset)}, {int(limit)}"
        return f"LIMIT {int(limit)}"

    def mutation_limit(self, limit: int) -> Tuple[str, str]:
        return "", f"LIMIT {int(limit)}"

    def now(self, offset=None, function: Optional[str] = None) -> str:
        base = function or "NOW()"
        if offset is None:
            return base
        sign = "-" if offset.amount < 0 else "+"
        return f"{base} {sign} INTERVAL {abs(offset.amount)} {offset.unit.upper()}"

    def random_function(self) -> str:
        return "RAND()"

    def custom_order(self, field_sql: str, placeholders: Sequence[str], direction: str) -> str:
        return f"FIELD({field_sql}, {', '.join(placeholders)}) {direction}"

    def upsert_clause(self, assignments: List[Tuple[str, Optional[str]]], id_column) -> str:
        parts = []
        if id_column:
            parts.append(f"{id_column} = LAST_INSERT_ID({id_column})")
        for column, value_sql in assignments:
            if value_sql is None:
                value_sql = f"VALUES({column})"
            parts.append(f"{column} = {value_sql}")
        return "ON DUPLICATE KEY UPDATE " + ", ".join(parts)

    def insert_ignore(self) -> Tuple[str, str]:
        return "INSERT IGNORE", ""

    def replace_verb(self) -> str:
        return "REPLACE"

    def last_insert_id_expression(self) -> str:
        return "LAST_INSERT_ID()"

    def lock_clause(self, option) -> str:
        if option.name == "FOR_UPDATE":
            return "FOR UPDATE"
        if option.name == "FOR_SHARE":
            return "LOCK IN SHARE MODE"
        return super().lock_clause(option)

    def statement_modifier(self, option) -> str:
        if option.name in _MODIFIERS:
            return option.value
        return super().statement_modifier(option)

    def table_exists_sql(self, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = DATABASE() AND table_name = ?",
            [table],
        )

    def describe_error(self, error: BaseException) -> LastError:
        described = super().describe_error(error)
        message = getattr(error, "msg", None) or described.message
        return LastError(
            sql_state=described.sql_state, driver_code=described.driver_code, message=message
        )

    def is_timeout_error(self, error: BaseException) -> bool:
        return getattr(error, "errno", None) in _TIMEOUT_ERRNOS

    def apply_timeout(self, connection, seconds: Optional[float]) -> None:
        """MAX_EXECUTION_TIME only applies to read-only SELECT statements."""
        milliseconds = 0 if seconds is None else max(1, int(seconds * 1000))
        cursor = connection.cursor()
        try:
            cursor.execute(f"SET SESSION MAX_EXECUTION_TIME = {milliseconds}")
        finally:
            cursor.close()
