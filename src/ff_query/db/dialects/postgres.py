"""
PostgreSQL dialect.

Handles PostgreSQL-specific SQL generation:
- Double-quote identifiers
- %s placeholders for psycopg2
- RETURNING * for generated ids
- ~ / !~ for regular expression matches
"""

from typing import Any, List, Optional, Tuple

from .base import Dialect
from ..results import LastError

QUERY_CANCELED = "57014"


class PostgresDialect(Dialect):
    """Double-quote dialect without native upsert support."""

    name = "postgres"
    paramstyle = "format"
    driver_modules = ("psycopg2",)
    insert_id_strategy = "returning"

    def now(self, offset=None, function: Optional[str] = None) -> str:
        return super().now(offset, function or "NOW()")

    def regexp_operator(self, negate: bool = False) -> str:
        return "!~" if negate else "~"

    def insert_ignore(self) -> Tuple[str, str]:
        return "INSERT", "ON CONFLICT DO NOTHING"

    def last_insert_id_expression(self) -> str:
        return "LASTVAL()"

    def returning_clause(self) -> str:
        return "RETURNING *"

    def lock_clause(self, option) -> str:
        if option.name == "FOR_UPDATE":
            return "FOR UPDATE"
        if option.name == "FOR_SHARE":
            return "FOR SHARE"
        return super().lock_clause(option)

    def table_exists_sql(self, table: str) -> Tuple[str, List[Any]]:
        return (
            "SELECT COUNT(*) FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = ?",
            [table],
        )

    def describe_error(self, error: BaseException) -> LastError:
        described = super().describe_error(error)
        pgcode = getattr(error, "pgcode", None)
        message = getattr(error, "pgerror", None) or described.message
        return LastError(
            sql_state=pgcode or described.sql_state,
            driver_code=pgcode,
            message=message.strip(),
        )

    def is_timeout_error(self, error: BaseException) -> bool:
        return getattr(error, "pgcode", None) == QUERY_CANCELED

    def apply_timeout(self, connection, seconds: Optional[float]) -> None:
        milliseconds = 0 if seconds is None else max(1, int(seconds * 1000))
        cursor = connection.cursor()
        try:
            cursor.execute(f"SET statement_timeout = {milliseconds}")
        finally:
            cursor.close()
