"""
SQLite dialect (ANSI default).

Handles SQLite-specific SQL generation:
- Double-quote identifiers
- LIMIT n OFFSET m
- datetime() modifiers for shifted timestamps
- INSERT OR IGNORE / INSERT OR REPLACE
"""

import time
from typing import Any, List, Optional, Tuple

from .base import Dialect
from ..results import LastError

# SQLite datetime() modifiers have no week unit
_SQLITE_UNITS = {
    "second": "seconds",
    "minute": "minutes",
    "hour": "hours",
    "day": "days",
    "month": "months",
    "year": "years",
}


class SQLiteDialect(Dialect):
    """ANSI dialect backed by the standard library sqlite3 driver."""

    name = "sqlite"
    paramstyle = "qmark"
    driver_modules = ("sqlite3",)

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        if limit is None and offset:
            # SQLite has no bare OFFSET
            return f"LIMIT -1 OFFSET {int(offset)}"
        return super().limit_clause(limit, offset)

    def now(self, offset=None, function: Optional[str] = None) -> str:
        if offset is None:
            return function or "CURRENT_TIMESTAMP"
        amount, unit = offset.amount, offset.unit
        if unit == "week":
            amount, unit = amount * 7, "day"
        base = function or "'now'"
        return f"datetime({base}, '{amount:+d} {_SQLITE_UNITS[unit]}')"

    def insert_ignore(self) -> Tuple[str, str]:
        return "INSERT OR IGNORE", ""

    def replace_verb(self) -> str:
        return "INSERT OR REPLACE"

    def last_insert_id_expression(self) -> str:
        return "last_insert_rowid()"

    def table_exists_sql(self, table: str) -> Tuple[str, List[Any]]:
        return "SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = ?", [table]

    def describe_error(self, error: BaseException) -> LastError:
        described = super().describe_error(error)
        driver_code = getattr(error, "sqlite_errorname", None) or getattr(
            error, "sqlite_errorcode", None
        )
        return LastError(
            sql_state=described.sql_state, driver_code=driver_code, message=described.message
        )

    def is_timeout_error(self, error: BaseException) -> bool:
        return type(error).__name__ == "OperationalError" and "interrupted" in str(error)

    def apply_timeout(self, connection, seconds: Optional[float]) -> None:
        """Interrupt long statements through sqlite3's progress handler."""
        if seconds is None:
            connection.set_progress_handler(None, 0)
            return

        deadline = time.monotonic() + seconds

        def _check_deadline():
            return 1 if time.monotonic() >= deadline else 0

        connection.set_progress_handler(_check_deadline, 1000)
