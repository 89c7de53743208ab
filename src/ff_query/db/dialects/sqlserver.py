"""
SQL Server dialect.

Handles SQL Server-specific SQL generation:
- Double-quote identifiers (QUOTED_IDENTIFIER is on for ODBC connections)
- SELECT TOP (n), or OFFSET .. FETCH when an offset is given
- OUTPUT INSERTED.* for generated ids
- Table hints for row locking
"""

import math
from typing import Any, List, Optional, Tuple

from ...exceptions import UnsupportedOperation
from .base import Dialect
from ..results import LastError

_TIMEOUT_STATES = {"HYT00", "HYT01"}


class SQLServerDialect(Dialect):
    """Double-quote dialect with TOP-style limiting."""

    name = "sqlserver"
    paramstyle = "qmark"
    driver_modules = ("pyodbc",)
    insert_id_strategy = "output"
    aliases_mutation_target = False

    def limit_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        if not offset:
            # Plain row caps are written as TOP
            return ""
        clause = f"OFFSET {int(offset)} ROWS"
        if limit is not None:
            clause += f" FETCH NEXT {int(limit)} ROWS ONLY"
        return clause

    def top_clause(self, limit: Optional[int], offset: Optional[int]) -> str:
        if limit is not None and not offset:
            return f"TOP ({int(limit)})"
        return ""

    def requires_order_for_offset(self) -> bool:
        return True

    def mutation_limit(self, limit: int) -> Tuple[str, str]:
        return f"TOP ({int(limit)})", ""

    def now(self, offset=None, function: Optional[str] = None) -> str:
        base = function or "GETDATE()"
        if offset is None:
            return base
        return f"DATEADD({offset.unit}, {offset.amount}, {base})"

    def random_function(self) -> str:
        return "NEWID()"

    def regexp_operator(self, negate: bool = False) -> str:
        raise UnsupportedOperation(self.name, "REGEXP")

    def last_insert_id_expression(self) -> str:
        return "SCOPE_IDENTITY()"

    def output_clause(self) -> str:
        return "OUTPUT INSERTED.*"

    def lock_clause(self, option) -> str:
        if option.name in ("FOR_UPDATE", "FOR_SHARE"):
            # Expressed as a table hint instead
            return ""
        return super().lock_clause(option)

    def table_hint(self, option) -> str:
        if option.name == "FOR_UPDATE":
            return "WITH (UPDLOCK, ROWLOCK)"
        if option.name == "FOR_SHARE":
            return "WITH (HOLDLOCK, ROWLOCK)"
        return ""

    def table_exists_sql(self, table: str) -> Tuple[str, List[Any]]:
        return "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_NAME = ?", [table]

    def describe_error(self, error: BaseException) -> LastError:
        # pyodbc errors carry (sqlstate, message)
        args = getattr(error, "args", ())
        if len(args) >= 2 and isinstance(args[0], str):
            return LastError(sql_state=args[0], driver_code=args[0], message=str(args[1]))
        return super().describe_error(error)

    def is_timeout_error(self, error: BaseException) -> bool:
        args = getattr(error, "args", ())
        return bool(args) and args[0] in _TIMEOUT_STATES

    def apply_timeout(self, connection, seconds: Optional[float]) -> None:
        # pyodbc timeouts are whole seconds, 0 disables
        connection.timeout = 0 if seconds is None else max(1, math.ceil(seconds))
