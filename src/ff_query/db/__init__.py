"""
Query building and execution modules.
"""

from .builder import QueryBuilder, Subquery
from .compiler import CompiledQuery, StatementCompiler
from .conditions import NOT_SET, ConditionBuilder
from .connections import (
    SQL,
    ExistingConnection,
    MySQL,
    MySQLPool,
    Postgres,
    PostgresPool,
    SQLite,
    SQLServer,
    SQLServerPool,
)
from .dialects import Dialect, detect_dialect, get_dialect
from .engine import QueryEngine
from .expressions import decrement, increment, now, raw_function
from .results import FetchMode, LastError, PaginationResult, RowStream, TraceEntry
from .state import QueryOption
from .transactions import TransactionManager, TransactionState

__all__ = [
    "QueryEngine",
    "QueryBuilder",
    "Subquery",
    "CompiledQuery",
    "StatementCompiler",
    "ConditionBuilder",
    "NOT_SET",
    "QueryOption",
    # Connections
    "SQL",
    "ExistingConnection",
    "SQLite",
    "MySQL",
    "MySQLPool",
    "Postgres",
    "PostgresPool",
    "SQLServer",
    "SQLServerPool",
    # Dialects
    "Dialect",
    "get_dialect",
    "detect_dialect",
    # Expressions
    "now",
    "increment",
    "decrement",
    "raw_function",
    # Results
    "FetchMode",
    "LastError",
    "PaginationResult",
    "RowStream",
    "TraceEntry",
    # Transactions
    "TransactionManager",
    "TransactionState",
]
