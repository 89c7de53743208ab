"""
ff-query: Fluent SQL query builder and database access for Fenixflow applications.

Features:
- Chainable SELECT / INSERT / UPDATE / DELETE building with nested conditions
- Dialects for SQLite, MySQL, PostgreSQL and SQL Server
- Positional parameter binding in text order, including subqueries
- Pagination with total counts, row streaming and transactions
"""

# Version is read from package metadata (pyproject.toml is the single source of truth)
try:
    from importlib.metadata import version

    __version__ = version("ff-query")
except Exception:
    __version__ = "1.0.0"

from .config import ConnectionProfile, EngineSettings

# Database exports
from .db import (
    NOT_SET,
    FetchMode,
    LastError,
    PaginationResult,
    QueryBuilder,
    QueryEngine,
    QueryOption,
    RowStream,
    Subquery,
    decrement,
    increment,
    now,
    raw_function,
)

# Exceptions
from .exceptions import (
    FFQueryError,
    ConfigurationError,
    ConnectionFailed,
    QueryBuilderError,
    InvalidOperator,
    EmptyInList,
    InvalidArity,
    ColumnMismatch,
    InvalidPage,
    InvalidOrderDirection,
    InvalidQueryOption,
    UnscopedMutation,
    ParameterCountMismatch,
    UnsupportedOperation,
    TransactionError,
    NestedTransaction,
    NoActiveTransaction,
    StreamError,
    StreamClosed,
    StreamInProgress,
)

__all__ = [
    "__version__",
    # Configuration
    "ConnectionProfile",
    "EngineSettings",
    # Engine
    "QueryEngine",
    "QueryBuilder",
    "Subquery",
    "QueryOption",
    "NOT_SET",
    "FetchMode",
    "LastError",
    "PaginationResult",
    "RowStream",
    # Expressions
    "now",
    "increment",
    "decrement",
    "raw_function",
    # Exceptions
    "FFQueryError",
    "ConfigurationError",
    "ConnectionFailed",
    "QueryBuilderError",
    "InvalidOperator",
    "EmptyInList",
    "InvalidArity",
    "ColumnMismatch",
    "InvalidPage",
    "InvalidOrderDirection",
    "InvalidQueryOption",
    "UnscopedMutation",
    "ParameterCountMismatch",
    "UnsupportedOperation",
    "TransactionError",
    "NestedTransaction",
    "NoActiveTransaction",
    "StreamError",
    "StreamClosed",
    "StreamInProgress",
]
