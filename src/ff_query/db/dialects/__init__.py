"""
SQL dialects, one per supported backend.

The dialect is chosen once, when a connection profile or raw connection is
handed to the engine; nothing branches on the backend name afterwards.
"""

from typing import Dict, Type

from ...exceptions import ConfigurationError
from .base import Dialect
from .mysql import MySQLDialect
from .postgres import PostgresDialect
from .sqlite import SQLiteDialect
from .sqlserver import SQLServerDialect

DIALECTS: Dict[str, Type[Dialect]] = {
    SQLiteDialect.name: SQLiteDialect,
    MySQLDialect.name: MySQLDialect,
    PostgresDialect.name: PostgresDialect,
    SQLServerDialect.name: SQLServerDialect,
}


def get_dialect(name: str) -> Dialect:
    """
    Return the dialect registered under a profile dialect name.

    Raises:
        ConfigurationError: If no dialect has that name
    """
    try:
        return DIALECTS[name]()
    except KeyError:
        raise ConfigurationError(
            f"Unsupported dialect: {name}. Supported: {', '.join(sorted(DIALECTS))}"
        ) from None


def detect_dialect(connection) -> Dialect:
    """
    Detect the dialect of an already-open DB-API connection from its driver module.

    Args:
        connection: Raw connection (sqlite3, mysql-connector, psycopg2 or pyodbc)

    Returns:
        Matching Dialect instance

    Raises:
        ConfigurationError: If the connection type cannot be determined
    """
    module = type(connection).__module__ or ""

    for dialect_class in DIALECTS.values():
        if any(module == m or module.startswith(m + ".") for m in dialect_class.driver_modules):
            return dialect_class()

    raise ConfigurationError(
        f"Unsupported connection type: {module}. "
        "Supported: sqlite3, mysql.connector, psycopg2, pyodbc"
    )


__all__ = [
    "Dialect",
    "SQLiteDialect",
    "MySQLDialect",
    "PostgresDialect",
    "SQLServerDialect",
    "DIALECTS",
    "get_dialect",
    "detect_dialect",
]
