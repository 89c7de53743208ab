"""
Connection classes, one direct and one pooled variant per server backend.
"""

from typing import Dict, Optional, Tuple, Type

from ...config import ConnectionProfile
from .base import SQL, ExistingConnection
from .mysql import MySQL, MySQLPool
from .postgres import Postgres, PostgresPool
from .sqlite import SQLite
from .sqlserver import SQLServer, SQLServerPool

# dialect -> (direct, pooled)
CONNECTIONS: Dict[str, Tuple[Type[SQL], Optional[Type[SQL]]]] = {
    "sqlite": (SQLite, None),
    "mysql": (MySQL, MySQLPool),
    "postgres": (Postgres, PostgresPool),
    "sqlserver": (SQLServer, SQLServerPool),
}


def connection_for(profile: ConnectionProfile, pooled: bool = False, logger=None) -> SQL:
    """
    Build the connection holder for a profile. Nothing is opened yet.

    :param profile: Connection profile.
    :param pooled: Use the backend's pool class (ignored for SQLite).
    :param logger: Optional logger passed through to the connection.
    """
    direct, pool = CONNECTIONS[profile.dialect]
    connection_class = pool if pooled and pool is not None else direct
    kwargs = {"profile": profile}
    if logger is not None:
        kwargs["logger"] = logger
    return connection_class(**kwargs)


__all__ = [
    "SQL",
    "ExistingConnection",
    "SQLite",
    # MySQL
    "MySQL",
    "MySQLPool",
    # PostgreSQL
    "Postgres",
    "PostgresPool",
    # SQL Server
    "SQLServer",
    "SQLServerPool",
    "CONNECTIONS",
    "connection_for",
]
