"""
MySQL connections using mysql-connector-python.
Provides both direct connections and connection pooling.
"""

from dataclasses import dataclass

from ...exceptions import ConnectionFailed
from .base import SQL


def _connect_args(profile) -> dict:
    return {
        "host": profile.host,
        "port": profile.port,
        "user": profile.user,
        "password": profile.password.get_secret_value(),
        "database": profile.database,
        "charset": profile.charset,
        "connection_timeout": profile.connect_timeout,
        "autocommit": False,
    }


@dataclass
class MySQL(SQL):
    """
    Direct MySQL connection without pooling.

    Suitable for scripts and single-threaded services.
    """

    db_type = "mysql"

    def connect(self) -> None:
        """
        Establish a direct connection to the MySQL database.

        :raises mysql.connector.Error: If connecting fails.
        """
        if self.connection:
            return

        import mysql.connector

        try:
            self.connection = mysql.connector.connect(**_connect_args(self.profile))
            self.logger.info(f"Connected to MySQL database: {self.profile.database}")
        except mysql.connector.Error as e:
            self.logger.error(f"Failed to connect to MySQL: {e}")
            raise


@dataclass
class MySQLPool(SQL):
    """
    MySQL connection pool via ``mysql.connector.pooling``.

    Each statement checks out a connection; closing a pooled connection
    returns it to the pool.

    :param pool_name: Name of the connection pool (default: mysql_pool).
    :param pool_size: Number of pooled connections (default: 5).
    """

    pool_name: str = "mysql_pool"
    pool_size: int = 5

    db_type = "mysql"
    pooled = True

    def connect(self) -> None:
        """
        Create the pool.

        :raises ConnectionFailed: If the pool cannot be created.
        """
        if self.connection:
            return

        from mysql.connector import pooling

        try:
            self.connection = pooling.MySQLConnectionPool(
                pool_name=self.pool_name,
                pool_size=self.pool_size,
                **_connect_args(self.profile),
            )
            self.logger.info(
                f"Created MySQL pool '{self.pool_name}' (size: {self.pool_size})"
            )
        except Exception as e:
            self.logger.error(f"Failed to create MySQL pool: {e}")
            raise ConnectionFailed(f"Error creating MySQL pool: {e}") from e

    def acquire(self):
        if not self.connection:
            self.connect()
        return self.connection.get_connection()

    def release(self, connection) -> None:
        connection.close()
        self.logger.debug("Returned connection to pool")

    def close_connection(self) -> None:
        # mysql-connector pools have no close; connections close when returned
        if self.connection:
            self.connection = None
            self.logger.info(f"Released MySQL pool '{self.pool_name}'")
