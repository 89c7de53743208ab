"""
PostgreSQL connections using psycopg2.
Provides both direct connections and connection pooling.
"""

from dataclasses import dataclass

from ...exceptions import ConnectionFailed
from .base import SQL


def _connect_args(profile) -> dict:
    args = {
        "host": profile.host,
        "port": profile.port,
        "user": profile.user,
        "password": profile.password.get_secret_value(),
        "dbname": profile.database,
        "connect_timeout": profile.connect_timeout,
    }
    if profile.charset:
        args["client_encoding"] = profile.charset
    return args


@dataclass
class Postgres(SQL):
    """Direct PostgreSQL connection without pooling."""

    db_type = "postgres"

    def connect(self) -> None:
        """
        Establish a direct connection to the PostgreSQL database.

        :raises psycopg2.Error: If connecting fails.
        """
        if self.connection:
            return

        import psycopg2

        try:
            self.connection = psycopg2.connect(**_connect_args(self.profile))
            self.logger.info(f"Connected to PostgreSQL database: {self.profile.database}")
        except psycopg2.Error as e:
            self.logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise


@dataclass
class PostgresPool(SQL):
    """
    PostgreSQL connection pool via ``psycopg2.pool.ThreadedConnectionPool``.

    :param min_size: Connections opened up front (default: 1).
    :param max_size: Maximum number of connections (default: 10).
    """

    min_size: int = 1
    max_size: int = 10

    db_type = "postgres"
    pooled = True

    def connect(self) -> None:
        """
        Create the pool.

        :raises ConnectionFailed: If the pool cannot be created.
        """
        if self.connection:
            return

        from psycopg2 import pool

        try:
            self.connection = pool.ThreadedConnectionPool(
                self.min_size, self.max_size, **_connect_args(self.profile)
            )
            self.logger.info(
                f"Created PostgreSQL pool for {self.profile.database} "
                f"(min: {self.min_size}, max: {self.max_size})"
            )
        except Exception as e:
            self.logger.error(f"Failed to create PostgreSQL pool: {e}")
            raise ConnectionFailed(f"Error creating PostgreSQL pool: {e}") from e

    def acquire(self):
        if not self.connection:
            self.connect()
        return self.connection.getconn()

    def release(self, connection) -> None:
        self.connection.putconn(connection)
        self.logger.debug("Returned connection to pool")

    def close_connection(self) -> None:
        if self.connection:
            self.connection.closeall()
            self.connection = None
            self.logger.info("Closed PostgreSQL pool")
