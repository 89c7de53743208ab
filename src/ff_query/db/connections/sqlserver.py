"""
SQL Server connections using pyodbc.
Provides both direct connections and ODBC-pooled connections.
"""

from dataclasses import dataclass

from .base import SQL


def connection_string(profile, mars: bool = False) -> str:
    """Build the ODBC connection string for a profile."""
    parts = (
        f"Driver={{{profile.driver}}};"
        f"Server=tcp:{profile.host},{profile.port};"
        f"Database={profile.database};"
        f"Uid={profile.user};"
        f"Pwd={profile.password.get_secret_value()};"
        f"Encrypt=yes;"
        f"TrustServerCertificate=no;"
        f"Connection Timeout={profile.connect_timeout};"
    )
    if mars:
        parts += "MARS_Connection=yes;"
    return parts


@dataclass
class SQLServer(SQL):
    """
    Direct SQL Server connection without pooling.

    :param profile: Connection profile; ``driver`` names the ODBC driver.
    """

    db_type = "sqlserver"

    def connect(self) -> None:
        """
        Establish a direct connection to the SQL Server database.

        :raises pyodbc.Error: If connecting fails.
        """
        if self.connection:
            return

        import pyodbc

        try:
            self.connection = pyodbc.connect(connection_string(self.profile))
            self.logger.info(f"Connected to SQL Server database: {self.profile.database}")
        except Exception as e:
            self.logger.error(f"Failed to connect to SQL Server: {e}")
            raise


@dataclass
class SQLServerPool(SQL):
    """
    SQL Server connections through the ODBC driver manager's pool.

    pyodbc has no pool object of its own; with ``pooling`` enabled, closing a
    connection hands it back to the driver manager and the next connect
    reuses it. Each statement therefore connects and closes.

    :param pool_name: Label used in log messages (default: sqlserver_pool).
    """

    pool_name: str = "sqlserver_pool"

    db_type = "sqlserver"
    pooled = True

    def connect(self) -> None:
        """Enable driver-manager pooling; connections are opened in ``acquire``."""
        import pyodbc

        pyodbc.pooling = True
        self.connection = pyodbc
        self.logger.info(f"Enabled SQL Server pool '{self.pool_name}'")

    def acquire(self):
        if not self.connection:
            self.connect()
        try:
            return self.connection.connect(connection_string(self.profile, mars=True))
        except Exception as e:
            self.logger.error(f"Failed to acquire SQL Server connection: {e}")
            raise

    def release(self, connection) -> None:
        connection.close()
        self.logger.debug("Returned connection to pool")

    def close_connection(self) -> None:
        self.connection = None
