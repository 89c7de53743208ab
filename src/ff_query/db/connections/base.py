"""
Base class for database connections.

A connection object owns the driver handle (or pool) for one profile. The
engine asks it for a connection per statement with ``acquire`` and hands it
back with ``release``; direct connections always return the same handle,
pools check one out.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from ...config import ConnectionProfile
from ...exceptions import ConnectionFailed


@dataclass
class SQL(ABC):
    """
    Abstract connection holder.

    :param profile: Connection profile (None only for wrapped raw handles).
    :param connection: The open driver connection, if any.
    :param logger: Logger for connect/disconnect events.
    """

    profile: Optional[ConnectionProfile] = None
    connection: Any = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    db_type = "sql"
    pooled = False

    @abstractmethod
    def connect(self) -> None:
        """Open the connection or pool if it is not open yet."""
        pass

    def acquire(self):
        """
        Return a connection for the next statement, connecting lazily.

        :return: A DB-API connection.
        """
        if not self.connection:
            self.connect()
        return self.connection

    def release(self, connection) -> None:
        """Give back a connection obtained from ``acquire``."""
        pass

    def close_connection(self) -> None:
        """Close the connection if open."""
        if self.connection:
            self.connection.close()
            self.connection = None
            self.logger.info(f"Closed {self.db_type} connection")

    @property
    def is_connected(self) -> bool:
        return self.connection is not None

    @property
    def description(self) -> str:
        if self.profile is None:
            return self.db_type
        return f"{self.db_type}://{self.profile.host}/{self.profile.database}"


@dataclass
class ExistingConnection(SQL):
    """
    Wraps a DB-API connection opened by the caller.

    The caller keeps ownership: ``close_connection`` only drops the reference
    unless ``owned`` is set.
    """

    owned: bool = False

    db_type = "existing"

    def connect(self) -> None:
        if self.connection is None:
            raise ConnectionFailed("The wrapped connection has been closed")

    def close_connection(self) -> None:
        if self.connection is not None and self.owned:
            self.connection.close()
            self.logger.info("Closed wrapped connection")
        self.connection = None
