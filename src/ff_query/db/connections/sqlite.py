"""
SQLite connection.

Uses the standard library ``sqlite3`` driver. ``database`` in the profile is
the file path or ``:memory:``.
"""

import re
import sqlite3
from dataclasses import dataclass
from typing import Any, Optional

from .base import SQL


def _regexp(pattern: Optional[str], value: Any) -> Optional[bool]:
    if pattern is None or value is None:
        return None
    return re.search(pattern, str(value)) is not None


@dataclass
class SQLite(SQL):
    """Direct SQLite connection; also registers a REGEXP function."""

    db_type = "sqlite"

    def connect(self) -> None:
        """
        Open the database file.

        :raises sqlite3.Error: If opening fails.
        """
        if self.connection:
            return

        try:
            self.connection = sqlite3.connect(
                self.profile.database, timeout=self.profile.connect_timeout
            )
            self.connection.create_function("REGEXP", 2, _regexp)
            self.logger.info(f"Connected to SQLite database: {self.profile.database}")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to connect to SQLite: {e}")
            raise
