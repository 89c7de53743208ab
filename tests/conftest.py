"""
Shared fixtures for ff-query tests.
"""

import pytest

from ff_query import ConnectionProfile, EngineSettings, QueryEngine
from ff_query.db.dialects import MySQLDialect, PostgresDialect, SQLiteDialect, SQLServerDialect


@pytest.fixture
def settings():
    """Engine settings isolated from FF_QUERY_* variables and .env files."""
    return EngineSettings(_env_file=None, page_limit=20, fetch_mode="dict", unscoped_mutations="refuse")


@pytest.fixture
def sqlite():
    return SQLiteDialect()


@pytest.fixture
def mysql():
    return MySQLDialect()


@pytest.fixture
def postgres():
    return PostgresDialect()


@pytest.fixture
def sqlserver():
    return SQLServerDialect()


@pytest.fixture
def engine(settings):
    """QueryEngine on an in-memory SQLite database with a ``users`` table."""
    profile = ConnectionProfile(dialect="sqlite", database=":memory:")
    db = QueryEngine(profile, settings=settings)
    db.raw_query(
        "CREATE TABLE users ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "name TEXT NOT NULL UNIQUE, "
        "age INTEGER, "
        "status TEXT, "
        "balance INTEGER DEFAULT 0)"
    )
    yield db
    db.disconnect()


@pytest.fixture
def populated(engine):
    """The ``users`` table filled with 97 rows (ages 18..114, every third row inactive)."""
    rows = [
        {
            "name": f"user{i:03d}",
            "age": 17 + i,
            "status": "inactive" if i % 3 == 0 else "active",
            "balance": i * 10,
        }
        for i in range(1, 98)
    ]
    assert engine.insert_multi("users", rows)
    return engine
