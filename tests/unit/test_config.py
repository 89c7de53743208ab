"""
Tests for connection profiles and engine settings.
"""

import pytest
from pydantic import ValidationError

from ff_query import ConfigurationError, ConnectionProfile, EngineSettings


class TestConnectionProfile:
    """Test profile validation and defaults."""

    @pytest.mark.parametrize(
        "dialect,port,charset",
        [("mysql", 3306, "utf8mb4"), ("postgres", 5432, "UTF8"), ("sqlserver", 1433, None)],
    )
    def test_server_defaults(self, dialect, port, charset):
        profile = ConnectionProfile(dialect=dialect, database="shop")

        assert profile.port == port
        assert profile.charset == charset

    def test_sqlite_has_no_port(self):
        profile = ConnectionProfile(dialect="sqlite", database="app.db")

        assert profile.port is None
        assert profile.host == "localhost"

    def test_explicit_port_wins(self):
        assert ConnectionProfile(dialect="mysql", database="shop", port=3307).port == 3307

    def test_dialect_aliases(self):
        assert ConnectionProfile(dialect="PostgreSQL", database="x").dialect == "postgres"
        assert ConnectionProfile(dialect="mssql", database="x").dialect == "sqlserver"
        assert ConnectionProfile(dialect="mariadb", database="x").dialect == "mysql"

    def test_unknown_dialect(self):
        with pytest.raises(ValidationError, match="oracle"):
            ConnectionProfile(dialect="oracle", database="x")

    def test_profile_is_frozen(self):
        profile = ConnectionProfile(dialect="sqlite", database=":memory:")

        with pytest.raises(ValidationError):
            profile.database = "other.db"

    def test_password_is_hidden(self):
        profile = ConnectionProfile(dialect="mysql", database="shop", password="hunter2")

        assert "hunter2" not in repr(profile)
        assert profile.password.get_secret_value() == "hunter2"

    def test_with_prefix(self):
        profile = ConnectionProfile(dialect="sqlite", database=":memory:")

        prefixed = profile.with_prefix("app_")

        assert prefixed.prefix == "app_"
        assert profile.prefix == ""


class TestFromMapping:
    """Test building profiles from configuration mappings."""

    def test_field_aliases(self):
        profile = ConnectionProfile.from_mapping(
            {
                "dialect": "mysql",
                "host": "db",
                "username": "app",
                "pass": "pw",
                "dbname": "shop",
                "table_prefix": "wp_",
            }
        )

        assert profile.user == "app"
        assert profile.database == "shop"
        assert profile.prefix == "wp_"
        assert profile.password.get_secret_value() == "pw"

    def test_invalid_dialect(self):
        with pytest.raises(ConfigurationError, match="Invalid connection profile"):
            ConnectionProfile.from_mapping({"dialect": "oracle", "database": "x"})

    def test_missing_database(self):
        with pytest.raises(ConfigurationError):
            ConnectionProfile.from_mapping({"dialect": "mysql"})

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError):
            ConnectionProfile.from_mapping({"dialect": "sqlite", "database": "x", "colour": "red"})


class TestEngineSettings:
    """Test behavioural settings and their environment overrides."""

    def test_defaults(self):
        settings = EngineSettings(_env_file=None)

        assert settings.page_limit == 20
        assert settings.fetch_mode == "dict"
        assert settings.unscoped_mutations == "refuse"
        assert settings.trace is False
        assert settings.id_column == "id"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FF_QUERY_PAGE_LIMIT", "50")
        monkeypatch.setenv("FF_QUERY_UNSCOPED_MUTATIONS", "warn")
        monkeypatch.setenv("FF_QUERY_TRACE", "true")

        settings = EngineSettings(_env_file=None)

        assert settings.page_limit == 50
        assert settings.unscoped_mutations == "warn"
        assert settings.trace is True

    def test_invalid_page_limit(self):
        with pytest.raises(ValidationError):
            EngineSettings(_env_file=None, page_limit=0)

    def test_invalid_fetch_mode(self):
        with pytest.raises(ValidationError):
            EngineSettings(_env_file=None, fetch_mode="objects")
