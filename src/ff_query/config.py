"""
Connection profiles and engine settings.

``ConnectionProfile`` is the immutable description of one database; it picks
the dialect once, at construction. ``EngineSettings`` holds behavioural knobs
and can be populated from ``FF_QUERY_*`` environment variables or a ``.env``
file.
"""

from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError

DialectName = Literal["sqlite", "mysql", "postgres", "sqlserver"]

DEFAULT_PORTS = {
    "mysql": 3306,
    "postgres": 5432,
    "sqlserver": 1433,
}

DEFAULT_CHARSETS = {
    "mysql": "utf8mb4",
    "postgres": "UTF8",
}

# Spellings accepted in configuration mappings
_DIALECT_ALIASES = {
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgres": "postgres",
    "postgresql": "postgres",
    "pgsql": "postgres",
    "sqlserver": "sqlserver",
    "sqlsrv": "sqlserver",
    "mssql": "sqlserver",
}

_FIELD_ALIASES = {
    "username": "user",
    "dbname": "database",
    "db": "database",
    "db_name": "database",
    "pass": "password",
    "table_prefix": "prefix",
}


class ConnectionProfile(BaseModel):
    """
    Immutable connection description.

    SQLite uses ``database`` as the file path (or ``:memory:``) and ignores
    host, credentials and port.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    dialect: DialectName
    host: str = "localhost"
    user: Optional[str] = None
    password: SecretStr = SecretStr("")
    database: str
    port: Optional[int] = None
    charset: Optional[str] = None
    prefix: str = ""
    driver: str = "ODBC Driver 18 for SQL Server"
    connect_timeout: int = Field(default=30, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        dialect = data.get("dialect")
        if isinstance(dialect, str):
            normalized = _DIALECT_ALIASES.get(dialect.strip().lower())
            if normalized is None:
                raise ValueError(
                    f"Unsupported dialect {dialect!r}. Supported: sqlite, mysql, postgres, sqlserver"
                )
            data["dialect"] = dialect = normalized
        if data.get("port") is None and dialect in DEFAULT_PORTS:
            data["port"] = DEFAULT_PORTS[dialect]
        if data.get("charset") is None and dialect in DEFAULT_CHARSETS:
            data["charset"] = DEFAULT_CHARSETS[dialect]
        return data

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "ConnectionProfile":
        """
        Build a profile from a configuration mapping.

        Accepts the common aliases ``username``, ``dbname``, ``db``, ``db_name``,
        ``pass`` and ``table_prefix``.

        Raises:
            ConfigurationError: If the mapping does not describe a valid profile
        """
        data = {}
        for key, value in config.items():
            data[_FIELD_ALIASES.get(key, key)] = value
        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid connection profile: {e}") from e

    def with_prefix(self, prefix: str) -> "ConnectionProfile":
        """Return a copy of the profile with a different table prefix."""
        return self.model_copy(update={"prefix": prefix})


class EngineSettings(BaseSettings):
    """Behavioural settings for a QueryEngine, overridable from the environment."""

    model_config = SettingsConfigDict(
        env_prefix="FF_QUERY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    page_limit: int = Field(default=20, gt=0)
    fetch_mode: Literal["dict", "tuple", "both"] = "dict"
    # What UPDATE/DELETE without WHERE does: raise, log a warning, or run silently
    unscoped_mutations: Literal["refuse", "warn", "allow"] = "refuse"
    trace: bool = False
    id_column: str = "id"
