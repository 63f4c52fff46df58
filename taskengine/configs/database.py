"""
Database configuration settings.

PostgreSQL connection parameters for the async SQLAlchemy engine. A full
URL (POSTGRES_URL) overrides the individual parts, which is how local
runs and tests point the engine at SQLite.

Dependencies: pydantic, pydantic_settings
System role: Database connection configuration for the task record store
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from taskengine.configs.base import BaseSettings


class DatabaseSettings(BaseSettings):
    """PostgreSQL database configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="POSTGRES_",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = Field(default="localhost", description="PostgreSQL host")
    port: int = Field(default=5432, description="PostgreSQL port")
    user: str = Field(default="postgres", description="PostgreSQL user")
    password: str = Field(default="postgres", description="PostgreSQL password")
    db: str = Field(default="taskengine", description="PostgreSQL database name")

    pool_size: int = Field(default=10, description="Connection pool size")
    max_overflow: int = Field(default=20, description="Maximum overflow connections")
    pool_timeout: int = Field(default=30, description="Connection pool timeout in seconds")
    echo_sql: bool = Field(default=False, description="Echo SQL statements to logs")

    sslmode: str = Field(default="disable", description="\"require\" adds ssl=require for asyncpg")

    url: str | None = Field(
        default=None,
        description="Full async SQLAlchemy URL; overrides host/port/user/db when set",
    )

    @property
    def async_database_url(self) -> str:
        """
        Construct async PostgreSQL connection URL.

        Returns:
            str: SQLAlchemy async-compatible database URL (asyncpg uses 'ssl' param)
        """
        if self.url:
            return self.url
        ssl_param = "?ssl=require" if self.sslmode == "require" else ""
        return (
            f"postgresql+asyncpg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.db}{ssl_param}"
        )

    @property
    def is_sqlite(self) -> bool:
        """True when the configured URL targets SQLite (local runs, tests)."""
        return self.async_database_url.startswith("sqlite")
