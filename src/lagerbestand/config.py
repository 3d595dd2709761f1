"""Application configuration objects."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pydantic settings used to configure the ledger."""

    model_config = SettingsConfigDict(
        env_prefix="LAGERBESTAND_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(
        default="Lagerbestand",
        description="Human friendly name for the API.",
    )
    environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment environment flag.",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./lagerbestand.db",
        description="SQLAlchemy compatible database URL of the local store.",
    )
    echo_sql: bool = Field(
        default=False,
        description="Enable SQL echo logging for debugging.",
    )
    log_level: str = Field(
        default="INFO",
        description="Level passed to logging.basicConfig by the entry points.",
    )
    recent_transactions_limit: int = Field(
        default=50,
        ge=1,
        description="Number of bookings returned by the recent transactions query.",
    )
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)

    @field_validator("database_url")
    @classmethod
    def _validate_sqlite_path(cls, value: str) -> str:
        if value.startswith("sqlite") and ":memory:" not in value and "///" not in value:
            raise ValueError(
                "SQLite database URLs should be in the form sqlite+aiosqlite:///path/to/db"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings"]
