"""Unified settings for the backend.

Values are read from the environment and from ``backend/.env``.
Every database setting has a default suited to local development.

    from backend.settings import get_settings
    settings = get_settings()
"""

from pathlib import Path
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Backend package directory (for .env file location)
_BACKEND_DIR = Path(__file__).resolve().parent

_ASYNC_DRIVER_PREFIX = "postgresql+asyncpg://"
_PLAIN_PREFIXES = ("postgresql://", "postgres://")


class Settings(BaseSettings):
    """Backend settings loaded from environment variables or .env."""

    model_config = SettingsConfigDict(
        env_file=_BACKEND_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === PostgreSQL ===
    database_url: str = Field(
        default="postgresql+asyncpg://localhost:5432/yektayar",
        description="PostgreSQL connection URL (postgresql+asyncpg://...)",
    )
    db_pool_size: int = Field(
        default=10,
        description="Connection pool size",
        ge=1,
    )
    db_max_overflow: int = Field(
        default=0,
        description="Max pool overflow connections",
        ge=0,
    )
    db_connect_timeout: int = Field(
        default=10,
        description="Seconds to wait for a new connection",
        ge=1,
    )
    db_schema: str = Field(
        default="public",
        description="Schema searched when checking table existence",
    )

    # === Startup verification ===
    db_verify_timeout: float = Field(
        default=30.0,
        description="Seconds allowed for connecting plus all table checks",
        gt=0,
    )
    db_check_retries: int = Field(
        default=2,
        description="Extra attempts for a table check whose query fails",
        ge=0,
    )
    db_check_retry_delay: float = Field(
        default=0.5,
        description="Seconds between attempts of a failed table check",
        ge=0,
    )
    db_batch_threshold: int = Field(
        default=50,
        description="Registries larger than this are checked with one catalog query",
        ge=1,
    )

    # === Logging ===
    log_level: str = Field(default="INFO", description="Loguru level name")

    # === Server ===
    uvicorn_host: str = Field(default="0.0.0.0", description="Server host")
    uvicorn_port: int = Field(default=3000, description="Server port")

    @field_validator("database_url", mode="before")
    @classmethod
    def use_asyncpg_driver(cls, v):
        if isinstance(v, str):
            for prefix in _PLAIN_PREFIXES:
                if v.startswith(prefix):
                    return _ASYNC_DRIVER_PREFIX + v[len(prefix):]
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
