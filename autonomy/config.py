from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_HOME = Path.home() / ".config" / "arachne"
PACKAGED_MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations" / "versions"


class Settings(BaseSettings):
    """Autonomy settings loaded from environment variables with validation."""

    model_config = SettingsConfigDict(
        env_file=(str(Path(__file__).resolve().parents[1] / ".env"), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    app_name: str = Field(default="Arachne Autonomy", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="production",
        alias="APP_ENV",
    )
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    db_path: str = Field(default=str(CONFIG_HOME / "arachne.db"), alias="AUTONOMY_DB_PATH")
    migrations_dir: str = Field(default=str(PACKAGED_MIGRATIONS_DIR), alias="AUTONOMY_MIGRATIONS_DIR")
    db_busy_timeout_ms: int = Field(default=5000, ge=0, le=60000, alias="DB_BUSY_TIMEOUT_MS")

    preferences_path: str = Field(
        default=str(CONFIG_HOME / "preferences.json"),
        alias="AUTONOMY_PREFERENCES_PATH",
    )

    scheduler_tick_seconds: float = Field(default=60, ge=1, alias="SCHEDULER_TICK_SECONDS")
    task_queue_max_concurrent: int = Field(default=3, ge=1, le=100, alias="TASK_QUEUE_MAX_CONCURRENT")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalize the log level name and reject unknown levels."""
        normalized = value.strip().upper()
        if normalized not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got {value!r}")
        return normalized

    @field_validator("db_path", "preferences_path", "migrations_dir")
    @classmethod
    def expand_user_path(cls, value: str) -> str:
        """Expand ``~`` so paths from .env files behave like shell paths."""
        if value == ":memory:":
            return value
        return str(Path(value).expanduser())


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""
    return Settings()
