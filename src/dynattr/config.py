"""Application-wide configuration loaded from environment / .env file."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="DYNATTR_",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ─────────────────────────────────────────
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/dynattr.db",
        description="Async SQLAlchemy database URL",
    )
    echo_sql: bool = Field(default=False, description="Log every SQL statement")

    # ── Attributes ───────────────────────────────────────
    attribute_schema_path: str = Field(
        default="./attributes.yaml",
        description="Path to the attribute definition YAML file",
    )
    attributes_field: str = Field(
        default="attributes",
        description="Criteria field prefix that addresses attribute values",
    )

    # ── Logging ──────────────────────────────────────────
    log_level: LogLevel = LogLevel.INFO

    # ── Paths ────────────────────────────────────────────
    data_dir: Path = Field(default=Path("./data"), description="Root data directory")

    def ensure_dirs(self) -> None:
        """Create required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the cached singleton settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the environment is read again."""
    global _settings
    _settings = None
