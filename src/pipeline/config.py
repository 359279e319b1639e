"""Application configuration via Pydantic BaseSettings."""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    development = "development"
    staging = "staging"
    production = "production"


def _default_snapshot_path() -> str:
    return str(Path.home() / ".local" / "share" / "kings-pipeline" / "board.json")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Remote stage/card store. Empty means unconfigured (demo board).
    DATABASE_URL: str = ""

    # Single board identifier shared by every stage and card row
    BOARD_ID: str = "1"

    # Environment
    ENVIRONMENT: Environment = Environment.development

    # Logging
    LOG_LEVEL: str = "INFO"

    # Forecast mode used when a request does not name one
    FORECAST_MODE: str = "absolute"

    # Local snapshot cache written after every mutation
    SNAPSHOT_PATH: str = _default_snapshot_path()

    # Remote reads are retried; remote writes never are
    REMOTE_READ_ATTEMPTS: int = 3

    @property
    def remote_configured(self) -> bool:
        return bool(self.DATABASE_URL.strip())


@lru_cache
def get_settings() -> Settings:
    """Singleton settings instance."""
    return Settings()
