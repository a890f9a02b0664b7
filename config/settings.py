"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")
    ROLE_CATALOG_PATH: str = Field(default="config/roles.yaml")
    DB_TIMEOUT_S: float = 5.0

    DEFAULT_DURATION_MINUTES: int = 30
    MODERATION_MIN_CHARS: int = 5
    RECENT_HISTORY_MESSAGES: int = 6
    PLANNER_CONTEXT_MESSAGES: int = 5
    RAW_CONTEXT_CHARS: int = 200

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True, extra="ignore")


settings = Settings()
