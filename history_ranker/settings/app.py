"""Application settings powered by Pydantic BaseSettings."""

import logging
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HISTORY_RANKER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    db_path: Path = Field(default=Path("state/history.sqlite"))
    config_path: Path | None = Field(default=None)
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    model_seed: int | None = Field(default=None)

    def log_level_value(self) -> int:
        """Return the numeric logging level, defaulting to INFO."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.INFO


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
