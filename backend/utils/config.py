"""
HotConf Configuration Module.

Centralizes the library's own settings using Pydantic Settings.
Requires Python 3.11+.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file into os.environ at module import time
# This ensures nested BaseSettings classes can read the values
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)
else:
    # Try current working directory
    load_dotenv()


class WatcherSettings(BaseSettings):
    """File watcher and bounce window settings."""

    model_config = SettingsConfigDict(env_prefix="WATCHER_")

    min_gap_ms: float = Field(
        default=1.0,
        gt=0.0,
        description="Lower edge of the bounce window; re-checks wait twice this long",
    )
    max_gap_ms: float = Field(
        default=100.0,
        gt=0.0,
        description="Upper edge of the bounce window",
    )
    enabled: bool = Field(default=True)

    @model_validator(mode="after")
    def check_window(self) -> "WatcherSettings":
        """Ensure the bounce window is not empty."""
        if self.min_gap_ms >= self.max_gap_ms:
            raise ValueError("min_gap_ms must be smaller than max_gap_ms")
        return self


class LoggingSettings(BaseSettings):
    """Logging configuration settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = Field(default="INFO")
    format: Literal["json", "console"] = Field(default="json")
    watchdog_level: str = Field(
        default="WARNING",
        description="Level for watchdog's own stdlib loggers",
    )


class Settings(BaseSettings):
    """Main settings aggregating all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    watcher: WatcherSettings = Field(default_factory=WatcherSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings.

    Returns singleton instance of Settings; sessions take an explicit
    ``settings`` argument when they need something else.
    """
    return Settings()
