"""Configuration management using Pydantic Settings.

This module provides centralized configuration for the stats tracker,
supporting environment variables and .env file loading.

Example:
    >>> from stats_tracker.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.db_path)
    'data/stats.db'
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    All settings can be overridden via environment variables or .env file.
    Environment variables take precedence over .env file values.

    Attributes:
        db_path: Path to SQLite database file.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Directory for log files.
        assist_source: Which events credit assists ("event" or "inline").
        strict_rebound_kind: Reject rebounds without an offensive/defensive kind.
        regulation_quarters: Quarters a game must cover before the quarter
            sum invariant is checked.
        leaderboard_limit: Default number of rows returned by leaderboards.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    db_path: str = Field(
        default="data/stats.db",
        alias="STATS_DB_PATH",
        description="Path to SQLite database file",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    log_dir: str = Field(
        default="logs",
        alias="LOG_DIR",
        description="Directory for log files",
    )

    # Aggregation
    assist_source: Literal["event", "inline"] = Field(
        default="event",
        alias="STATS_ASSIST_SOURCE",
        description=(
            "'event' credits standalone ASSIST events, "
            "'inline' credits assist_player_id on made field goals"
        ),
    )
    strict_rebound_kind: bool = Field(
        default=False,
        alias="STATS_STRICT_REBOUND_KIND",
        description="Reject REBOUND events that carry no rebound_type",
    )
    regulation_quarters: int = Field(
        default=4,
        alias="STATS_REGULATION_QUARTERS",
        ge=1,
        le=8,
        description="Number of regulation quarters per game",
    )

    # Reporting
    leaderboard_limit: int = Field(
        default=10,
        alias="STATS_LEADERBOARD_LIMIT",
        ge=1,
        le=500,
        description="Default leaderboard size",
    )

    @field_validator("db_path", "log_dir")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure path strings are valid."""
        if not v or v.isspace():
            raise ValueError("Path cannot be empty or whitespace")
        return v

    @property
    def db_path_obj(self) -> Path:
        """Return database path as Path object."""
        return Path(self.db_path)

    @property
    def log_dir_obj(self) -> Path:
        """Return log directory as Path object."""
        return Path(self.log_dir)

    @property
    def db_url(self) -> str:
        """Return the SQLAlchemy URL for the configured database file."""
        return f"sqlite:///{self.db_path_obj}"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.db_path_obj.parent.mkdir(parents=True, exist_ok=True)
        self.log_dir_obj.mkdir(parents=True, exist_ok=True)


# Singleton pattern for settings
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.

    Example:
        >>> settings = get_settings()
        >>> print(settings.assist_source)
        event
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None
