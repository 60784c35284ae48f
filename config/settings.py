"""
Configuration settings with Pydantic validation.
All settings are loaded from environment variables (or a .env file).
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Scanner settings with validation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )
    log_json: bool = Field(
        default=False,
        description="Render logs as JSON instead of the colored console format"
    )
    log_file: Optional[Path] = Field(
        default=None,
        description="Optional path of a log file written next to the console output"
    )

    # Volatility tier cache
    tier_cache_ttl_seconds: float = Field(
        default=4 * 60 * 60,
        ge=0,
        description="How long a computed volatility tier is reused per symbol"
    )

    # Divergence detection
    divergence_lookback: int = Field(
        default=5,
        ge=2,
        le=20,
        description="Bars on each side a peak/trough must dominate"
    )
    divergence_window: int = Field(
        default=50,
        ge=20,
        le=500,
        description="Trailing bars searched for divergences"
    )

    # Indicators
    main_timeframe_min_candles: int = Field(
        default=100,
        ge=1,
        description="1h candles needed before 1h is used as the main timeframe (else 4h)"
    )
    rsi_period: int = Field(
        default=14,
        ge=2,
        le=100,
        description="RSI calculation period"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and check the log level name."""
        level = v.upper()
        if level not in _LOG_LEVELS or not isinstance(getattr(logging, level, None), int):
            raise ValueError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        return level

    @model_validator(mode="after")
    def validate_divergence_window(self) -> "Settings":
        """Ensure the window can hold a peak with a full lookback on both sides."""
        if self.divergence_window <= 2 * self.divergence_lookback:
            raise ValueError(
                "divergence_window must be greater than twice divergence_lookback "
                f"({self.divergence_window} <= 2 * {self.divergence_lookback})"
            )
        return self


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> tuple[Settings, dict[str, tuple]]:
    """
    Reload settings from the environment and .env file.

    Returns:
        Tuple of (new_settings, changes_dict)
        changes_dict maps field_name -> (old_value, new_value)
    """
    global _settings

    old_settings = _settings
    new_settings = Settings()

    changes: dict[str, tuple] = {}
    if old_settings:
        for field_name in Settings.model_fields:
            old_val = getattr(old_settings, field_name)
            new_val = getattr(new_settings, field_name)
            if old_val != new_val:
                changes[field_name] = (old_val, new_val)

    _settings = new_settings
    return new_settings, changes
