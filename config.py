# ─────────────────────────────────────────────────────────────────
# config.py — Application Settings
#
# SEPARATION OF CONCERNS:
# Every tunable value lives here. Nothing else in the project reads
# environment variables directly, it asks get_settings() instead.
#
# Every field can be set from the environment with the APP__ prefix:
#   APP__DB_PATH=/var/lib/rainwatch/subscribers.db
#   APP__CHECK_EVERY_SECONDS=600
#
# A .env file next to the app is read too. Invalid values (e.g. a
# zero interval) stop the app at startup with a validation error.
# ─────────────────────────────────────────────────────────────────

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="APP__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Record store
    db_path: str = "subscribers.db"

    # Scheduler: base sleep between checks, jitter is added on top.
    # Must be positive or every loop would spin without sleeping.
    check_every_seconds: float = Field(default=300, gt=0)

    # Forecast lookup
    alert_url: str = "https://yandex.ee/weather/front/maps/prec-alert"
    map_url: str = "https://yandex.ee/weather/maps/nowcast"
    http_timeout: float = Field(default=15.0, gt=0)
    lang: str = "en"

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
