"""Runtime configuration using pydantic-settings.

Every value can be overridden with a ``PRESETSHEET_`` prefixed environment
variable or a ``.env`` file in the working directory.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LANGUAGES_URL = (
    "https://raw.githubusercontent.com/digidem/comapeo-mobile/refs/heads/develop/"
    "src/frontend/languages.json"
)


class Settings(BaseSettings):
    """Settings for export, import and the remote services they call."""

    model_config = SettingsConfigDict(
        env_prefix="PRESETSHEET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False
    log_flush_threshold: int = 50

    # Language catalog
    languages_url: str = LANGUAGES_URL
    languages_cache_ttl: int = 6 * 60 * 60

    # Icon API
    icon_api_base: str = "https://icons.earthdefenderstoolkit.com/api"
    icon_search_attempts: int = 3
    icon_search_rounds: int = 2

    # Build API
    build_api_url: str = "http://137.184.153.36:3000"
    build_max_retries: int = 3
    build_timeout: float = 300.0

    # Shared retry/backoff (seconds)
    retry_base_delay: float = 1.0
    retry_max_delay: float = 10.0
    request_timeout: float = 60.0

    # Validation
    missing_icon_policy: Literal["warn", "error"] = "warn"

    # Progress reporting
    progress_interval: float = 0.2

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("icon_api_base", "build_api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
