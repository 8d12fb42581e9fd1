"""Centralized settings management for the Hareline pipeline."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Pipeline settings powered by pydantic-settings.

    Loads configuration from environment variables and a .env file located
    at the project root.
    """

    # -------------------------------------------------------------------------
    # SOURCE API KEYS
    # -------------------------------------------------------------------------
    GOOGLE_API_KEY: SecretStr | None = None
    MEETUP_API_BASE: str = "https://api.meetup.com"

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------
    HTTP_CHECK_TIMEOUT_S: float = Field(default=5.0, gt=0)
    HTTP_PAGE_TIMEOUT_S: float = Field(default=20.0, gt=0)
    HTTP_MAX_RETRIES: int = Field(default=1, ge=0)
    USER_AGENT: str = "Mozilla/5.0 (compatible; HarelineBot/1.0)"

    # -------------------------------------------------------------------------
    # PIPELINE
    # -------------------------------------------------------------------------
    RESOLVER_CACHE_TTL_S: float = Field(default=900.0, ge=0)
    SCRAPE_DAYS: int = Field(default=90, ge=1)
    SCRAPE_MAX_WORKERS: int = Field(default=4, ge=1)

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    LOG_LEVEL: str = "INFO"
    JSON_LOGS: bool = False

    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    BASE_DIR: Path = Path(__file__).resolve().parents[2]
    SOURCES_CONFIG_PATH: Path = Path(__file__).resolve().parent / "sources.yaml"

    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[2] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def google_api_key(self) -> str | None:
        """Return the plain Google API key, if configured."""
        if self.GOOGLE_API_KEY is None:
            return None
        return self.GOOGLE_API_KEY.get_secret_value()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached pipeline settings.

    Returns
    -------
    Settings
        The singleton settings instance.
    """
    return Settings()
