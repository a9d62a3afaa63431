"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates the store target and connection budget and provides typed access
to settings.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SUPPORTED_SCHEMES = ("memory", "sqlite", "http", "https")


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Store:
        STORE_URL: Connection target; the scheme selects the backing store
        STORE_NAMESPACE / STORE_DATABASE: Scope asserted on every acquisition
        STORE_USER / STORE_PASS: Root credentials used at sign-in

    Connection:
        CONNECT_MAX_RETRIES: Attempts before the connection is declared failed
        CONNECT_BASE_DELAY_MS: First backoff delay, doubled on each attempt
        CONNECT_TIMEOUT_SECONDS: Timeout for a single connection attempt

    Cache:
        CACHE_DEFAULT_TTL_SECONDS: Lifetime of written entries

    Logging:
        LOG_LEVEL: Logging level
        LOG_FILE: Optional JSON lines log file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backing store
    STORE_URL: str = Field(
        default="http://localhost:8000",
        description="Backing store URL (memory://, sqlite:///path, http(s)://host)",
    )
    STORE_NAMESPACE: str = Field(default="default", min_length=1)
    STORE_DATABASE: str = Field(default="default", min_length=1)
    STORE_USER: str = Field(default="root")
    STORE_PASS: str = Field(default="root")

    # Connection bootstrap
    CONNECT_MAX_RETRIES: int = Field(
        default=5, ge=1, le=20, description="Maximum connection attempts"
    )
    CONNECT_BASE_DELAY_MS: int = Field(
        default=500, ge=0, description="Initial backoff delay in milliseconds"
    )
    CONNECT_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0.0, description="Per-attempt connection timeout"
    )

    # Cache
    CACHE_DEFAULT_TTL_SECONDS: int = Field(
        default=3600, ge=0, description="Default entry lifetime in seconds"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    LOG_FILE: Path | None = Field(default=None, description="JSON lines log file")

    @field_validator("STORE_URL")
    @classmethod
    def validate_store_url(cls, v: str) -> str:
        """Validate that STORE_URL uses a supported scheme."""
        scheme = urlparse(v).scheme.lower()
        if scheme not in SUPPORTED_SCHEMES:
            raise ValueError(
                f"STORE_URL scheme must be one of {', '.join(SUPPORTED_SCHEMES)}"
            )
        return v

    @property
    def base_delay(self) -> float:
        """First backoff delay in seconds."""
        return self.CONNECT_BASE_DELAY_MS / 1000

    @property
    def default_ttl(self) -> timedelta:
        """Default cache lifetime."""
        return timedelta(seconds=self.CACHE_DEFAULT_TTL_SECONDS)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings with the store password redacted for display."""
        return {
            "STORE_URL": self.STORE_URL,
            "STORE_NAMESPACE": self.STORE_NAMESPACE,
            "STORE_DATABASE": self.STORE_DATABASE,
            "STORE_USER": self.STORE_USER,
            "STORE_PASS": "***" if self.STORE_PASS else None,
            "CONNECT_MAX_RETRIES": self.CONNECT_MAX_RETRIES,
            "CONNECT_BASE_DELAY_MS": self.CONNECT_BASE_DELAY_MS,
            "CONNECT_TIMEOUT_SECONDS": self.CONNECT_TIMEOUT_SECONDS,
            "CACHE_DEFAULT_TTL_SECONDS": self.CACHE_DEFAULT_TTL_SECONDS,
            "LOG_LEVEL": self.LOG_LEVEL,
            "LOG_FILE": str(self.LOG_FILE) if self.LOG_FILE else None,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
