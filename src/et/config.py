"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates required fields and provides typed access to settings.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Required:
        SEC_USER_AGENT: Contact identification for SEC EDGAR (must contain @)

    Optional:
        POLYGON_API_KEY: Primary market-data source
        ALPHA_VANTAGE_API_KEY: Secondary market-data source
        GITHUB_ACTIONS_TOKEN / GITHUB_OWNER / GITHUB_REPO: Refresh dispatch target
        DATABASE_PATH: SQLite file backing the persisted store
        CACHE_BACKEND: "memory" or "none"
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # SEC identification
    SEC_USER_AGENT: str = Field(
        default="Personal Earnings Tracker (admin@example.com)",
        description="Contact identification sent to SEC EDGAR (required by SEC)",
    )

    # Market data keys
    POLYGON_API_KEY: str | None = Field(default=None, description="Polygon.io API key")
    ALPHA_VANTAGE_API_KEY: str | None = Field(
        default=None, description="Alpha Vantage API key"
    )

    # Refresh dispatch (GitHub Actions workflow_dispatch)
    GITHUB_ACTIONS_TOKEN: str | None = Field(
        default=None, description="Token allowed to dispatch workflows"
    )
    GITHUB_OWNER: str | None = Field(default=None, description="Repository owner")
    GITHUB_REPO: str | None = Field(default=None, description="Repository name")
    GITHUB_WORKFLOW_FILE: str = Field(
        default="refresh-ticker.yml", description="Workflow file to dispatch"
    )
    GITHUB_REF: str = Field(default="main", description="Git ref the workflow runs on")

    # Storage
    DATABASE_PATH: Path = Field(
        default=Path(".cache/earnings.db"), description="SQLite database file"
    )
    CACHE_BACKEND: Literal["memory", "none"] = Field(
        default="memory", description="TTL cache backend"
    )

    # Outbound HTTP
    SEC_MIN_INTERVAL_MS: int = Field(
        default=100, ge=0, description="Minimum spacing between SEC requests"
    )
    MARKET_DATA_MIN_INTERVAL_MS: int = Field(
        default=0, ge=0, description="Minimum spacing between market-data requests"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, gt=0.0)
    HTTP_MAX_RETRIES: int = Field(default=3, ge=1, le=10)

    # Ingress rate guard
    RATE_LIMIT_WINDOW_SECONDS: int = Field(default=60, ge=1)
    RATE_LIMIT_MAX_REQUESTS: int = Field(default=60, ge=1)
    RATE_LIMIT_CLEANUP_PROBABILITY: float = Field(default=0.01, ge=0.0, le=1.0)

    # Historical EPS
    EPS_FRESHNESS_DAYS: int = Field(default=7, ge=0)

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("SEC_USER_AGENT")
    @classmethod
    def validate_sec_user_agent(cls, v: str) -> str:
        """Validate that SEC_USER_AGENT contains an email address."""
        if "@" not in v:
            raise ValueError(
                "SEC_USER_AGENT must contain an email address (SEC requirement)"
            )
        return v

    @property
    def dispatch_configured(self) -> bool:
        """Whether every setting the refresh dispatcher needs is present."""
        return bool(self.GITHUB_ACTIONS_TOKEN and self.GITHUB_OWNER and self.GITHUB_REPO)

    @property
    def available_sources(self) -> list[str]:
        """Return the market-data sources that have credentials."""
        sources: list[str] = []
        if self.POLYGON_API_KEY:
            sources.append("polygon")
        if self.ALPHA_VANTAGE_API_KEY:
            sources.append("alphavantage")
        return sources

    def ensure_directories(self) -> None:
        """Create the database directory if it doesn't exist."""
        self.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings with secrets redacted for display."""
        def redact(value: str | None) -> str | None:
            if value is None:
                return None
            return f"{value[:4]}...{value[-4:]}" if len(value) > 12 else "***"

        return {
            "SEC_USER_AGENT": self.SEC_USER_AGENT,
            "POLYGON_API_KEY": redact(self.POLYGON_API_KEY),
            "ALPHA_VANTAGE_API_KEY": redact(self.ALPHA_VANTAGE_API_KEY),
            "GITHUB_ACTIONS_TOKEN": redact(self.GITHUB_ACTIONS_TOKEN),
            "GITHUB_OWNER": self.GITHUB_OWNER,
            "GITHUB_REPO": self.GITHUB_REPO,
            "GITHUB_WORKFLOW_FILE": self.GITHUB_WORKFLOW_FILE,
            "GITHUB_REF": self.GITHUB_REF,
            "DATABASE_PATH": str(self.DATABASE_PATH),
            "CACHE_BACKEND": self.CACHE_BACKEND,
            "SEC_MIN_INTERVAL_MS": self.SEC_MIN_INTERVAL_MS,
            "MARKET_DATA_MIN_INTERVAL_MS": self.MARKET_DATA_MIN_INTERVAL_MS,
            "HTTP_TIMEOUT_SECONDS": self.HTTP_TIMEOUT_SECONDS,
            "HTTP_MAX_RETRIES": self.HTTP_MAX_RETRIES,
            "RATE_LIMIT_WINDOW_SECONDS": self.RATE_LIMIT_WINDOW_SECONDS,
            "RATE_LIMIT_MAX_REQUESTS": self.RATE_LIMIT_MAX_REQUESTS,
            "EPS_FRESHNESS_DAYS": self.EPS_FRESHNESS_DAYS,
            "LOG_LEVEL": self.LOG_LEVEL,
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
