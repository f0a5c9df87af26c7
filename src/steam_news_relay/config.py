"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables with validation,
type coercion, and sensible defaults.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SteamAPIConfig(BaseSettings):
    """Steam Web API configuration."""

    model_config = SettingsConfigDict(env_prefix="STEAM_")

    api_key: SecretStr | None = Field(
        default=None,
        description="Steam Web API key, only needed for owned-games lookups",
    )
    base_url: str = Field(
        default="https://api.steampowered.com",
        description="Base URL for Steam Web API",
    )
    requests_per_minute: int = Field(
        default=40,
        ge=1,
        le=200,
        description="Pacing for outbound API requests per minute",
    )
    timeout_seconds: int = Field(
        default=30,
        ge=5,
        le=120,
        description="HTTP request timeout in seconds",
    )
    news_language: str = Field(
        default="english",
        description="Language requested from GetNewsForApp",
    )
    news_max_length: int = Field(
        default=300,
        ge=0,
        description="Truncate news contents to this many characters (0 = full text)",
    )
    news_feeds: str = Field(
        default="steam_community_announcements,steam_updates",
        description="Comma-separated feed filter, empty for all feeds",
    )


class RetryConfig(BaseSettings):
    """Retry behavior configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum number of retry attempts",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.1,
        le=30.0,
        description="Base delay between retries (exponential backoff)",
    )
    max_delay_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=300.0,
        description="Maximum delay between retries",
    )
    exponential_base: float = Field(
        default=2.0,
        ge=1.5,
        le=4.0,
        description="Base for exponential backoff calculation",
    )


class NotificationConfig(BaseSettings):
    """Push notification provider configuration."""

    model_config = SettingsConfigDict(env_prefix="NOTIFICATION_")

    provider: Literal["simulation", "onesignal", "firebase"] = Field(
        default="simulation",
        description="Active push provider",
    )
    timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Upper bound for a single push delivery",
    )
    onesignal_app_id: str | None = Field(default=None, description="OneSignal app id")
    onesignal_api_key: SecretStr | None = Field(default=None, description="OneSignal REST key")
    firebase_project_id: str | None = Field(default=None, description="Firebase project id")
    firebase_access_token: SecretStr | None = Field(
        default=None,
        description="OAuth2 access token for the FCM HTTP v1 API",
    )
    simulation_delay_seconds: float = Field(
        default=0.1,
        ge=0.0,
        le=5.0,
        description="Artificial latency of the simulation provider",
    )

    @field_validator("provider", mode="before")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        """Accept provider names in any case."""
        return v.lower() if isinstance(v, str) else v


class SyncConfig(BaseSettings):
    """News synchronization and maintenance configuration."""

    model_config = SettingsConfigDict(env_prefix="SYNC_")

    news_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Recent news items fetched per game and cycle",
    )
    fetch_timeout_seconds: float = Field(
        default=120.0,
        ge=1.0,
        le=600.0,
        description="Upper bound for one news fetch, retries and pacing included",
    )
    dispatch_timeout_seconds: float = Field(
        default=15.0,
        ge=1.0,
        le=120.0,
        description="Upper bound for one notification dispatch",
    )
    news_interval_minutes: int = Field(
        default=60,
        ge=1,
        description="Interval between news sync cycles",
    )
    maintenance_interval_hours: int = Field(
        default=24,
        ge=1,
        description="Interval between follow-graph maintenance runs",
    )
    library_sync_cooldown_hours: float = Field(
        default=6.0,
        ge=0.0,
        description="Minimum time between owned-games lookups for one user",
    )
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the JSON document stores",
    )
    cache_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="Freshness window of the on-demand news cache",
    )
    cache_max_entries: int = Field(
        default=256,
        ge=1,
        description="Maximum number of cached news responses",
    )


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    include_timestamp: bool = Field(
        default=True,
        description="Include timestamp in log entries",
    )


class Settings(BaseSettings):
    """
    Main application settings.

    Aggregates all configuration sections and provides
    a single entry point for configuration access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )

    steam: SteamAPIConfig = Field(default_factory=SteamAPIConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration instance
    """
    return Settings()
