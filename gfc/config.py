"""Configuration management for GFC."""

from pathlib import Path

from pydantic import Field, SecretStr
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from gfc.core.constants import DEFAULT_DB_PATH, CacheLimits, ProbeConstants
from gfc.exceptions import ConfigurationError


class Config(BaseSettings):
    """Application configuration."""

    base_url: str | None = Field(
        default=None,
        alias="GRAVITY_FORMS_BASE_URL",
        description="WordPress site URL hosting Gravity Forms",
    )
    consumer_key: SecretStr | None = Field(
        default=None, alias="GRAVITY_FORMS_CONSUMER_KEY", description="REST API consumer key"
    )
    consumer_secret: SecretStr | None = Field(
        default=None, alias="GRAVITY_FORMS_CONSUMER_SECRET", description="REST API consumer secret"
    )

    # Cache configuration
    cache_enabled: bool = Field(
        default=True,
        alias="GRAVITY_FORMS_CACHE_ENABLED",
        description="Enable the local forms cache",
    )
    cache_db_path: Path = Field(
        default=Path(DEFAULT_DB_PATH),
        alias="GRAVITY_FORMS_CACHE_DB_PATH",
        description="SQLite database file for the cache",
    )
    cache_max_age_seconds: int = Field(
        default=CacheLimits.DEFAULT_MAX_AGE_SECONDS,
        ge=CacheLimits.MIN_MAX_AGE_SECONDS,
        le=CacheLimits.MAX_MAX_AGE_SECONDS,
        alias="GRAVITY_FORMS_CACHE_MAX_AGE_SECONDS",
        description="Age after which cached records are refreshed",
    )
    cache_max_probe_failures: int = Field(
        default=ProbeConstants.CONSECUTIVE_FAILURE_THRESHOLD,
        ge=1,
        le=50,
        alias="GRAVITY_FORMS_CACHE_MAX_PROBE_FAILURES",
        description="Consecutive misses that end a beyond-max scan",
    )
    cache_auto_sync: bool = Field(
        default=True,
        alias="GRAVITY_FORMS_CACHE_AUTO_SYNC",
        description="Refresh the cache automatically when it is stale",
    )
    full_sync_interval_hours: float = Field(
        default=CacheLimits.FULL_SYNC_INTERVAL_HOURS,
        gt=0,
        alias="GRAVITY_FORMS_CACHE_FULL_SYNC_INTERVAL_HOURS",
        description="Hours between full rescans in hybrid mode",
    )

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


def load_config() -> Config:
    """Load configuration from environment and .env file.

    Raises:
        ConfigurationError: If any value is missing its required shape or range
    """
    try:
        return Config()
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", {"errors": e.errors()}) from e
