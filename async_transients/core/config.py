"""
Async Transients Configuration

Configuration management with environment variable support.
Every setting has a safe default so the library works without an env file.
"""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import DEFAULT_TTL_SECONDS, NAME_MAX_LENGTH

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Library settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="TRANSIENTS_",
        case_sensitive=True,
        extra="ignore",
    )

    # Transient defaults
    DEFAULT_TTL_SECONDS: int = Field(
        default=DEFAULT_TTL_SECONDS, ge=0, description="Default transient TTL"
    )
    NAME_MAX_LENGTH: int = Field(
        default=NAME_MAX_LENGTH,
        ge=1,
        le=250,
        description="Transient names longer than this are truncated",
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_KEY_PREFIX: str = Field(
        default="", description="Prefix prepended to every transient key"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECT_ATTEMPTS: int = Field(
        default=3, ge=1, le=10, description="Connect-time ping attempts"
    )
    STALE_RETENTION_SECONDS: int = Field(
        default=7 * 86400,
        ge=0,
        description="How long an expired record is kept for stale serving (0 = forever)",
    )

    # Regeneration scheduling
    REGENERATION_DELAY_SECONDS: float = Field(
        default=0.0, ge=0.0, description="Delay before a scheduled regeneration is due"
    )
    SCHEDULER_POLL_INTERVAL: float = Field(
        default=1.0, gt=0.0, le=60.0, description="Job runner polling interval"
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_JSON: bool = Field(default=True, description="Render logs as JSON")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("REDIS_URL")
    @classmethod
    def validate_redis_url(cls, v):
        """Validate Redis URL scheme."""
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("REDIS_URL must be a redis://, rediss:// or unix:// URL")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
