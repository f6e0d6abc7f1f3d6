"""Configuration management for rotauth.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded at application
startup and is immutable during runtime.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "change-me-in-production-use-openssl-rand-hex-32"


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="ROTAUTH_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "rotauth"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./rt_data/rotauth.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600
    db_echo: bool = False

    # Token Settings
    secret_key: str = Field(
        default=DEFAULT_SECRET_KEY,
        description="Secret key for access token signing",
    )
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256"
    jwt_issuer: str = "rotauth"
    default_audience: str = "rotauth-api"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 30

    # Rotation Settings
    scope_policy: Literal["strict", "downgrade"] = Field(
        default="strict",
        description="How to treat a requested scope wider than the original grant",
    )
    reuse_grace_seconds: int = Field(
        default=0,
        ge=0,
        description="Window in which a just-rotated token is rejected without revoking the family",
    )
    conflict_max_retries: int = Field(default=5, ge=1)
    conflict_backoff_ms: int = Field(default=10, ge=0)
    signing_timeout_seconds: float = Field(default=2.0, gt=0)

    # Audit Settings
    audit_sinks: list[str] = Field(default=["log", "database"])
    audit_queue_size: int = 10000
    audit_max_attempts: int = 3

    # Retention Settings
    family_retention_days: int = 30

    # Admin Settings
    admin_api_key: str | None = Field(
        default=None,
        description="Shared secret for the admin endpoints (disabled when unset)",
    )
    admin_api_key_header: str = "X-Admin-Key"

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("audit_sinks", mode="before")
    @classmethod
    def parse_audit_sinks(cls, v: str | list[str]) -> list[str]:
        """Parse audit sinks from comma-separated string or list."""
        if isinstance(v, str):
            return [sink.strip() for sink in v.split(",") if sink.strip()]
        return v

    @field_validator("audit_sinks")
    @classmethod
    def validate_audit_sinks(cls, v: list[str]) -> list[str]:
        """Reject unknown audit sink names."""
        unknown = set(v) - {"log", "database", "memory"}
        if unknown:
            raise ValueError(f"Unknown audit sinks: {', '.join(sorted(unknown))}")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"

    @model_validator(mode="after")
    def validate_sqlite_workers(self) -> "Settings":
        """Validate that SQLite is not used with multiple workers."""
        if self.workers > 1 and self.database_url.startswith("sqlite"):
            raise ValueError(
                "SQLite does not support multiple worker processes. "
                f"Requested {self.workers} workers, but SQLite requires workers=1. "
                "Either use --workers 1 or switch to PostgreSQL."
            )
        return self

    @model_validator(mode="after")
    def validate_production_secret(self) -> "Settings":
        """Refuse to sign tokens with the default key in production."""
        if self.is_production and self.secret_key == DEFAULT_SECRET_KEY:
            raise ValueError("ROTAUTH_SECRET_KEY must be set in production")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    This function caches the settings instance to avoid reloading
    configuration on every call. Settings are loaded once at startup.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()
