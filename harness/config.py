"""
Harness configuration using Pydantic Settings.

All settings can be overridden via environment variables with the prefix
"HARNESS_" (e.g., HARNESS_STARTUP_TIMEOUT=120).
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models import DatabaseConfig


class HarnessSettings(BaseSettings):
    """Timeouts and defaults for ephemeral test environments."""

    # =========================================================================
    # Database Defaults
    # =========================================================================

    postgres_image: str = Field(
        default="postgres:15-alpine",
        description="PostgreSQL image used for ephemeral databases"
    )
    database: str = Field(
        default="postgres",
        description="Database name"
    )
    username: str = Field(
        default="postgres",
        description="Database superuser"
    )
    password: str = Field(
        default="Password12!",
        description="Database superuser password",
        repr=False
    )

    # =========================================================================
    # Timeouts (seconds)
    # =========================================================================

    startup_timeout: float = Field(
        default=60.0,
        description="Time allowed for a database to accept connections",
        gt=0
    )
    poll_interval: float = Field(
        default=0.5,
        description="Delay between readiness probes",
        gt=0
    )
    boot_timeout: float = Field(
        default=30.0,
        description="Time allowed for application startup plus migrations",
        gt=0
    )
    request_timeout: float = Field(
        default=10.0,
        description="Timeout for a single HTTP request to the application",
        gt=0
    )

    # =========================================================================
    # Logging
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="text",
        description="Log format: json|text"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    def database_config(self) -> DatabaseConfig:
        """Default per-instance database configuration."""
        return DatabaseConfig(
            image=self.postgres_image,
            database=self.database,
            username=self.username,
            password=self.password,
        )

    model_config = SettingsConfigDict(
        env_prefix="HARNESS_",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_harness_settings() -> HarnessSettings:
    """Get cached harness settings instance."""
    return HarnessSettings()


def clear_harness_settings_cache() -> None:
    """Clear the settings cache so environment changes are picked up."""
    get_harness_settings.cache_clear()
