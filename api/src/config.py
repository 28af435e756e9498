"""
FastAPI application configuration using Pydantic Settings.

Provides centralized configuration for:
- API settings (name, version, bind address)
- Database connection (PostgreSQL via asyncpg)
- Logging and monitoring

All settings support environment variable overrides and .env file loading.
Keyword arguments passed to ``Settings`` take precedence over both, which is
how the integration harness injects the connection string of an ephemeral
database.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables with the
    prefix "TODO_API_" (e.g., TODO_API_DATABASE_URL).
    """

    # =========================================================================
    # API Settings
    # =========================================================================

    app_name: str = Field(
        default="Todo API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="API version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode - enables verbose error traces"
    )
    environment: str = Field(
        default="development",
        description="Environment: development|staging|production"
    )
    host: str = Field(
        default="0.0.0.0",
        description="API bind host"
    )
    port: int = Field(
        default=8000,
        description="API bind port",
        gt=0,
        lt=65536
    )

    # =========================================================================
    # Database Settings (PostgreSQL)
    # =========================================================================

    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection URL; TodoItems routes are unavailable when unset"
    )
    database_pool_min_size: int = Field(
        default=1,
        description="Connections opened when the pool starts",
        ge=0,
        le=100
    )
    database_pool_max_size: int = Field(
        default=10,
        description="Database connection pool size",
        gt=0,
        le=100
    )
    database_command_timeout: float = Field(
        default=60.0,
        description="Per-statement timeout (seconds)",
        gt=0
    )

    # =========================================================================
    # Logging and Monitoring
    # =========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG|INFO|WARNING|ERROR|CRITICAL"
    )
    log_format: str = Field(
        default="json",
        description="Log format: json|text"
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics"
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the allowed values."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got: {v}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is one of the allowed values."""
        allowed = ["development", "staging", "production"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got: {v}")
        return v_lower

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        allowed = ["json", "text"]
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got: {v}")
        return v_lower

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    @property
    def database_dsn(self) -> Optional[str]:
        """Database URL without an SQLAlchemy driver suffix, as asyncpg expects."""
        if self.database_url is None:
            return None
        return self.database_url.replace("postgresql+asyncpg://", "postgresql://")

    model_config = SettingsConfigDict(
        env_prefix="TODO_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_default=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded from:
    1. Environment variables with TODO_API_ prefix
    2. .env file in the current directory
    3. Default values

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    Useful for testing when you need to reload settings with different
    environment variables.
    """
    get_settings.cache_clear()
