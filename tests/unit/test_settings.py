"""
Unit tests for API and harness settings.

Tests cover:
- Environment variable overrides
- Keyword overrides taking precedence over the environment
- Validation of log levels and formats
"""

import pytest
from pydantic import ValidationError

from api.src.config import Settings, clear_settings_cache, get_settings
from harness.config import HarnessSettings, clear_harness_settings_cache, get_harness_settings


class TestApiSettings:
    """Test Settings."""

    def test_defaults(self, monkeypatch):
        """Test defaults when nothing is configured."""
        monkeypatch.delenv("TODO_API_DATABASE_URL", raising=False)

        settings = Settings(_env_file=None)

        assert settings.database_url is None
        assert settings.database_dsn is None
        assert settings.environment == "development"

    def test_environment_override(self, monkeypatch):
        """Test TODO_API_ variables are picked up."""
        monkeypatch.setenv("TODO_API_DATABASE_URL", "postgresql://u:p@db:5432/todo")
        monkeypatch.setenv("TODO_API_LOG_LEVEL", "debug")

        settings = Settings(_env_file=None)

        assert settings.database_url == "postgresql://u:p@db:5432/todo"
        assert settings.log_level == "DEBUG"

    def test_keyword_override_wins(self, monkeypatch):
        """Test injected values take precedence over the environment."""
        monkeypatch.setenv("TODO_API_DATABASE_URL", "postgresql://u:p@db:5432/todo")

        settings = Settings(_env_file=None, database_url="postgresql://x:y@other:5433/postgres")

        assert settings.database_url.endswith("@other:5433/postgres")

    def test_dsn_strips_driver(self):
        """Test the asyncpg DSN drops the SQLAlchemy driver suffix."""
        settings = Settings(_env_file=None, database_url="postgresql+asyncpg://u:p@db:5432/todo")

        assert settings.database_dsn == "postgresql://u:p@db:5432/todo"

    def test_invalid_log_level_rejected(self):
        """Test unknown log levels fail validation."""
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="LOUD")

    def test_cached_settings(self, monkeypatch):
        """Test get_settings caches until cleared."""
        clear_settings_cache()
        monkeypatch.setenv("TODO_API_APP_NAME", "first")
        first = get_settings()
        monkeypatch.setenv("TODO_API_APP_NAME", "second")

        assert get_settings() is first

        clear_settings_cache()
        assert get_settings().app_name == "second"
        clear_settings_cache()


class TestHarnessSettings:
    """Test HarnessSettings."""

    def test_defaults_match_database_defaults(self):
        """Test the default database configuration."""
        config = HarnessSettings().database_config()

        assert config.database == "postgres"
        assert config.username == "postgres"
        assert config.password == "Password12!"

    def test_environment_override(self, monkeypatch):
        """Test HARNESS_ variables are picked up."""
        monkeypatch.setenv("HARNESS_STARTUP_TIMEOUT", "120")
        monkeypatch.setenv("HARNESS_POSTGRES_IMAGE", "postgres:16-alpine")

        settings = HarnessSettings()

        assert settings.startup_timeout == 120.0
        assert settings.database_config().image == "postgres:16-alpine"

    def test_non_positive_timeout_rejected(self):
        """Test timeouts must be positive."""
        with pytest.raises(ValidationError):
            HarnessSettings(boot_timeout=0)

    def test_invalid_log_format_rejected(self):
        """Test unknown log formats fail validation."""
        with pytest.raises(ValidationError):
            HarnessSettings(log_format="xml")

    def test_password_hidden_from_repr(self):
        """Test the password is not part of the repr."""
        assert "Password12!" not in repr(HarnessSettings())

    def test_cached_settings(self):
        """Test get_harness_settings caches until cleared."""
        clear_harness_settings_cache()

        assert get_harness_settings() is get_harness_settings()

        clear_harness_settings_cache()
