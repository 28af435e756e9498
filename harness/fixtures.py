"""
pytest plugin exposing the harness as fixtures.

Enable with ``pytest_plugins = ["harness.fixtures"]`` in a conftest.
Fixtures that need Docker skip the test when no daemon answers.
"""

from typing import AsyncIterator

import docker
import pytest
import pytest_asyncio

from harness.config import HarnessSettings, get_harness_settings
from harness.database import DatabaseHandle, acquire
from shared.logging import configure_logging, get_logger
from shared.models import DatabaseConfig

logger = get_logger(__name__)


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "integration: needs a Docker daemon to start PostgreSQL containers"
    )
    settings = get_harness_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name="integration-harness",
    )


def is_docker_available() -> bool:
    """Whether a Docker daemon answers ping."""
    try:
        client = docker.from_env()
        try:
            return bool(client.ping())
        finally:
            client.close()
    except Exception as e:
        logger.info("docker_unavailable", error=str(e))
        return False


@pytest.fixture(scope="session")
def harness_settings() -> HarnessSettings:
    """Harness settings from HARNESS_* environment variables."""
    return get_harness_settings()


@pytest.fixture
def database_config(harness_settings: HarnessSettings) -> DatabaseConfig:
    """Default configuration for one ephemeral database."""
    return harness_settings.database_config()


@pytest.fixture(scope="session")
def docker_available() -> bool:
    return is_docker_available()


@pytest.fixture
def require_docker(docker_available: bool) -> None:
    """Skip the test when Docker is unavailable."""
    if not docker_available:
        pytest.skip("Docker daemon not available")


@pytest_asyncio.fixture
async def ephemeral_database(
    require_docker: None,
    database_config: DatabaseConfig,
    harness_settings: HarnessSettings,
) -> AsyncIterator[DatabaseHandle]:
    """A fresh database for one test, released afterwards."""
    handle = await acquire(database_config, settings=harness_settings)
    try:
        yield handle
    finally:
        await handle.release()
