"""Shared fixtures for Todo API environments."""

from typing import AsyncIterator

import pytest
import pytest_asyncio

from api.src.dependencies import get_todo_repository
from api.src.main import create_app
from api.src.migrations import migrate_app
from harness import AppHandle, EnvironmentLifecycle, HarnessSettings, boot_application
from shared.models import DatabaseConfig
from tests.fakes import InMemoryTodoRepository


@pytest.fixture
def todo_repository() -> InMemoryTodoRepository:
    return InMemoryTodoRepository()


@pytest_asyncio.fixture
async def todo_app(todo_repository: InMemoryTodoRepository) -> AsyncIterator[AppHandle]:
    """Todo API booted without a database; routes use the in-memory repository."""

    def factory(**overrides):
        app = create_app(**overrides)
        app.dependency_overrides[get_todo_repository] = lambda: todo_repository
        return app

    async with await boot_application(factory, None) as handle:
        yield handle


@pytest_asyncio.fixture
async def todo_environment(
    require_docker: None,
    database_config: DatabaseConfig,
    harness_settings: HarnessSettings,
) -> AsyncIterator[EnvironmentLifecycle]:
    """Fresh PostgreSQL plus migrated Todo API for one test."""
    async with EnvironmentLifecycle(
        create_app,
        migrate_app,
        database_config=database_config,
        settings=harness_settings,
    ) as env:
        yield env
