"""Test doubles for running the harness without Docker or PostgreSQL."""

import functools
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException

from api.src.models.todo import TodoItem
from api.src.repositories.todo_repo import TodoItemExistsError
from harness.config import HarnessSettings
from harness.database import acquire
from shared.models import ConnectionDescriptor, DatabaseConfig


def fast_settings(**overrides: Any) -> HarnessSettings:
    """Harness settings with timeouts suited to in-process tests."""
    values = {
        "startup_timeout": 1.0,
        "poll_interval": 0.01,
        "boot_timeout": 1.0,
        "request_timeout": 1.0,
    }
    values.update(overrides)
    return HarnessSettings(**values)


class FakeContainer:
    """Stands in for PostgresDatabaseContainer; records start/stop calls."""

    _next_port = 15432

    def __init__(self, config: DatabaseConfig, fail_start: bool = False, fail_stop: bool = False):
        self.config = config
        self.fail_start = fail_start
        self.fail_stop = fail_stop
        self.start_calls = 0
        self.stop_calls = 0
        self.port = FakeContainer._next_port
        FakeContainer._next_port += 1

    @property
    def running(self) -> bool:
        return self.start_calls > self.stop_calls

    @property
    def container_id(self) -> str:
        return f"fake-{self.port}"

    def start(self) -> "FakeContainer":
        self.start_calls += 1
        if self.fail_start:
            raise RuntimeError("image not found")
        return self

    def stop(self) -> None:
        self.stop_calls += 1
        if self.fail_stop:
            raise RuntimeError("docker daemon went away")

    def get_connection_descriptor(self) -> ConnectionDescriptor:
        return ConnectionDescriptor(
            host="127.0.0.1",
            port=self.port,
            database=self.config.database,
            username=self.config.username,
            password=self.config.password,
        )


class ContainerRecorder:
    """Container factory that keeps every container it builds."""

    def __init__(self, **container_kwargs: Any):
        self.container_kwargs = container_kwargs
        self.containers: List[FakeContainer] = []

    def __call__(self, config: DatabaseConfig) -> FakeContainer:
        container = FakeContainer(config, **self.container_kwargs)
        self.containers.append(container)
        return container

    @property
    def last(self) -> FakeContainer:
        return self.containers[-1]


class FlakyProbe:
    """Readiness probe failing a fixed number of times before succeeding."""

    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0

    async def __call__(self, descriptor: ConnectionDescriptor) -> None:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionRefusedError(f"connection refused on port {descriptor.port}")


def fake_acquire(recorder: ContainerRecorder, probe: Optional[FlakyProbe] = None):
    """``acquire`` bound to fake containers and probe."""
    return functools.partial(acquire, container_factory=recorder, probe=probe or FlakyProbe())


class ItemsAppFactory:
    """
    Builds a small FastAPI app with an in-memory item store per instance.

    Records lifespan events and the overrides each app was built with.
    """

    def __init__(self, fail_startup: bool = False, fail_shutdown: bool = False):
        self.fail_startup = fail_startup
        self.fail_shutdown = fail_shutdown
        self.events: List[str] = []
        self.overrides: List[Dict[str, Any]] = []

    def __call__(self, **overrides: Any) -> FastAPI:
        self.overrides.append(overrides)
        events = self.events
        fail_startup = self.fail_startup
        fail_shutdown = self.fail_shutdown

        @asynccontextmanager
        async def lifespan(app: FastAPI):
            if fail_startup:
                raise ConnectionRefusedError("cannot reach database")
            events.append("startup")
            yield
            events.append("shutdown")
            if fail_shutdown:
                raise RuntimeError("pool close failed")

        app = FastAPI(title="items", lifespan=lifespan)
        app.state.items = {}

        @app.post("/items", status_code=201)
        async def create_item(item: Dict[str, Any]) -> Dict[str, Any]:
            app.state.items[item["id"]] = item
            return item

        @app.get("/items/{item_id}")
        async def get_item(item_id: int) -> Dict[str, Any]:
            if item_id not in app.state.items:
                raise HTTPException(status_code=404, detail="not found")
            return app.state.items[item_id]

        @app.get("/empty", status_code=204)
        async def empty() -> None:
            return None

        return app


class InMemoryTodoRepository:
    """Dict-backed stand-in for TodoRepository."""

    def __init__(self):
        self.items: Dict[int, TodoItem] = {}
        self._next_id = 1

    async def list_items(self) -> List[TodoItem]:
        return [self.items[key] for key in sorted(self.items)]

    async def get_item(self, item_id: int) -> Optional[TodoItem]:
        return self.items.get(item_id)

    async def create_item(self, item: TodoItem) -> TodoItem:
        item_id = item.id
        if item_id is None:
            while self._next_id in self.items:
                self._next_id += 1
            item_id = self._next_id
        if item_id in self.items:
            raise TodoItemExistsError(item_id)
        stored = item.model_copy(update={"id": item_id})
        self.items[item_id] = stored
        return stored

    async def update_item(self, item_id: int, item: TodoItem) -> bool:
        if item_id not in self.items:
            return False
        self.items[item_id] = item.model_copy(update={"id": item_id})
        return True

    async def delete_item(self, item_id: int) -> bool:
        return self.items.pop(item_id, None) is not None
