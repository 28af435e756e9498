"""
In-process boot of the application under test.

The application is built by a factory that accepts settings overrides, its
lifespan is entered in the current task, the migration hook runs, and only
then is an HTTP client handed out. Requests go through
``httpx.ASGITransport`` so no port is bound.
"""

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx
from fastapi import FastAPI

from harness.config import HarnessSettings, get_harness_settings
from harness.errors import BootError, MigrationError, TeardownError
from shared.logging import get_logger
from shared.models import ConnectionDescriptor

logger = get_logger(__name__)

AppFactory = Callable[..., FastAPI]
MigrationHook = Callable[[FastAPI], Awaitable[Any]]

BASE_URL = "http://testserver"


class AppHandle:
    """A booted application and an HTTP client bound to it."""

    def __init__(
        self,
        app: FastAPI,
        client: httpx.AsyncClient,
        exit_stack: AsyncExitStack,
        request_timeout: float,
    ):
        self.app = app
        self.client = client
        self.request_timeout = request_timeout
        self.closed = False
        self._exit_stack = exit_stack

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response:
        """
        Send one request to the application.

        Raises:
            TimeoutError: If no response arrives within ``request_timeout``
        """
        kwargs: Dict[str, Any] = {"headers": headers}
        if json is not None:
            kwargs["json"] = json

        async with asyncio.timeout(self.request_timeout):
            return await self.client.request(method.upper(), path, **kwargs)

    async def aclose(self) -> None:
        """
        Close the client and run the application's shutdown. Idempotent.

        Raises:
            TeardownError: If shutdown failed
        """
        if self.closed:
            return
        self.closed = True

        errors = []
        try:
            await self.client.aclose()
        except Exception as e:
            errors.append(e)
        try:
            await self._exit_stack.aclose()
        except Exception as e:
            errors.append(e)

        if errors:
            logger.error("application_dispose_failed", errors=[str(e) for e in errors])
            raise TeardownError(f"Failed to dispose application: {errors[0]}", errors=errors) from errors[0]
        logger.info("application_disposed", title=self.app.title)

    async def __aenter__(self) -> "AppHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.aclose()
        except TeardownError as e:
            if exc is None:
                raise
            exc.add_note(f"while disposing application: {e}")


async def _abandon(exit_stack: AsyncExitStack) -> None:
    """Unwind a partial boot; the boot error takes priority."""
    try:
        await exit_stack.aclose()
    except Exception as e:
        logger.error("application_unwind_failed", error=str(e))


async def boot_application(
    app_factory: AppFactory,
    descriptor: Optional[ConnectionDescriptor],
    migration_hook: Optional[MigrationHook] = None,
    *,
    settings: Optional[HarnessSettings] = None,
    connection_setting: str = "database_url",
) -> AppHandle:
    """
    Boot the application against a database and migrate it.

    Args:
        app_factory: Called with ``{connection_setting: descriptor.dsn}`` as
            keyword overrides; returns a FastAPI application
        descriptor: Database to inject, or None to boot without one
        migration_hook: Awaited with the started application before any request
        settings: Harness settings (boot and request timeouts)
        connection_setting: Name of the application's connection-string setting

    Returns:
        Handle for sending requests; the caller must close it

    Raises:
        BootError: If the application could not start within ``boot_timeout``
        MigrationError: If the migration hook failed or timed out
    """
    settings = settings or get_harness_settings()
    overrides = {connection_setting: descriptor.dsn} if descriptor is not None else {}

    exit_stack = AsyncExitStack()
    phase = "boot"

    try:
        async with asyncio.timeout(settings.boot_timeout):
            app = app_factory(**overrides)
            await exit_stack.enter_async_context(app.router.lifespan_context(app))
            logger.info("application_booted", title=app.title, database=descriptor is not None)

            if migration_hook is not None:
                phase = "migration"
                await migration_hook(app)
                logger.info("application_migrated", title=app.title)
    except BaseException as e:
        await _abandon(exit_stack)
        if not isinstance(e, Exception):
            raise
        if phase == "migration":
            logger.error("migration_failed", error=str(e), error_type=type(e).__name__)
            raise MigrationError(f"Migration failed: {e!r}", cause=e) from e
        logger.error("application_boot_failed", error=str(e), error_type=type(e).__name__)
        raise BootError(f"Application failed to start: {e!r}") from e

    client = httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app, raise_app_exceptions=False),
        base_url=BASE_URL,
    )
    return AppHandle(app, client, exit_stack, settings.request_timeout)
