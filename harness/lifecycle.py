"""
Per-test environment lifecycle.

``EnvironmentLifecycle`` owns one database instance and one application
instance for exactly one test. It is an async context manager: entering
provisions, boots and migrates; leaving tears everything down exactly once,
whatever happened in between (assertion failure, exception, cancellation).

States::

    IDLE -> PROVISIONING -> READY -> APP_BOOTING -> APP_READY -> EXECUTING*
         -> TEARING_DOWN -> DISPOSED

TEARING_DOWN is reachable from every state before it.
"""

import uuid
from contextlib import asynccontextmanager
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Set


from harness.application import AppFactory, AppHandle, MigrationHook, boot_application
from harness.config import HarnessSettings, get_harness_settings
from harness.database import DatabaseHandle, acquire
from harness.errors import LifecycleError, TeardownError
from harness.scenario import Scenario, ScenarioResponse, execute, get_json, run_scenario
from shared.logging import get_logger
from shared.models import DatabaseConfig

logger = get_logger(__name__)

AcquireFunc = Callable[..., Awaitable[DatabaseHandle]]


class LifecycleState(str, Enum):
    """States of one test environment."""

    IDLE = "idle"
    PROVISIONING = "provisioning"
    READY = "ready"
    APP_BOOTING = "app_booting"
    APP_READY = "app_ready"
    EXECUTING = "executing"
    TEARING_DOWN = "tearing_down"
    DISPOSED = "disposed"


_TRANSITIONS: Dict[LifecycleState, Set[LifecycleState]] = {
    LifecycleState.IDLE: {LifecycleState.PROVISIONING},
    LifecycleState.PROVISIONING: {LifecycleState.READY},
    LifecycleState.READY: {LifecycleState.APP_BOOTING},
    LifecycleState.APP_BOOTING: {LifecycleState.APP_READY},
    LifecycleState.APP_READY: {LifecycleState.EXECUTING},
    LifecycleState.EXECUTING: {LifecycleState.EXECUTING},
    LifecycleState.TEARING_DOWN: {LifecycleState.DISPOSED},
    LifecycleState.DISPOSED: set(),
}


def can_transition(current: LifecycleState, new: LifecycleState) -> bool:
    """Whether ``current -> new`` is a legal step."""
    if new is LifecycleState.TEARING_DOWN:
        return current not in (LifecycleState.TEARING_DOWN, LifecycleState.DISPOSED)
    return new in _TRANSITIONS[current]


class EnvironmentLifecycle:
    """
    Ephemeral database plus booted application for a single test.

    Example:
        async with EnvironmentLifecycle(create_app, migrate_app) as env:
            await env.run(Scenario("POST", "/api/TodoItems", body=item, expected_status=201))
    """

    def __init__(
        self,
        app_factory: AppFactory,
        migration_hook: Optional[MigrationHook] = None,
        *,
        database_config: Optional[DatabaseConfig] = None,
        settings: Optional[HarnessSettings] = None,
        connection_setting: str = "database_url",
        acquire_database: AcquireFunc = acquire,
    ):
        self.id = uuid.uuid4().hex[:8]
        self.settings = settings or get_harness_settings()
        self.database_config = database_config or self.settings.database_config()
        self.app_factory = app_factory
        self.migration_hook = migration_hook
        self.connection_setting = connection_setting

        self.state = LifecycleState.IDLE
        self.history: List[LifecycleState] = [LifecycleState.IDLE]
        self.database: Optional[DatabaseHandle] = None
        self.app: Optional[AppHandle] = None
        self.teardown_count = 0
        self.teardown_errors: List[BaseException] = []

        self._acquire = acquire_database
        self._log = logger.bind(lifecycle=self.id)

    # ========================================================================
    # State machine
    # ========================================================================

    def _transition(self, new: LifecycleState) -> None:
        if not can_transition(self.state, new):
            raise LifecycleError(f"Illegal transition {self.state.value} -> {new.value}")
        self._log.debug("lifecycle_transition", old=self.state.value, new=new.value)
        self.state = new
        self.history.append(new)

    # ========================================================================
    # Setup
    # ========================================================================

    async def start(self) -> "EnvironmentLifecycle":
        """
        Provision the database, boot the application and migrate.

        Raises:
            ProvisioningError, BootError, MigrationError: Setup failed. Nothing
                acquired so far is released here; call ``teardown``.
        """
        self._transition(LifecycleState.PROVISIONING)
        self.database = await self._acquire(self.database_config, settings=self.settings)
        self._transition(LifecycleState.READY)

        self._transition(LifecycleState.APP_BOOTING)
        self.app = await boot_application(
            self.app_factory,
            self.database.descriptor,
            self.migration_hook,
            settings=self.settings,
            connection_setting=self.connection_setting,
        )
        self._transition(LifecycleState.APP_READY)
        self._log.info("environment_ready", image=self.database_config.image)
        return self

    # ========================================================================
    # Execution
    # ========================================================================

    def _begin_request(self) -> AppHandle:
        self._transition(LifecycleState.EXECUTING)
        return self.app

    async def execute(self, scenario: Scenario) -> ScenarioResponse:
        """Send a request without checking expectations."""
        return await execute(self._begin_request(), scenario)

    async def run(self, scenario: Scenario) -> ScenarioResponse:
        """Send a request and check its expectations."""
        return await run_scenario(self._begin_request(), scenario)

    async def get_json(self, path: str, shape: Any) -> Any:
        """GET ``path``, require 200, deserialize into ``shape``."""
        return await get_json(self._begin_request(), path, shape)

    # ========================================================================
    # Teardown
    # ========================================================================

    async def teardown(self) -> None:
        """
        Dispose the application, then release the database.

        Runs at most once; later calls return immediately. Both steps are
        attempted even if the first fails or the task is cancelled.

        Raises:
            TeardownError: If any release step failed
        """
        if not can_transition(self.state, LifecycleState.TEARING_DOWN):
            return
        self._transition(LifecycleState.TEARING_DOWN)
        self.teardown_count += 1

        errors: List[BaseException] = []
        try:
            if self.app is not None:
                try:
                    await self.app.aclose()
                except TeardownError as e:
                    errors.append(e)
        finally:
            if self.database is not None:
                try:
                    await self.database.release()
                except TeardownError as e:
                    errors.append(e)
            self.teardown_errors = errors
            self._transition(LifecycleState.DISPOSED)

        if errors:
            self._log.error("teardown_failed", errors=[str(e) for e in errors])
            raise TeardownError(f"Teardown failed: {errors[0]}", errors=errors) from errors[0]
        self._log.info("environment_disposed")

    async def _teardown_after(self, error: Optional[BaseException]) -> None:
        """Tear down; a teardown failure never replaces ``error``."""
        try:
            await self.teardown()
        except TeardownError as e:
            if error is None:
                raise
            error.add_note(f"teardown also failed: {e}")
            self._log.error(
                "teardown_failed_after_error",
                error=str(error),
                teardown_error=str(e)
            )

    async def __aenter__(self) -> "EnvironmentLifecycle":
        try:
            return await self.start()
        except BaseException as e:
            await self._teardown_after(e)
            raise

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self._teardown_after(exc)
        return False


@asynccontextmanager
async def ephemeral_environment(
    app_factory: AppFactory,
    migration_hook: Optional[MigrationHook] = None,
    **kwargs: Any,
) -> AsyncIterator[EnvironmentLifecycle]:
    """Functional spelling of ``async with EnvironmentLifecycle(...)``."""
    async with EnvironmentLifecycle(app_factory, migration_hook, **kwargs) as env:
        yield env
