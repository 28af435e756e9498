"""
Ephemeral database provisioning.

``acquire`` starts a fresh PostgreSQL container and waits, without holding a
thread, until it accepts connections. ``release`` stops and removes it. A
handle is single-use and never shared between test lifecycles.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import asyncpg

from harness.config import HarnessSettings, get_harness_settings
from harness.containers import PostgresDatabaseContainer
from harness.errors import LifecycleError, ProvisioningError, TeardownError
from shared.logging import get_logger
from shared.models import ConnectionDescriptor, DatabaseConfig

logger = get_logger(__name__)

T = TypeVar("T")

Probe = Callable[[ConnectionDescriptor], Awaitable[None]]
ContainerFactory = Callable[[DatabaseConfig], Any]


async def probe_postgres(descriptor: ConnectionDescriptor) -> None:
    """Open one connection and run ``SELECT 1``."""
    conn = await asyncpg.connect(dsn=descriptor.dsn)
    try:
        await conn.fetchval("SELECT 1")
    finally:
        await conn.close()


async def run_blocking(func: Callable[..., T], *args: Any) -> T:
    """
    Run a blocking call in a worker thread.

    On cancellation the call is still awaited before ``CancelledError``
    propagates, so a container that is mid-start or mid-removal is never
    abandoned.
    """
    task = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(task)
    except asyncio.CancelledError:
        try:
            await task
        except Exception as e:
            logger.warning("cancelled_call_failed", call=getattr(func, "__name__", repr(func)), error=str(e))
        raise


async def wait_until_ready(
    descriptor: ConnectionDescriptor,
    probe: Probe,
    timeout: float,
    poll_interval: float,
) -> int:
    """
    Poll ``probe`` until it succeeds.

    Returns:
        Number of probe attempts

    Raises:
        ProvisioningError: If the probe has not succeeded within ``timeout``
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    attempts = 0
    last_error: Optional[Exception] = None

    while True:
        attempts += 1
        remaining = deadline - loop.time()
        try:
            await asyncio.wait_for(probe(descriptor), timeout=max(remaining, 0))
            return attempts
        except Exception as e:
            last_error = e
            logger.debug("database_not_ready", attempt=attempts, error=str(e))

        if loop.time() + poll_interval >= deadline:
            raise ProvisioningError(
                f"Database at {descriptor.host}:{descriptor.port} not ready after "
                f"{timeout:.1f}s ({attempts} attempts): {last_error}",
                timeout=timeout,
            )
        await asyncio.sleep(poll_interval)


class DatabaseHandle:
    """A provisioned database instance and the means to release it."""

    def __init__(self, config: DatabaseConfig, container: Any):
        self.config = config
        self.container = container
        self.released = False
        self._descriptor: Optional[ConnectionDescriptor] = None

    @property
    def ready(self) -> bool:
        return self._descriptor is not None and not self.released

    @property
    def descriptor(self) -> ConnectionDescriptor:
        """
        Connection descriptor of the ready instance.

        Raises:
            LifecycleError: If the instance never became ready or was released
        """
        if not self.ready:
            raise LifecycleError("Database handle is not ready")
        return self._descriptor

    @property
    def container_id(self) -> Optional[str]:
        return getattr(self.container, "container_id", None)

    async def release(self) -> None:
        """
        Stop and remove the container and its anonymous volumes.

        Idempotent. Safe on a handle whose container never started.

        Raises:
            TeardownError: If the container could not be removed
        """
        if self.released:
            return
        self.released = True

        try:
            await run_blocking(self.container.stop)
        except Exception as e:
            logger.error("database_release_failed", container_id=self.container_id, error=str(e))
            raise TeardownError(f"Failed to remove database container: {e}", errors=[e]) from e

        logger.info("database_released", image=self.config.image, container_id=self.container_id)

    async def __aenter__(self) -> "DatabaseHandle":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        try:
            await self.release()
        except TeardownError as e:
            if exc is None:
                raise
            exc.add_note(f"while releasing database: {e}")


async def _discard(handle: DatabaseHandle) -> None:
    """Release after a failed acquire; the acquire error takes priority."""
    try:
        await handle.release()
    except TeardownError as e:
        logger.error("database_discard_failed", error=str(e))


async def acquire(
    config: Optional[DatabaseConfig] = None,
    *,
    settings: Optional[HarnessSettings] = None,
    container_factory: ContainerFactory = PostgresDatabaseContainer,
    probe: Probe = probe_postgres,
) -> DatabaseHandle:
    """
    Start an isolated database instance and wait until it accepts connections.

    Args:
        config: Image, database name and credentials; harness defaults if omitted
        settings: Harness settings (timeouts)
        container_factory: Builds the container for ``config``
        probe: Readiness check run against the mapped port

    Returns:
        A ready handle; the caller owns it and must release it

    Raises:
        ProvisioningError: If the container cannot start or is not ready in time.
            Whatever was started is removed before the error propagates.
    """
    settings = settings or get_harness_settings()
    config = config or settings.database_config()

    container = container_factory(config)
    handle = DatabaseHandle(config, container)
    logger.info("database_provisioning", image=config.image, database=config.database)

    try:
        try:
            await run_blocking(container.start)
            descriptor = await run_blocking(container.get_connection_descriptor)
        except Exception as e:
            raise ProvisioningError(
                f"Failed to start {config.image}: {e}",
                image=config.image,
                timeout=settings.startup_timeout,
            ) from e

        try:
            attempts = await wait_until_ready(
                descriptor,
                probe,
                timeout=settings.startup_timeout,
                poll_interval=settings.poll_interval,
            )
        except ProvisioningError as e:
            e.image = config.image
            raise
    except BaseException:
        await _discard(handle)
        raise

    handle._descriptor = descriptor
    logger.info(
        "database_ready",
        image=config.image,
        host=descriptor.host,
        port=descriptor.port,
        attempts=attempts,
        container_id=handle.container_id
    )
    return handle


async def release(handle: DatabaseHandle) -> None:
    """Release a handle returned by ``acquire``. Idempotent."""
    await handle.release()
