"""Testcontainers configuration for the ephemeral PostgreSQL instance.

Only starts and stops the container. Readiness is polled asynchronously by
``harness.database`` so the wait does not hold a thread.
"""

from typing import Optional

from testcontainers.core.container import DockerContainer

from shared.models import ConnectionDescriptor, DatabaseConfig


class PostgresDatabaseContainer(DockerContainer):
    """PostgreSQL container configured from a ``DatabaseConfig``."""

    def __init__(self, config: DatabaseConfig, **kwargs: object) -> None:
        """Initialize PostgreSQL container.

        Args:
            config: Image, database name and credentials
            **kwargs: Additional container arguments
        """
        super().__init__(image=config.image, **kwargs)
        self.config = config

        self.with_exposed_ports(config.port)
        self.with_env("POSTGRES_DB", config.database)
        self.with_env("POSTGRES_USER", config.username)
        self.with_env("POSTGRES_PASSWORD", config.password)

    @property
    def container_id(self) -> Optional[str]:
        """Docker id of the running container, None before start."""
        wrapped = self.get_wrapped_container()
        return wrapped.id if wrapped is not None else None

    def get_connection_descriptor(self) -> ConnectionDescriptor:
        """Get host, mapped port and credentials of the started container.

        Returns:
            Connection descriptor reachable from the test process
        """
        return ConnectionDescriptor(
            host=self.get_container_host_ip(),
            port=int(self.get_exposed_port(self.config.port)),
            database=self.config.database,
            username=self.config.username,
            password=self.config.password,
        )
