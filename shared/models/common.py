"""Common Pydantic models shared by the harness and the Todo API."""

from enum import Enum
from typing import Dict
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class DatabaseConfig(BaseModel):
    """Configuration for one ephemeral PostgreSQL instance."""

    model_config = ConfigDict(frozen=True)

    image: str = Field("postgres:15-alpine", description="PostgreSQL image tag")
    database: str = Field("postgres", description="Database name")
    username: str = Field("postgres", description="Superuser name")
    password: str = Field("Password12!", description="Superuser password", repr=False)
    port: int = Field(5432, description="Port exposed inside the container", gt=0, lt=65536)

    @field_validator("image", "database", "username")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Reject empty identifiers."""
        if not v.strip():
            raise ValueError("value cannot be blank")
        return v


class ConnectionDescriptor(BaseModel):
    """Where and how to reach a provisioned database."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., description="Host reachable from the test process")
    port: int = Field(..., description="Mapped host port", gt=0, lt=65536)
    database: str = Field(..., description="Database name")
    username: str = Field(..., description="User name")
    password: str = Field(..., description="Password", repr=False)

    @property
    def dsn(self) -> str:
        """libpq-style URL accepted by asyncpg."""
        user = quote(self.username, safe="")
        password = quote(self.password, safe="")
        return f"postgresql://{user}:{password}@{self.host}:{self.port}/{self.database}"

    @property
    def credentials(self) -> Dict[str, str]:
        """Credentials bundle as keyword arguments for a driver."""
        return {"user": self.username, "password": self.password, "database": self.database}
