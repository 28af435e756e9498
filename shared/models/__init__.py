"""Shared Pydantic models."""

from .common import (
    ConnectionDescriptor,
    DatabaseConfig,
    HealthStatus,
)

__all__ = [
    "ConnectionDescriptor",
    "DatabaseConfig",
    "HealthStatus",
]
