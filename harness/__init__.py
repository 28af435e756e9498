"""Ephemeral-database integration harness.

Provisions a disposable PostgreSQL container, boots an application against
it, runs its migrations, drives it over HTTP and tears everything down.
"""

from .application import AppHandle, boot_application
from .config import HarnessSettings, get_harness_settings
from .database import DatabaseHandle, acquire, release
from .errors import (
    BootError,
    HarnessError,
    LifecycleError,
    MigrationError,
    ProvisioningError,
    ScenarioAssertionError,
    TeardownError,
)
from .lifecycle import EnvironmentLifecycle, LifecycleState, ephemeral_environment
from .scenario import Scenario, ScenarioResponse, execute, get_json, run_scenario

__all__ = [
    "AppHandle",
    "BootError",
    "DatabaseHandle",
    "EnvironmentLifecycle",
    "HarnessError",
    "HarnessSettings",
    "LifecycleError",
    "LifecycleState",
    "MigrationError",
    "ProvisioningError",
    "Scenario",
    "ScenarioAssertionError",
    "ScenarioResponse",
    "TeardownError",
    "acquire",
    "boot_application",
    "ephemeral_environment",
    "execute",
    "get_harness_settings",
    "get_json",
    "release",
    "run_scenario",
]
