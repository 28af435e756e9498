"""
Error taxonomy for the integration harness.

Every harness failure derives from ``HarnessError``. Scenario mismatches are
also ``AssertionError`` so test runners report them as test failures rather
than errors in the environment.
"""

from typing import Any, List, Optional


class HarnessError(Exception):
    """Base class for all harness errors."""


class LifecycleError(HarnessError):
    """An operation was attempted in a lifecycle state that does not allow it."""


class ProvisioningError(HarnessError):
    """The database instance failed to start or become ready in time."""

    def __init__(self, message: str, image: Optional[str] = None, timeout: Optional[float] = None):
        super().__init__(message)
        self.image = image
        self.timeout = timeout


class BootError(HarnessError):
    """The application under test failed to start."""


class MigrationError(HarnessError):
    """The migration hook failed against the ready database."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ScenarioAssertionError(HarnessError, AssertionError):
    """An HTTP response did not match the scenario's expectations."""

    def __init__(
        self,
        message: str,
        method: str,
        path: str,
        expected_status: Optional[int] = None,
        actual_status: Optional[int] = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.method = method
        self.path = path
        self.expected_status = expected_status
        self.actual_status = actual_status
        self.body = body


class TeardownError(HarnessError):
    """Releasing one or more resources failed."""

    def __init__(self, message: str, errors: Optional[List[BaseException]] = None):
        super().__init__(message)
        self.errors = list(errors or [])
