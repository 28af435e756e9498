"""
Declarative HTTP scenarios.

A ``Scenario`` is plain data: method, path, optional JSON body and the
expected outcome. ``execute`` sends it, ``run_scenario`` sends it and checks
the expectations.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from pydantic import TypeAdapter, ValidationError
from pydantic_core import to_jsonable_python

from harness.application import AppHandle
from harness.errors import ScenarioAssertionError
from shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Scenario:
    """One HTTP request and what its response must look like."""
    method: str
    path: str
    body: Any = None
    expected_status: Optional[int] = 200
    expected_body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ScenarioResponse:
    """Status, headers and decoded body of a response."""
    method: str
    path: str
    status_code: int
    headers: Dict[str, str]
    body: Any

    def parse(self, shape: Any) -> Any:
        """
        Deserialize the body into ``shape`` (a pydantic model, ``List[Model]``, ...).

        Raises:
            ScenarioAssertionError: If the body does not fit the shape
        """
        try:
            return TypeAdapter(shape).validate_python(self.body)
        except ValidationError as e:
            raise ScenarioAssertionError(
                f"{self.method} {self.path}: body does not match {shape!r}: {e}",
                method=self.method,
                path=self.path,
                actual_status=self.status_code,
                body=self.body,
            ) from e


def encode_body(body: Any) -> Any:
    """JSON-compatible form of a body; pydantic models use their aliases."""
    if body is None:
        return None
    return to_jsonable_python(body, by_alias=True)


def _decode(response) -> Any:
    if not response.content:
        return None
    if "json" in response.headers.get("content-type", ""):
        return response.json()
    return response.text


async def execute(app: AppHandle, scenario: Scenario) -> ScenarioResponse:
    """
    Send the scenario's request without checking expectations.

    Args:
        app: Booted application
        scenario: Request description

    Returns:
        Structured response
    """
    response = await app.request(
        scenario.method,
        scenario.path,
        json=encode_body(scenario.body),
        headers=dict(scenario.headers) or None,
    )
    result = ScenarioResponse(
        method=scenario.method.upper(),
        path=scenario.path,
        status_code=response.status_code,
        headers=dict(response.headers),
        body=_decode(response),
    )
    logger.debug(
        "scenario_executed",
        method=result.method,
        path=result.path,
        status_code=result.status_code
    )
    return result


async def run_scenario(app: AppHandle, scenario: Scenario) -> ScenarioResponse:
    """
    Send the scenario's request and check status and, if given, body.

    Raises:
        ScenarioAssertionError: On any mismatch
    """
    response = await execute(app, scenario)

    if scenario.expected_status is not None and response.status_code != scenario.expected_status:
        raise ScenarioAssertionError(
            f"{response.method} {response.path}: expected status {scenario.expected_status}, "
            f"got {response.status_code}: {response.body!r}",
            method=response.method,
            path=response.path,
            expected_status=scenario.expected_status,
            actual_status=response.status_code,
            body=response.body,
        )

    if scenario.expected_body is not None:
        expected = encode_body(scenario.expected_body)
        if response.body != expected:
            raise ScenarioAssertionError(
                f"{response.method} {response.path}: expected body {expected!r}, got {response.body!r}",
                method=response.method,
                path=response.path,
                expected_status=scenario.expected_status,
                actual_status=response.status_code,
                body=response.body,
            )

    return response


async def get_json(app: AppHandle, path: str, shape: Any) -> Any:
    """GET ``path``, require 200, and deserialize the body into ``shape``."""
    response = await run_scenario(app, Scenario("GET", path, expected_status=200))
    return response.parse(shape)
