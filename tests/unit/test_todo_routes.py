"""
Unit tests for the Todo API routes.

The application is booted in-process through the harness without a
database; TodoItems routes use an in-memory repository.

Tests cover:
- Weather forecast stub returns five entries
- TodoItems create, read, list, replace and delete
- Status codes for missing items, duplicate ids and id mismatches
- Health, readiness and metrics endpoints
"""

from typing import List

import pytest

from api.src.main import create_app
from api.src.models.todo import TodoItem
from api.src.models.weather import WeatherForecast
from harness.application import boot_application
from harness.scenario import Scenario, get_json, run_scenario


# ============================================================================
# WEATHER FORECAST
# ============================================================================


class TestWeatherForecast:
    """Test GET /WeatherForecast."""

    @pytest.mark.asyncio
    async def test_returns_five_entries(self, todo_app):
        """Test the stub always returns exactly five forecasts."""
        forecasts = await get_json(todo_app, "/WeatherForecast", List[WeatherForecast])

        assert len(forecasts) == 5

    @pytest.mark.asyncio
    async def test_entries_use_camel_case(self, todo_app):
        """Test forecast JSON field names."""
        response = await run_scenario(todo_app, Scenario("GET", "/WeatherForecast"))

        assert set(response.body[0]) == {"date", "temperatureC", "temperatureF", "summary"}

    @pytest.mark.asyncio
    async def test_boots_without_any_database(self):
        """Test the weather endpoint works on an app with no database configured."""
        async with await boot_application(create_app, None) as app:
            forecasts = await get_json(app, "/WeatherForecast", List[WeatherForecast])

        assert len(forecasts) == 5


# ============================================================================
# TODO ITEMS
# ============================================================================


class TestTodoItems:
    """Test /api/TodoItems against the in-memory repository."""

    @pytest.mark.asyncio
    async def test_post_then_get(self, todo_app):
        """Test a posted item is returned by GET on its id."""
        item = TodoItem(id=1, name="TestName", is_complete=False)

        created = await run_scenario(
            todo_app, Scenario("POST", "/api/TodoItems", body=item, expected_status=201)
        )
        fetched = await get_json(todo_app, "/api/TodoItems/1", TodoItem)

        assert created.headers["location"] == "/api/TodoItems/1"
        assert created.body == {"id": 1, "name": "TestName", "isComplete": False}
        assert fetched.name == "TestName"

    @pytest.mark.asyncio
    async def test_post_without_id_assigns_one(self, todo_app):
        """Test an omitted id is assigned."""
        created = await run_scenario(
            todo_app, Scenario("POST", "/api/TodoItems", body={"name": "walk dog"}, expected_status=201)
        )

        assert created.body["id"] == 1
        assert created.body["isComplete"] is False

    @pytest.mark.asyncio
    async def test_duplicate_id_conflicts(self, todo_app):
        """Test posting an existing id returns 409."""
        body = {"id": 5, "name": "a", "isComplete": False}
        await run_scenario(todo_app, Scenario("POST", "/api/TodoItems", body=body, expected_status=201))

        await run_scenario(todo_app, Scenario("POST", "/api/TodoItems", body=body, expected_status=409))

    @pytest.mark.asyncio
    async def test_get_missing_returns_404(self, todo_app):
        """Test an unknown id returns 404."""
        response = await run_scenario(todo_app, Scenario("GET", "/api/TodoItems/42", expected_status=404))

        assert "42" in response.body["detail"]

    @pytest.mark.asyncio
    async def test_list_is_ordered(self, todo_app):
        """Test listing returns items ordered by id."""
        for item_id in (3, 1, 2):
            await run_scenario(
                todo_app,
                Scenario("POST", "/api/TodoItems", body={"id": item_id, "name": f"n{item_id}"}, expected_status=201),
            )

        items = await get_json(todo_app, "/api/TodoItems", List[TodoItem])

        assert [item.id for item in items] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_put_replaces_item(self, todo_app):
        """Test PUT updates name and completion flag."""
        await run_scenario(
            todo_app, Scenario("POST", "/api/TodoItems", body={"id": 1, "name": "a"}, expected_status=201)
        )

        await run_scenario(
            todo_app,
            Scenario("PUT", "/api/TodoItems/1", body={"id": 1, "name": "b", "isComplete": True}, expected_status=204),
        )

        await run_scenario(
            todo_app,
            Scenario("GET", "/api/TodoItems/1", expected_body={"id": 1, "name": "b", "isComplete": True}),
        )

    @pytest.mark.asyncio
    async def test_put_id_mismatch_returns_400(self, todo_app):
        """Test PUT with a body id differing from the path id is rejected."""
        await run_scenario(
            todo_app,
            Scenario("PUT", "/api/TodoItems/1", body={"id": 2, "name": "b"}, expected_status=400),
        )

    @pytest.mark.asyncio
    async def test_put_missing_returns_404(self, todo_app):
        """Test PUT on an unknown id returns 404."""
        await run_scenario(
            todo_app,
            Scenario("PUT", "/api/TodoItems/9", body={"id": 9, "name": "b"}, expected_status=404),
        )

    @pytest.mark.asyncio
    async def test_delete(self, todo_app):
        """Test DELETE removes the item and a second DELETE returns 404."""
        await run_scenario(
            todo_app, Scenario("POST", "/api/TodoItems", body={"id": 1, "name": "a"}, expected_status=201)
        )

        await run_scenario(todo_app, Scenario("DELETE", "/api/TodoItems/1", expected_status=204))
        await run_scenario(todo_app, Scenario("DELETE", "/api/TodoItems/1", expected_status=404))
        await run_scenario(todo_app, Scenario("GET", "/api/TodoItems/1", expected_status=404))

    @pytest.mark.asyncio
    async def test_invalid_body_returns_422(self, todo_app):
        """Test a body with the wrong types fails validation."""
        response = await run_scenario(
            todo_app,
            Scenario("POST", "/api/TodoItems", body={"id": "not-a-number"}, expected_status=422),
        )

        assert response.body["detail"][0]["loc"][-1] == "id"

    @pytest.mark.asyncio
    async def test_id_beyond_bigint_rejected(self, todo_app, todo_repository):
        """Test a body id outside the 64-bit column range fails validation."""
        response = await run_scenario(
            todo_app,
            Scenario("POST", "/api/TodoItems", body={"id": 2**63, "name": "x"}, expected_status=422),
        )

        assert response.body["detail"][0]["loc"][-1] == "id"
        assert todo_repository.items == {}

    @pytest.mark.asyncio
    async def test_largest_bigint_id_accepted(self, todo_app):
        """Test the upper bound of the id column is a valid id."""
        await run_scenario(
            todo_app,
            Scenario("POST", "/api/TodoItems", body={"id": 2**63 - 1, "name": "x"}, expected_status=201),
        )

        await run_scenario(todo_app, Scenario("GET", f"/api/TodoItems/{2**63 - 1}"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    async def test_path_id_beyond_bigint_rejected(self, todo_app, method):
        """Test a path id outside the 64-bit column range fails validation."""
        body = {"name": "x"} if method == "PUT" else None

        response = await run_scenario(
            todo_app,
            Scenario(method, f"/api/TodoItems/{2**63}", body=body, expected_status=422),
        )

        assert response.body["detail"][0]["loc"] == ["path", "item_id"]


# ============================================================================
# OPERATIONAL ENDPOINTS
# ============================================================================


class TestOperationalEndpoints:
    """Test health, readiness, metrics and database-less behaviour."""

    @pytest.mark.asyncio
    async def test_todo_items_unavailable_without_database(self):
        """Test TodoItems routes answer 503 when no database is configured."""
        async with await boot_application(create_app, None) as app:
            await run_scenario(app, Scenario("GET", "/api/TodoItems/1", expected_status=503))

    @pytest.mark.asyncio
    async def test_health(self, todo_app):
        """Test the liveness endpoint."""
        response = await run_scenario(todo_app, Scenario("GET", "/health"))

        assert response.body["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_ready_without_database(self, todo_app):
        """Test readiness fails when there is no database."""
        response = await run_scenario(todo_app, Scenario("GET", "/ready", expected_status=503))

        assert response.body["checks"] == {"database": "unhealthy"}

    @pytest.mark.asyncio
    async def test_metrics_count_requests(self, todo_app):
        """Test request metrics are exposed in Prometheus format."""
        await run_scenario(todo_app, Scenario("GET", "/health"))
        response = await run_scenario(todo_app, Scenario("GET", "/metrics"))

        assert 'endpoint="/health"' in response.body
        assert "http_requests_total" in response.body
