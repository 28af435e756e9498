"""
FastAPI application entry point for the Todo API.

This module provides the application factory with:
- Weather forecast and TodoItems routers
- Health and readiness endpoints
- Request logging and Prometheus metrics
- Per-application database connection pool management
- Graceful startup and shutdown

``create_app(**overrides)`` builds an independent application whose settings
are the environment-derived defaults updated with ``overrides``; the
integration harness uses it to point each instance at its own database.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

import structlog
import uvicorn
from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from api.src.config import Settings, get_settings
from api.src.dependencies import close_db_pool, init_db_pool
from api.src.routers import todo_items, weather_forecast
from shared.logging import bind_context, configure_logging, unbind_context
from shared.models import HealthStatus

logger = structlog.get_logger(__name__)

# ============================================================================
# Prometheus Metrics
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"]
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"]
)

# ============================================================================
# Lifespan Management
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager for startup and shutdown events.

    Opens the database pool (when a database is configured) and closes it
    on shutdown.
    """
    settings: Settings = app.state.settings

    if not structlog.is_configured():
        configure_logging(
            log_level=settings.log_level,
            json_logs=settings.log_format == "json",
            service_name=settings.app_name,
        )

    logger.info(
        "application_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment
    )

    app.state.db_pool = None
    try:
        app.state.db_pool = await init_db_pool(settings)

        if app.state.db_pool is not None:
            async with app.state.db_pool.acquire() as conn:
                version = await conn.fetchval("SELECT version()")
                logger.info("database_connected", postgres_version=version)

        logger.info("application_started", app_name=settings.app_name)

        yield

    except Exception as e:
        logger.error("application_startup_failed", error=str(e), exc_info=True)
        raise

    finally:
        logger.info("application_shutting_down")
        await close_db_pool(app.state.db_pool)
        app.state.db_pool = None
        logger.info("application_shutdown_complete")


# ============================================================================
# Middleware
# ============================================================================


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    async def dispatch(self, request: Request, call_next):
        """Process request and log details."""
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        method = request.method
        path = request.url.path
        start_time = time.perf_counter()

        bind_context(correlation_id=correlation_id)
        try:
            logger.debug("request_started", method=method, path=path)
            response = await call_next(request)
        finally:
            unbind_context("correlation_id")

        duration = time.perf_counter() - start_time
        route = request.scope.get("route")
        endpoint = getattr(route, "path", path)

        if request.app.state.settings.metrics_enabled:
            http_requests_total.labels(
                method=method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()
            http_request_duration_seconds.labels(
                method=method,
                endpoint=endpoint
            ).observe(duration)

        logger.info(
            "request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration=f"{duration:.3f}s",
            correlation_id=correlation_id
        )

        response.headers["X-Correlation-ID"] = correlation_id
        return response


# ============================================================================
# Exception Handlers
# ============================================================================


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors."""
    logger.warning(
        "validation_error",
        path=request.url.path,
        errors=exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)}
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    logger.warning(
        "http_exception",
        path=request.url.path,
        status_code=exc.status_code,
        detail=exc.detail
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None)
    )


async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(
        "unexpected_exception",
        path=request.url.path,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"}
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the non-serializable ``ctx``/``input`` parts."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


# ============================================================================
# Health, Readiness and Metrics Endpoints
# ============================================================================


async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns basic health status without checking dependencies.
    """
    settings: Settings = request.app.state.settings
    return {
        "status": HealthStatus.HEALTHY.value,
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check endpoint.

    Ready only when the database answers ``SELECT 1``.
    """
    settings: Settings = request.app.state.settings
    pool = request.app.state.db_pool
    checks = {"database": HealthStatus.UNHEALTHY.value}

    if pool is not None:
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            checks["database"] = HealthStatus.HEALTHY.value
        except Exception as e:
            logger.error("database_health_check_failed", error=str(e))

    all_healthy = all(value == HealthStatus.HEALTHY.value for value in checks.values())

    return JSONResponse(
        status_code=status.HTTP_200_OK if all_healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if all_healthy else "not_ready",
            "service": settings.app_name,
            "checks": checks
        }
    )


async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ============================================================================
# Application Factory
# ============================================================================


def create_app(**overrides: Any) -> FastAPI:
    """
    Build a Todo API application.

    Args:
        **overrides: Settings fields taking precedence over the environment,
            e.g. ``database_url``

    Returns:
        A new FastAPI application with its own settings and pool
    """
    settings = Settings(**overrides) if overrides else get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Sample Todo API with a weather forecast stub.",
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.settings = settings
    app.state.db_pool = None

    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/ready", readiness_check, methods=["GET"], tags=["Health"])
    if settings.metrics_enabled:
        app.add_api_route(
            "/metrics", metrics, methods=["GET"], tags=["Monitoring"],
            response_class=PlainTextResponse
        )

    app.include_router(weather_forecast.router)
    app.include_router(todo_items.router)

    return app


def run() -> None:
    """Run the application with Uvicorn for development."""
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.log_format == "json",
        service_name=settings.app_name,
    )

    logger.info("starting_uvicorn_server", host=settings.host, port=settings.port)

    uvicorn.run(
        "api.src.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    run()
