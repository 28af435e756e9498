"""
FastAPI dependency injection for database access and repositories.

The connection pool lives on ``app.state`` rather than in a module global so
several application instances can run side by side in one process, each
bound to its own database.
"""

from typing import Optional

import asyncpg
import structlog
from fastapi import Depends, HTTPException, Request, status

from api.src.config import Settings
from api.src.repositories.todo_repo import TodoRepository

logger = structlog.get_logger(__name__)


# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================


async def init_db_pool(settings: Settings) -> Optional[asyncpg.Pool]:
    """
    Initialize database connection pool.

    Should be called during application startup.

    Returns:
        asyncpg connection pool, or None when no database is configured
    """
    if settings.database_dsn is None:
        logger.warning("database_not_configured")
        return None

    try:
        pool = await asyncpg.create_pool(
            settings.database_dsn,
            min_size=settings.database_pool_min_size,
            max_size=settings.database_pool_max_size,
            command_timeout=settings.database_command_timeout
        )
    except Exception as e:
        logger.error("database_pool_init_failed", error=str(e))
        raise

    logger.info(
        "database_pool_initialized",
        pool_size=settings.database_pool_max_size,
        database=settings.database_dsn.split("@")[-1]
    )
    return pool


async def close_db_pool(pool: Optional[asyncpg.Pool]) -> None:
    """
    Close database connection pool.

    Should be called during application shutdown.
    """
    if pool is not None:
        await pool.close()
        logger.info("database_pool_closed")


def get_db_pool(request: Request) -> asyncpg.Pool:
    """
    Get the database connection pool of the serving application.

    Raises:
        HTTPException: 503 if the application runs without a database
    """
    pool = getattr(request.app.state, "db_pool", None)
    if pool is None:
        logger.error("database_pool_not_initialized", path=request.url.path)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not configured"
        )
    return pool


# ============================================================================
# REPOSITORY DEPENDENCIES
# ============================================================================


def get_todo_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> TodoRepository:
    """
    Get todo repository instance.

    Args:
        pool: Database connection pool

    Returns:
        Todo repository
    """
    return TodoRepository(pool)
