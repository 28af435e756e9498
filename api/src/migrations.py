"""
Schema migrations for the Todo API database.

Migrations are applied in version order inside one transaction and recorded
in ``schema_migrations``. Table DDL is rendered from the SQLAlchemy
definitions in ``api.src.models`` so the schema and the models cannot drift.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import asyncpg
import structlog
from fastapi import FastAPI
from sqlalchemy import Table
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateTable

from api.src.models.todo import TodoItemDB

logger = structlog.get_logger(__name__)

# Arbitrary key for pg_advisory_xact_lock; serializes concurrent migrators.
MIGRATION_LOCK_ID = 72_110_530

SCHEMA_MIGRATIONS_DDL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version INTEGER PRIMARY KEY,
    description TEXT NOT NULL,
    applied_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
)
"""


@dataclass(frozen=True)
class Migration:
    """One schema version step."""
    version: int
    description: str
    statements: Tuple[str, ...]


def render_create_table(table: Table) -> str:
    """Render CREATE TABLE for the PostgreSQL dialect."""
    return str(CreateTable(table).compile(dialect=postgresql.dialect())).strip()


MIGRATIONS: List[Migration] = [
    Migration(
        version=1,
        description="create todo_items",
        statements=(render_create_table(TodoItemDB.__table__),),
    ),
]


def latest_version() -> int:
    """Version the schema reaches after all migrations are applied."""
    return max(m.version for m in MIGRATIONS)


async def current_version(conn: asyncpg.Connection) -> Optional[int]:
    """Highest applied version, or None on a database never migrated."""
    exists = await conn.fetchval("SELECT to_regclass('schema_migrations') IS NOT NULL")
    if not exists:
        return None
    return await conn.fetchval("SELECT MAX(version) FROM schema_migrations")


async def migrate(pool: asyncpg.Pool) -> List[int]:
    """
    Bring the database to the latest schema version.

    Args:
        pool: asyncpg connection pool

    Returns:
        Versions applied by this call (empty when already current)
    """
    applied_now: List[int] = []

    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute("SELECT pg_advisory_xact_lock($1)", MIGRATION_LOCK_ID)
            await conn.execute(SCHEMA_MIGRATIONS_DDL)

            rows = await conn.fetch("SELECT version FROM schema_migrations")
            applied = {row["version"] for row in rows}

            for migration in sorted(MIGRATIONS, key=lambda m: m.version):
                if migration.version in applied:
                    continue

                for statement in migration.statements:
                    await conn.execute(statement)

                await conn.execute(
                    "INSERT INTO schema_migrations (version, description) VALUES ($1, $2)",
                    migration.version,
                    migration.description
                )
                applied_now.append(migration.version)
                logger.info(
                    "migration_applied",
                    version=migration.version,
                    description=migration.description
                )

    logger.info("schema_up_to_date", version=latest_version(), applied=applied_now)
    return applied_now


async def migrate_app(app: FastAPI) -> List[int]:
    """
    Migrate the database of a running application.

    Uses the pool created by the application lifespan.

    Raises:
        RuntimeError: If the application has no database pool
    """
    pool = getattr(app.state, "db_pool", None)
    if pool is None:
        raise RuntimeError("Database pool not initialized; is database_url configured?")
    return await migrate(pool)
