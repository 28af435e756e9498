"""
Todo item repository for database operations.

Provides async CRUD operations for todo items using asyncpg with PostgreSQL.
"""

import re
from contextlib import asynccontextmanager
from typing import List, Optional

import asyncpg
import structlog

from api.src.models.todo import TodoItem

logger = structlog.get_logger(__name__)

_COLUMNS = "id, name, is_complete"

_SYNC_IDENTITY = """
SELECT setval(
    s.seq,
    GREATEST((SELECT MAX(id) FROM todo_items), pg_sequence_last_value(s.seq), 1)
)
FROM (SELECT pg_get_serial_sequence('todo_items', 'id')::regclass AS seq) AS s
"""

_KEY_DETAIL = re.compile(r"\(id\)=\((-?\d+)\)")


class TodoItemExistsError(ValueError):
    """Raised when inserting an id that is already taken."""

    def __init__(self, item_id: Optional[int]):
        super().__init__(f"Todo item {item_id} already exists")
        self.item_id = item_id


def _to_item(row: asyncpg.Record) -> TodoItem:
    return TodoItem(id=row["id"], name=row["name"], is_complete=row["is_complete"])


def conflicting_id(detail: Optional[str]) -> Optional[int]:
    """Id named in a unique-violation detail such as ``Key (id)=(2) already exists.``"""
    match = _KEY_DETAIL.search(detail or "")
    return int(match.group(1)) if match else None


class TodoRepository:
    """Repository for todo item database operations."""

    def __init__(self, pool: asyncpg.Pool):
        """
        Initialize todo repository.

        Args:
            pool: asyncpg connection pool
        """
        self.pool = pool

    @asynccontextmanager
    async def transaction(self):
        """
        Context manager for database transactions.

        Yields:
            asyncpg.Connection: Database connection
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def list_items(self) -> List[TodoItem]:
        """Return every item ordered by id."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT {_COLUMNS} FROM todo_items ORDER BY id")
        return [_to_item(row) for row in rows]

    async def get_item(self, item_id: int) -> Optional[TodoItem]:
        """
        Get a todo item by id.

        Args:
            item_id: Item identifier

        Returns:
            The item, or None when it does not exist
        """
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM todo_items WHERE id = $1",
                item_id
            )
        return _to_item(row) if row else None

    async def create_item(self, item: TodoItem) -> TodoItem:
        """
        Insert a todo item.

        A supplied id is stored as-is; otherwise the identity column assigns one.

        Args:
            item: Item to insert

        Returns:
            The stored item

        Raises:
            TodoItemExistsError: If the id is already taken
        """
        try:
            async with self.transaction() as conn:
                if item.id is None:
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO todo_items (name, is_complete)
                        VALUES ($1, $2)
                        RETURNING {_COLUMNS}
                        """,
                        item.name,
                        item.is_complete
                    )
                else:
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO todo_items (id, name, is_complete)
                        VALUES ($1, $2, $3)
                        RETURNING {_COLUMNS}
                        """,
                        item.id,
                        item.name,
                        item.is_complete
                    )
                    # Keep generated ids clear of explicitly inserted ones
                    await conn.execute(_SYNC_IDENTITY)
        except asyncpg.UniqueViolationError as e:
            item_id = item.id if item.id is not None else conflicting_id(e.detail)
            logger.warning("todo_item_already_exists", item_id=item_id)
            raise TodoItemExistsError(item_id)

        created = _to_item(row)
        logger.info("todo_item_created", item_id=created.id)
        return created

    async def update_item(self, item_id: int, item: TodoItem) -> bool:
        """
        Replace name and completion flag of an existing item.

        Returns:
            True if a row was updated, False if the item does not exist
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "UPDATE todo_items SET name = $2, is_complete = $3 WHERE id = $1",
                item_id,
                item.name,
                item.is_complete
            )
        updated = result.endswith(" 1")
        logger.info("todo_item_updated", item_id=item_id, found=updated)
        return updated

    async def delete_item(self, item_id: int) -> bool:
        """
        Delete an item.

        Returns:
            True if a row was deleted, False if the item does not exist
        """
        async with self.pool.acquire() as conn:
            result = await conn.execute("DELETE FROM todo_items WHERE id = $1", item_id)
        deleted = result.endswith(" 1")
        logger.info("todo_item_deleted", item_id=item_id, found=deleted)
        return deleted
