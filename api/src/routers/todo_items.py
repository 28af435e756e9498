"""
Todo items router.

Provides REST API endpoints under ``/api/TodoItems``:
- List and fetch items
- Create items (client-supplied id honoured, generated otherwise)
- Replace and delete items
"""

from typing import Annotated, List

import structlog
from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from api.src.dependencies import get_todo_repository
from api.src.models.todo import ID_MAX, ID_MIN, TodoItem
from api.src.repositories.todo_repo import TodoItemExistsError, TodoRepository

logger = structlog.get_logger(__name__)

ItemId = Annotated[int, Path(ge=ID_MIN, le=ID_MAX, description="Todo item id")]

router = APIRouter(
    prefix="/api/TodoItems",
    tags=["TodoItems"],
    responses={
        404: {"description": "Not Found"},
        503: {"description": "Database not configured"},
    }
)


def _not_found(item_id: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Todo item {item_id} not found"
    )


@router.get("", response_model=List[TodoItem])
async def list_todo_items(
    repo: TodoRepository = Depends(get_todo_repository)
) -> List[TodoItem]:
    """List all todo items ordered by id."""
    return await repo.list_items()


@router.get("/{item_id}", response_model=TodoItem)
async def get_todo_item(
    item_id: ItemId,
    repo: TodoRepository = Depends(get_todo_repository)
) -> TodoItem:
    """
    Get a todo item by id.

    Raises:
        HTTPException: 404 if the item does not exist
    """
    item = await repo.get_item(item_id)
    if item is None:
        raise _not_found(item_id)
    return item


@router.post("", response_model=TodoItem, status_code=status.HTTP_201_CREATED)
async def create_todo_item(
    item: TodoItem,
    response: Response,
    repo: TodoRepository = Depends(get_todo_repository)
) -> TodoItem:
    """
    Create a todo item.

    Returns the stored item with a Location header pointing at it.

    Raises:
        HTTPException: 409 if an item with the same id already exists
    """
    try:
        created = await repo.create_item(item)
    except TodoItemExistsError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    response.headers["Location"] = f"{router.prefix}/{created.id}"
    return created


@router.put("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_todo_item(
    item_id: ItemId,
    item: TodoItem,
    repo: TodoRepository = Depends(get_todo_repository)
) -> Response:
    """
    Replace a todo item.

    Raises:
        HTTPException: 400 if the body id differs from the path id,
            404 if the item does not exist
    """
    if item.id is not None and item.id != item_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Body id does not match path id"
        )

    if not await repo.update_item(item_id, item):
        raise _not_found(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo_item(
    item_id: ItemId,
    repo: TodoRepository = Depends(get_todo_repository)
) -> Response:
    """
    Delete a todo item.

    Raises:
        HTTPException: 404 if the item does not exist
    """
    if not await repo.delete_item(item_id):
        raise _not_found(item_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
