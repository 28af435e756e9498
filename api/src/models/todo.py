"""
Todo item models.

Provides both the SQLAlchemy table definition (source of the migration DDL)
and the Pydantic schema exchanged over HTTP. JSON field names are camelCase
(``id``, ``name``, ``isComplete``); Python attributes are snake_case.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import BigInteger, Boolean, Identity, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Range of the BIGINT id column
ID_MIN = -2**63
ID_MAX = 2**63 - 1


# ============================================================================
# SQLAlchemy Models
# ============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class TodoItemDB(Base):
    """
    Persisted todo item.

    The identity column accepts client-supplied ids and generates one when
    the insert omits it.
    """
    __tablename__ = "todo_items"

    id: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        primary_key=True
    )
    name: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True
    )
    is_complete: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false")
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<TodoItemDB(id={self.id}, name='{self.name}', is_complete={self.is_complete})>"


# ============================================================================
# Pydantic Schemas
# ============================================================================


class TodoItem(BaseModel):
    """Todo item as sent and returned by the API."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: Optional[int] = Field(
        None, ge=ID_MIN, le=ID_MAX, description="Identifier; assigned by the database when omitted"
    )
    name: Optional[str] = Field(None, description="Item name")
    is_complete: bool = Field(False, description="Completion flag")
