"""
Category Models

Categories form a per-user tree with at most two levels:
- top-level (parent) categories have parent_id = None
- child categories point at a top-level parent of the same type

Names are unique within (user, type, parent).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ledger_engine.models.transaction import TransactionType


class Category(BaseModel):
    """A node in a user's category tree."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Display name, unique within (user, type, parent)"
    )
    type: TransactionType
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)
    parent_id: Optional[UUID] = Field(
        default=None,
        description="Parent category, None for top-level categories"
    )
    user_id: str = Field(..., min_length=1)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


class CategoryInput(BaseModel):
    """Data for creating a category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=50)
    type: TransactionType
    user_id: str = Field(..., min_length=1)
    parent_id: Optional[UUID] = None
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)


class CategoryUpdate(BaseModel):
    """Editable fields. Type and parent are fixed once created."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=50)
    color: Optional[str] = Field(default=None, max_length=20)
    icon: Optional[str] = Field(default=None, max_length=20)
