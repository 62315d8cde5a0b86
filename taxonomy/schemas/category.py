"""Category Pydantic schemas for request/response validation."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CategoryStatusLiteral = Literal["enabled", "disabled"]


def _blank_to_none(value):
    # Clients send "" to mean "no parent"
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ---------------------------------------------------------------------------
# Query filter
# ---------------------------------------------------------------------------

class CategoryFilter(BaseModel):
    """Closed set of criteria accepted by ``CategoryService.find_all``.

    Unset fields don't constrain the query. ``roots_only`` and ``parent_id``
    are mutually exclusive.
    """

    model_config = ConfigDict(frozen=True)

    parent_id: Optional[str] = None
    roots_only: bool = False
    name_contains: Optional[str] = None
    status: Optional[CategoryStatusLiteral] = "enabled"
    path_prefix: Optional[str] = None

    @model_validator(mode="after")
    def check_parent_criteria(self) -> "CategoryFilter":
        if self.roots_only and self.parent_id is not None:
            raise ValueError("roots_only and parent_id cannot be combined")
        return self


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CategoryCreateRequest(BaseModel):
    """Create a category, optionally under a parent."""

    name: str = Field(..., min_length=2, max_length=30)
    parent_id: Optional[str] = None
    description: Optional[str] = Field(None, max_length=200)
    sort_order: int = Field(0, ge=0)

    @field_validator("parent_id", mode="before")
    @classmethod
    def normalize_parent(cls, value):
        return _blank_to_none(value)


class CategoryUpdateRequest(BaseModel):
    """Update a category.

    ``parent_id`` left out keeps the current parent; an explicit ``null``
    (or empty string) moves the category to the root level.
    """

    category_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=2, max_length=30)
    parent_id: Optional[str] = None
    description: Optional[str] = Field(None, max_length=200)
    sort_order: Optional[int] = Field(None, ge=0)

    @field_validator("parent_id", mode="before")
    @classmethod
    def normalize_parent(cls, value):
        return _blank_to_none(value)


class CategoryMoveRequest(BaseModel):
    """Move a category under another parent (or to the root when omitted)."""

    category_id: str = Field(..., min_length=1)
    target_parent_id: Optional[str] = None
    sort_order: int = Field(..., ge=0)

    @field_validator("target_parent_id", mode="before")
    @classmethod
    def normalize_parent(cls, value):
        return _blank_to_none(value)


class CategoryDeleteRequest(BaseModel):
    category_id: str = Field(..., min_length=1)


class CategoryStatusRequest(BaseModel):
    category_id: str = Field(..., min_length=1)
    status: CategoryStatusLiteral


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class CategoryResponse(BaseModel):
    """Full category record."""

    model_config = ConfigDict(from_attributes=True)

    category_id: str
    name: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    sort_order: int
    level: int
    path: str
    material_count: int = 0
    status: CategoryStatusLiteral
    created_by: str
    updated_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CategoryTreeResponse(BaseModel):
    """Category node with nested children for tree structure."""

    category_id: str
    name: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    sort_order: int
    level: int
    path: str
    material_count: int = 0
    status: CategoryStatusLiteral
    children: list["CategoryTreeResponse"] = []


class CategoryListItem(BaseModel):
    """Flat projection returned by list-all."""

    model_config = ConfigDict(from_attributes=True)

    category_id: str
    name: str
    parent_id: Optional[str] = None
    level: int
    path: str


class CategoryCreatedResponse(BaseModel):
    category_id: str


class CategoryMoveResponse(BaseModel):
    """Moved category plus the size of the cascade it triggered."""

    category: CategoryResponse
    descendants_rewritten: int = 0


class PathRewriteResponse(BaseModel):
    """A cascade journal entry."""

    model_config = ConfigDict(from_attributes=True)

    category_id: str
    old_path: str
    new_path: str
    expected_count: int
    rewritten_count: int
    completed_at: Optional[datetime] = None


class RecountResponse(BaseModel):
    category_id: str
    material_count: int


class IntegrityIssue(BaseModel):
    """One invariant violation found by the integrity check."""

    category_id: str
    issue: Literal[
        "dangling_parent", "parent_cycle", "path_mismatch", "level_mismatch", "repeated_segment"
    ]
    detail: str
