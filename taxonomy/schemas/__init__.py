"""Pydantic schemas for the taxonomy API."""

from taxonomy.schemas.common import ApiResponse, ErrorDetail, ErrorResponse
from taxonomy.schemas.category import (
    CategoryCreateRequest,
    CategoryCreatedResponse,
    CategoryDeleteRequest,
    CategoryFilter,
    CategoryListItem,
    CategoryMoveRequest,
    CategoryMoveResponse,
    CategoryResponse,
    CategoryStatusRequest,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    IntegrityIssue,
    PathRewriteResponse,
    RecountResponse,
)
from taxonomy.schemas.health import HealthCheckResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    # Category
    "CategoryFilter",
    "CategoryCreateRequest",
    "CategoryUpdateRequest",
    "CategoryMoveRequest",
    "CategoryDeleteRequest",
    "CategoryStatusRequest",
    "CategoryResponse",
    "CategoryTreeResponse",
    "CategoryListItem",
    "CategoryCreatedResponse",
    "CategoryMoveResponse",
    "PathRewriteResponse",
    "RecountResponse",
    "IntegrityIssue",
    # Health
    "HealthCheckResponse",
]
