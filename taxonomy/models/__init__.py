"""SQLAlchemy models for the taxonomy service.

All models are imported here so metadata.create_all sees every table.
"""

from taxonomy.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from taxonomy.models.category import (
    CATEGORY_STATUSES,
    STATUS_DISABLED,
    STATUS_ENABLED,
    Category,
)
from taxonomy.models.material import Material
from taxonomy.models.path_rewrite import PathRewrite

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Category",
    "CATEGORY_STATUSES",
    "STATUS_ENABLED",
    "STATUS_DISABLED",
    "Material",
    "PathRewrite",
]
