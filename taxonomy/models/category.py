"""Category model for material classification."""

from typing import Optional

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taxonomy.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

STATUS_ENABLED = "enabled"
STATUS_DISABLED = "disabled"
CATEGORY_STATUSES = (STATUS_ENABLED, STATUS_DISABLED)


class Category(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A node in the classification tree.

    The tree is stored as a materialized path: every node carries the ids of
    all of its ancestors in ``path`` (e.g. ``/C001/C002/C003``) together with
    its depth in ``level``, so subtree queries are simple prefix matches.

    ``parent_id`` references the parent's ``category_id`` (not the surrogate
    primary key) and is ``None`` for roots.
    """

    __tablename__ = "categories"

    # Identity
    category_id: Mapped[str] = mapped_column(
        String(64), unique=True, index=True, nullable=False,
        comment="Stable external identifier"
    )
    name: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    sort_order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Display order among siblings"
    )

    # Hierarchy
    parent_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, index=True,
        comment="Parent category_id, NULL for roots"
    )
    level: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, comment="Depth, root = 1"
    )
    path: Mapped[str] = mapped_column(
        String(1024), nullable=False, index=True,
        comment="Materialized path, e.g. /C001/C002"
    )

    # Denormalized counter owned by the material module
    material_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default=STATUS_ENABLED, index=True,
        comment="'enabled' or 'disabled'"
    )

    # Audit
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("parent_id", "name", name="uq_category_sibling_name"),
        CheckConstraint("level >= 1", name="ck_category_level_positive"),
        CheckConstraint("material_count >= 0", name="ck_category_material_count"),
    )

    def __repr__(self) -> str:
        return f"<Category(category_id='{self.category_id}', name='{self.name}', path='{self.path}')>"
