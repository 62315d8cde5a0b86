"""Journal of descendant path rewrites (cascade bookkeeping)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from taxonomy.models.base import Base, UUIDPrimaryKeyMixin, utcnow


class PathRewrite(UUIDPrimaryKeyMixin, Base):
    """One cascade of a path change down a subtree.

    Written together with the node whose path changed, completed once every
    descendant under ``old_path`` has been moved under ``new_path``. Rows with
    ``completed_at IS NULL`` are pending and can be replayed.
    """

    __tablename__ = "category_path_rewrites"

    category_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    old_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    new_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    expected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rewritten_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )

    @property
    def is_pending(self) -> bool:
        return self.completed_at is None

    def __repr__(self) -> str:
        return (
            f"<PathRewrite(category_id='{self.category_id}', "
            f"{self.old_path} -> {self.new_path}, "
            f"{self.rewritten_count}/{self.expected_count})>"
        )
