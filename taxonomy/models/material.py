"""Material model: the items classified by categories."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from taxonomy.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Material(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A material assigned to exactly one category.

    Only the columns the category engine depends on are modelled here.
    """

    __tablename__ = "materials"

    material_id: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True,
        comment="Owning category's category_id"
    )
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, default="enabled",
        comment="'enabled' or 'disabled'"
    )
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False)

    def __repr__(self) -> str:
        return f"<Material(material_id='{self.material_id}', category_id='{self.category_id}')>"
