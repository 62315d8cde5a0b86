"""Material service: the linked-item side of the category engine.

Materials reference a category by its ``category_id`` and keep the
category's denormalized ``material_count`` up to date. The count is a cache:
``count_linked_items`` is the source of truth and ``CategoryService.recount``
reconciles the two.
"""

from typing import Optional

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.core.exceptions import NotFoundError
from taxonomy.models.category import Category
from taxonomy.models.material import Material
from taxonomy.services.hierarchy import generate_category_id, validate_identifier

logger = structlog.get_logger(__name__)


class MaterialService:
    """Material CRUD plus the hooks categories depend on."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="material_service")

    # ------------------------------------------------------------------
    # Collaborator interface used by the category engine
    # ------------------------------------------------------------------

    async def category_exists(self, category_id: str) -> bool:
        result = await self.db.execute(
            select(Category.id).where(Category.category_id == category_id)
        )
        return result.first() is not None

    async def increment_material_count(self, category_id: str, delta: int) -> None:
        """Adjust a category's material counter by ``delta`` (may be negative).

        Done as a single UPDATE so concurrent callers don't overwrite each
        other; the counter is clamped at zero.
        """
        new_count = Category.material_count + delta
        await self.db.execute(
            update(Category)
            .where(Category.category_id == category_id)
            .values(material_count=case((new_count < 0, 0), else_=new_count))
            .execution_options(synchronize_session=False)
        )
        # Loaded Category instances must not keep the pre-update counter
        for obj in list(self.db.identity_map.values()):
            if isinstance(obj, Category) and obj.category_id == category_id:
                await self.db.refresh(obj, ["material_count"])

    async def count_linked_items(self, category_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Material.id)).where(Material.category_id == category_id)
        )
        return result.scalar() or 0

    # ------------------------------------------------------------------
    # Material lifecycle
    # ------------------------------------------------------------------

    async def get_material(self, material_id: str) -> Optional[Material]:
        result = await self.db.execute(
            select(Material).where(Material.material_id == material_id)
        )
        return result.scalar_one_or_none()

    async def create_material(self, name: str, category_id: str, actor: str) -> Material:
        """Create a material under an existing category."""
        validate_identifier(category_id)
        if not await self.category_exists(category_id):
            raise NotFoundError("Category", category_id)

        material = Material(
            material_id=generate_category_id(prefix="M"),
            name=name,
            category_id=category_id,
            created_by=actor,
            updated_by=actor,
        )
        self.db.add(material)
        await self.db.flush()
        await self.increment_material_count(category_id, 1)

        self.logger.info(
            "material_created",
            material_id=material.material_id,
            category_id=category_id,
        )
        return material

    async def move_material(self, material_id: str, target_category_id: str, actor: str) -> Material:
        """Reassign a material to another category."""
        validate_identifier(target_category_id)
        material = await self.get_material(material_id)
        if not material:
            raise NotFoundError("Material", material_id)
        if not await self.category_exists(target_category_id):
            raise NotFoundError("Category", target_category_id)

        source_category_id = material.category_id
        if source_category_id == target_category_id:
            return material

        material.category_id = target_category_id
        material.updated_by = actor
        await self.db.flush()

        await self.increment_material_count(source_category_id, -1)
        await self.increment_material_count(target_category_id, 1)

        self.logger.info(
            "material_moved",
            material_id=material_id,
            source_category_id=source_category_id,
            target_category_id=target_category_id,
        )
        return material

    async def delete_material(self, material_id: str) -> None:
        material = await self.get_material(material_id)
        if not material:
            raise NotFoundError("Material", material_id)

        category_id = material.category_id
        await self.db.delete(material)
        await self.db.flush()
        await self.increment_material_count(category_id, -1)

        self.logger.info("material_deleted", material_id=material_id, category_id=category_id)
