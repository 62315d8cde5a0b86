"""Category service: create, update, move, delete and read the category tree.

Every structural change keeps the materialized-path invariants:
- a root has level 1 and path ``/<id>``
- a child has level ``parent.level + 1`` and path ``parent.path + "/<id>"``
- no id appears twice in a path (no cycles)
- sibling names are unique

All validation happens before the first write. Writes are flushed into the
caller's session; the request-scoped session commits or rolls back the whole
operation, descendant cascade included.
"""

from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.config import settings
from taxonomy.core.exceptions import (
    CycleDetectedError,
    DuplicateSiblingNameError,
    HasChildrenError,
    HasLinkedItemsError,
    NotFoundError,
    ParentNotFoundError,
)
from taxonomy.models.category import CATEGORY_STATUSES, STATUS_ENABLED, Category
from taxonomy.models.path_rewrite import PathRewrite
from taxonomy.schemas.category import CategoryFilter, IntegrityIssue
from taxonomy.services.hierarchy import (
    TreeAssembly,
    build_tree,
    compute_position,
    find_parent_cycles,
    generate_category_id,
    path_segments,
    validate_identifier,
    would_create_cycle,
)
from taxonomy.services.material_service import MaterialService
from taxonomy.services.path_rewriter import DescendantPathRewriter, under_path

logger = structlog.get_logger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


def default_id_factory(name: str) -> str:
    return generate_category_id(settings.CATEGORY_ID_PREFIX)


def _normalize_parent_id(parent_id: Optional[str]) -> Optional[str]:
    if parent_id is None or not parent_id.strip():
        return None
    return validate_identifier(parent_id)


class CategoryService:
    """Orchestrates category mutations and tree reads."""

    def __init__(
        self,
        db: AsyncSession,
        materials: Optional[MaterialService] = None,
        id_factory: Callable[[str], str] = default_id_factory,
    ):
        """Initialize category service.

        Args:
            db: Async database session
            materials: Linked-item collaborator (defaults to MaterialService
                on the same session)
            id_factory: Produces a new category id from the category name
        """
        self.db = db
        self.materials = materials or MaterialService(db)
        self.id_factory = id_factory
        self.rewriter = DescendantPathRewriter(db)
        self.last_rewrite: Optional[PathRewrite] = None
        self.logger = logger.bind(service="category_service")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_category(self, category_id: str) -> Optional[Category]:
        """Get a category by its external id, or None."""
        result = await self.db.execute(
            select(Category).where(Category.category_id == category_id)
        )
        return result.scalar_one_or_none()

    async def get(self, category_id: str) -> Category:
        """Get a category or raise NotFoundError."""
        validate_identifier(category_id)
        category = await self.get_category(category_id)
        if not category:
            raise NotFoundError("Category", category_id)
        return category

    async def _get_parent(self, parent_id: str) -> Category:
        parent = await self.get_category(parent_id)
        if not parent:
            raise ParentNotFoundError(parent_id)
        return parent

    async def count_children(self, category_id: str) -> int:
        result = await self.db.execute(
            select(func.count(Category.id)).where(Category.parent_id == category_id)
        )
        return result.scalar() or 0

    async def check_unique(
        self,
        name: str,
        parent_id: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        """Ensure no sibling under ``parent_id`` already uses ``name``.

        Raises:
            DuplicateSiblingNameError: if another category (other than
                ``exclude_id``) has the same name under the same parent
        """
        stmt = select(Category.category_id).where(Category.name == name)
        if parent_id is None:
            stmt = stmt.where(Category.parent_id.is_(None))
        else:
            stmt = stmt.where(Category.parent_id == parent_id)
        if exclude_id is not None:
            stmt = stmt.where(Category.category_id != exclude_id)

        result = await self.db.execute(stmt.limit(1))
        if result.first() is not None:
            raise DuplicateSiblingNameError(name, parent_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        name: str,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        sort_order: int = 0,
        actor: str = "system",
    ) -> Category:
        """Create a category at the root or under ``parent_id``."""
        parent_id = _normalize_parent_id(parent_id)

        parent = await self._get_parent(parent_id) if parent_id else None
        await self.check_unique(name, parent_id)

        category_id = validate_identifier(self.id_factory(name))
        position = compute_position(category_id, parent)

        category = Category(
            category_id=category_id,
            name=name,
            parent_id=parent_id,
            description=description,
            sort_order=sort_order,
            level=position.level,
            path=position.path,
            material_count=0,
            status=STATUS_ENABLED,
            created_by=actor,
            updated_by=actor,
        )
        self.db.add(category)
        await self.db.flush()

        self.logger.info(
            "category_created",
            category_id=category_id,
            name=name,
            parent_id=parent_id,
            path=position.path,
        )
        return category

    async def update(
        self,
        category_id: str,
        name: Optional[str] = UNSET,
        parent_id: Optional[str] = UNSET,
        description: Optional[str] = UNSET,
        sort_order: Optional[int] = UNSET,
        actor: str = "system",
    ) -> Category:
        """Update name/description/sort order and optionally re-parent.

        Arguments left as ``UNSET`` keep their current value. ``parent_id=None``
        moves the category to the root level.
        """
        category = await self.get(category_id)

        parent_changed = False
        new_parent: Optional[Category] = None
        if parent_id is not UNSET:
            parent_id = _normalize_parent_id(parent_id)
            parent_changed = parent_id != category.parent_id
            if parent_changed and parent_id is not None:
                new_parent = await self._get_parent(parent_id)
                self._guard_cycle(category, new_parent)

        new_name = category.name if name is UNSET or name is None else name
        target_parent_id = parent_id if parent_changed else category.parent_id
        if parent_changed or new_name != category.name:
            await self.check_unique(new_name, target_parent_id, exclude_id=category.category_id)

        category.name = new_name
        if description is not UNSET:
            category.description = description
        if sort_order is not UNSET and sort_order is not None:
            category.sort_order = sort_order
        category.updated_by = actor

        rewritten = 0
        if parent_changed:
            rewritten = await self._relocate(category, new_parent)
        else:
            self.last_rewrite = None
            await self.db.flush()

        self.logger.info(
            "category_updated",
            category_id=category.category_id,
            parent_changed=parent_changed,
            descendants_rewritten=rewritten,
        )
        return category

    async def move(
        self,
        category_id: str,
        target_parent_id: Optional[str],
        sort_order: int,
        actor: str = "system",
    ) -> Category:
        """Move a category (and its subtree) under ``target_parent_id``.

        ``target_parent_id=None`` moves it to the root level.
        """
        category = await self.get(category_id)
        target_parent_id = _normalize_parent_id(target_parent_id)

        target_parent: Optional[Category] = None
        if target_parent_id is not None:
            target_parent = await self._get_parent(target_parent_id)
            self._guard_cycle(category, target_parent)

        if target_parent_id != category.parent_id:
            await self.check_unique(category.name, target_parent_id, exclude_id=category.category_id)

        category.sort_order = sort_order
        category.updated_by = actor
        rewritten = await self._relocate(category, target_parent)

        self.logger.info(
            "category_moved",
            category_id=category.category_id,
            target_parent_id=target_parent_id,
            path=category.path,
            descendants_rewritten=rewritten,
        )
        return category

    async def remove(self, category_id: str) -> None:
        """Hard-delete a category that has no children and no materials."""
        category = await self.get(category_id)

        children = await self.count_children(category.category_id)
        if children > 0:
            raise HasChildrenError(category.category_id, children)

        items = await self.materials.count_linked_items(category.category_id)
        if items > 0:
            raise HasLinkedItemsError(category.category_id, items)

        await self.db.delete(category)
        await self.db.flush()

        self.logger.info("category_removed", category_id=category.category_id)

    async def set_status(self, category_id: str, status: str, actor: str = "system") -> Category:
        """Enable or disable a category. Disabled categories are hidden from reads."""
        if status not in CATEGORY_STATUSES:
            raise ValueError(f"status must be one of {CATEGORY_STATUSES}, got {status!r}")

        category = await self.get(category_id)
        if category.status != status:
            category.status = status
            category.updated_by = actor
            await self.db.flush()
            self.logger.info("category_status_changed", category_id=category_id, status=status)
        return category

    def _guard_cycle(self, category: Category, target_parent: Category) -> None:
        if would_create_cycle(category.category_id, category.path, target_parent.path):
            raise CycleDetectedError(category.category_id, target_parent.category_id)

    async def _relocate(self, category: Category, parent: Optional[Category]) -> int:
        """Place ``category`` under ``parent`` and cascade to its subtree.

        Returns:
            Number of descendants whose path was rewritten
        """
        old_path = category.path
        position = compute_position(category.category_id, parent)

        category.parent_id = parent.category_id if parent else None
        category.level = position.level
        category.path = position.path
        await self.db.flush()

        if position.path == old_path:
            self.last_rewrite = None
            return 0

        self.last_rewrite = await self.rewriter.cascade(category.category_id, old_path, position.path)
        return self.last_rewrite.rewritten_count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def find_all(self, filters: Optional[CategoryFilter] = None) -> List[Category]:
        """List categories matching ``filters`` ordered by (level, sort_order).

        Defaults to every enabled category.
        """
        filters = filters or CategoryFilter()

        stmt = select(Category)
        if filters.status is not None:
            stmt = stmt.where(Category.status == filters.status)
        if filters.roots_only:
            stmt = stmt.where(Category.parent_id.is_(None))
        elif filters.parent_id is not None:
            stmt = stmt.where(Category.parent_id == filters.parent_id)
        if filters.name_contains:
            stmt = stmt.where(Category.name.contains(filters.name_contains, autoescape=True))
        if filters.path_prefix:
            stmt = stmt.where(
                (Category.path == filters.path_prefix)
                | under_path(filters.path_prefix)
            )

        result = await self.db.execute(
            stmt.order_by(Category.level, Category.sort_order, Category.name)
        )
        return list(result.scalars().all())

    async def _assemble(self) -> TreeAssembly:
        assembly = build_tree(await self.find_all())
        if assembly.cycle_ids:
            self.logger.error("category_parent_cycle_detected", cycle_ids=assembly.cycle_ids)
        if assembly.orphans:
            self.logger.warning("category_orphans_detected", orphan_ids=assembly.orphan_ids)
        return assembly

    async def find_tree(self) -> List[Dict[str, Any]]:
        """Enabled categories as a nested forest."""
        return (await self._assemble()).roots

    async def find_orphans(self) -> List[Dict[str, Any]]:
        """Enabled categories whose parent is missing or disabled, with their subtrees."""
        return (await self._assemble()).orphans

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def recount(self, category_id: str) -> int:
        """Recompute ``material_count`` from the materials themselves."""
        category = await self.get(category_id)
        await self.db.refresh(category, ["material_count"])
        actual = await self.materials.count_linked_items(category.category_id)

        if category.material_count != actual:
            self.logger.warning(
                "material_count_drift",
                category_id=category_id,
                cached=category.material_count,
                actual=actual,
            )
            category.material_count = actual
            await self.db.flush()

        return actual

    async def repair_pending(self) -> List[PathRewrite]:
        """Resume cascades that never completed."""
        return await self.rewriter.replay_pending()

    async def check_integrity(self) -> List[IntegrityIssue]:
        """Report every node whose path/level disagrees with its ancestry.

        Read-only; scans all categories regardless of status.
        """
        result = await self.db.execute(select(Category))
        nodes = list(result.scalars().all())
        by_id = {node.category_id: node for node in nodes}
        on_cycle = find_parent_cycles({node.category_id: node.parent_id for node in nodes})

        issues: List[IntegrityIssue] = []
        for node in nodes:
            segments = path_segments(node.path)
            if len(segments) != len(set(segments)):
                issues.append(IntegrityIssue(
                    category_id=node.category_id,
                    issue="repeated_segment",
                    detail=f"path {node.path} repeats an id",
                ))

            if node.category_id in on_cycle:
                issues.append(IntegrityIssue(
                    category_id=node.category_id,
                    issue="parent_cycle",
                    detail=f"parent {node.parent_id} leads back to {node.category_id}",
                ))
                continue

            if node.parent_id is None:
                parent = None
            else:
                parent = by_id.get(node.parent_id)
                if parent is None:
                    issues.append(IntegrityIssue(
                        category_id=node.category_id,
                        issue="dangling_parent",
                        detail=f"parent {node.parent_id} does not exist",
                    ))
                    continue

            expected = compute_position(node.category_id, parent)
            if node.path != expected.path:
                issues.append(IntegrityIssue(
                    category_id=node.category_id,
                    issue="path_mismatch",
                    detail=f"path {node.path}, expected {expected.path}",
                ))
            if node.level != expected.level:
                issues.append(IntegrityIssue(
                    category_id=node.category_id,
                    issue="level_mismatch",
                    detail=f"level {node.level}, expected {expected.level}",
                ))

        if issues:
            self.logger.warning("category_integrity_issues", count=len(issues))
        return issues
