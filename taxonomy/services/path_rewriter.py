"""Cascading path rewrites for category subtrees.

When a category's path changes, every descendant's path still carries the
old prefix. The rewrite runs in two phases:

1. ``begin`` journals the change as a ``PathRewrite`` row (same flush as the
   moved node), recording how many descendants are expected to change.
2. ``run`` rebases descendants still under the old prefix onto the moved
   node's current path and completes the journal entry once none are left.

Phase 2 only ever touches nodes still under the old prefix, so it can be
replayed after a partial failure (``replay_pending``).
"""

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.models.category import Category
from taxonomy.models.path_rewrite import PathRewrite
from taxonomy.services.hierarchy import PATH_SEPARATOR, level_of, rebase_path

logger = structlog.get_logger(__name__)


def under_path(prefix: str):
    """SQL clause matching paths strictly below ``prefix``.

    LIKE narrows the candidates through the path index but ignores case on
    SQLite, so the leading substring is also compared exactly.
    """
    boundary = prefix + PATH_SEPARATOR
    return Category.path.startswith(boundary, autoescape=True) & (
        func.substr(Category.path, 1, len(boundary)) == boundary
    )


class DescendantPathRewriter:
    """Rewrites descendant paths/levels after an ancestor's path changed."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.logger = logger.bind(service="path_rewriter")

    async def find_descendants(self, path: str) -> List[Category]:
        """Nodes strictly below ``path``, shallowest first."""
        result = await self.db.execute(
            select(Category).where(under_path(path)).order_by(Category.level)
        )
        return list(result.scalars().all())

    async def count_descendants(self, path: str) -> int:
        """Count nodes strictly below ``path``."""
        result = await self.db.execute(
            select(func.count(Category.id)).where(under_path(path))
        )
        return result.scalar() or 0

    async def rewrite_descendants(self, category_id: str, old_path: str, new_path: str) -> int:
        """Move every node under ``old_path`` to the same place under ``new_path``.

        The relative part of each path below the moved node is preserved and
        the level is recomputed from the new path, so the level delta to the
        moved node stays the same.

        Returns:
            Number of descendants rewritten (0 for a leaf)
        """
        if old_path == new_path:
            return 0

        descendants = await self.find_descendants(old_path)

        for node in descendants:
            node.path = rebase_path(node.path, old_path, new_path)
            node.level = level_of(node.path)

        await self.db.flush()

        self.logger.info(
            "descendant_paths_rewritten",
            category_id=category_id,
            old_path=old_path,
            new_path=new_path,
            count=len(descendants),
        )
        return len(descendants)

    async def begin(self, category_id: str, old_path: str, new_path: str) -> PathRewrite:
        """Phase 1: journal a pending rewrite for the subtree of ``category_id``."""
        expected = await self.count_descendants(old_path)
        rewrite = PathRewrite(
            category_id=category_id,
            old_path=old_path,
            new_path=new_path,
            expected_count=expected,
            rewritten_count=0,
        )
        self.db.add(rewrite)
        await self.db.flush()
        return rewrite

    async def _current_path(self, category_id: str) -> Optional[str]:
        result = await self.db.execute(
            select(Category.path).where(Category.category_id == category_id)
        )
        return result.scalar_one_or_none()

    async def run(self, rewrite: PathRewrite) -> int:
        """Phase 2: rewrite what is left under the old prefix.

        Descendants are rebased onto the moved node's current path, which
        differs from the journaled ``new_path`` if the node moved again after
        the entry was written. If the node no longer exists the entry stays
        pending.

        Returns:
            Number of descendants rewritten by this call
        """
        target_path = await self._current_path(rewrite.category_id)
        if target_path is None:
            self.logger.warning(
                "cascade_target_missing",
                category_id=rewrite.category_id,
                old_path=rewrite.old_path,
            )
            return 0

        if target_path != rewrite.new_path:
            self.logger.warning(
                "cascade_retargeted",
                category_id=rewrite.category_id,
                journaled_path=rewrite.new_path,
                current_path=target_path,
            )
            rewrite.new_path = target_path

        if target_path == rewrite.old_path:
            # Moved back: whatever is under the old prefix is already in place
            rewrite.completed_at = datetime.now(timezone.utc)
            await self.db.flush()
            return 0

        count = await self.rewrite_descendants(rewrite.category_id, rewrite.old_path, target_path)
        rewrite.rewritten_count += count

        remaining = await self.count_descendants(rewrite.old_path)
        if remaining == 0:
            rewrite.completed_at = datetime.now(timezone.utc)
        else:
            self.logger.warning(
                "cascade_incomplete",
                category_id=rewrite.category_id,
                expected=rewrite.expected_count,
                rewritten=rewrite.rewritten_count,
                remaining=remaining,
            )

        if rewrite.rewritten_count < rewrite.expected_count:
            self.logger.warning(
                "cascade_count_mismatch",
                category_id=rewrite.category_id,
                expected=rewrite.expected_count,
                rewritten=rewrite.rewritten_count,
            )

        await self.db.flush()
        return count

    async def cascade(self, category_id: str, old_path: str, new_path: str) -> PathRewrite:
        """Run both phases for one path change."""
        rewrite = await self.begin(category_id, old_path, new_path)
        await self.run(rewrite)
        return rewrite

    async def get_pending(self) -> List[PathRewrite]:
        """Unfinished rewrites, oldest first."""
        result = await self.db.execute(
            select(PathRewrite)
            .where(PathRewrite.completed_at.is_(None))
            .order_by(PathRewrite.created_at)
        )
        return list(result.scalars().all())

    async def replay_pending(self) -> List[PathRewrite]:
        """Resume every pending rewrite in the order they were journaled."""
        pending = await self.get_pending()
        for rewrite in pending:
            await self.run(rewrite)

        self.logger.info(
            "pending_rewrites_replayed",
            replayed=len(pending),
            completed=sum(1 for r in pending if not r.is_pending),
        )
        return pending
