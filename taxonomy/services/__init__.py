"""Business logic for the category tree.

``hierarchy`` holds the pure path/tree helpers; the service classes wrap
them around an async database session.
"""

from taxonomy.services.category_service import CategoryService
from taxonomy.services.material_service import MaterialService
from taxonomy.services.path_rewriter import DescendantPathRewriter

__all__ = [
    "CategoryService",
    "MaterialService",
    "DescendantPathRewriter",
]
