"""Categories API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.config import settings
from taxonomy.dependencies import get_actor, get_db
from taxonomy.schemas import (
    ApiResponse,
    CategoryCreateRequest,
    CategoryCreatedResponse,
    CategoryDeleteRequest,
    CategoryListItem,
    CategoryMoveRequest,
    CategoryMoveResponse,
    CategoryResponse,
    CategoryStatusRequest,
    CategoryTreeResponse,
    CategoryUpdateRequest,
    PathRewriteResponse,
    RecountResponse,
)
from taxonomy.services.cache_service import (
    CacheService,
    current_categories_key,
    get_cache,
    invalidate_categories_cache,
)
from taxonomy.services.category_service import UNSET, CategoryService

router = APIRouter()


async def _commit_and_invalidate(db: AsyncSession, cache: CacheService) -> None:
    # Readers may only see the new generation once the change is committed
    await db.commit()
    await invalidate_categories_cache(cache)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

@router.get("/tree", response_model=ApiResponse)
async def get_tree(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Enabled categories as a nested tree, siblings ordered by sort_order.

    Cached for CATEGORY_CACHE_TTL seconds; dropped on every change.
    """
    cache_key = await current_categories_key(cache, "tree")
    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    service = CategoryService(db)
    tree = await service.find_tree()

    response = ApiResponse(
        status="success",
        data=[CategoryTreeResponse.model_validate(node).model_dump(mode="json") for node in tree],
    )
    await cache.set(cache_key, response.model_dump_json(), ttl=settings.CATEGORY_CACHE_TTL)
    return response


@router.get("/list-all", response_model=ApiResponse)
async def list_all(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Flat list of enabled categories (id, name, parent, level, path)."""
    cache_key = await current_categories_key(cache, "list")
    cached = await cache.get(cache_key)
    if cached:
        return ApiResponse.model_validate_json(cached)

    service = CategoryService(db)
    categories = await service.find_all()

    response = ApiResponse(
        status="success",
        data=[CategoryListItem.model_validate(c).model_dump(mode="json") for c in categories],
    )
    await cache.set(cache_key, response.model_dump_json(), ttl=settings.CATEGORY_CACHE_TTL)
    return response


@router.get("/orphans", response_model=ApiResponse)
async def list_orphans(db: AsyncSession = Depends(get_db)):
    """Enabled categories hidden from the tree because their parent is missing or disabled."""
    service = CategoryService(db)
    orphans = await service.find_orphans()
    return ApiResponse(
        status="success",
        data=[CategoryTreeResponse.model_validate(node).model_dump(mode="json") for node in orphans],
    )


@router.get("/integrity", response_model=ApiResponse)
async def check_integrity(db: AsyncSession = Depends(get_db)):
    """Report path/level inconsistencies without changing anything."""
    service = CategoryService(db)
    issues = await service.check_integrity()
    return ApiResponse(status="success", data=[i.model_dump() for i in issues])


@router.get("/{category_id}", response_model=ApiResponse)
async def get_category(category_id: str, db: AsyncSession = Depends(get_db)):
    """Get a single category."""
    service = CategoryService(db)
    category = await service.get(category_id)
    return ApiResponse(
        status="success",
        data=CategoryResponse.model_validate(category).model_dump(mode="json"),
    )


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

@router.post("/create", response_model=ApiResponse, status_code=201)
async def create_category(
    body: CategoryCreateRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Create a category. Returns the generated category id."""
    service = CategoryService(db)
    category = await service.create(
        name=body.name,
        parent_id=body.parent_id,
        description=body.description,
        sort_order=body.sort_order,
        actor=actor,
    )
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=CategoryCreatedResponse(category_id=category.category_id).model_dump(),
    )


@router.post("/update", response_model=ApiResponse)
async def update_category(
    body: CategoryUpdateRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Update a category. Omitted fields keep their current value."""
    provided = body.model_fields_set
    service = CategoryService(db)
    category = await service.update(
        category_id=body.category_id,
        name=body.name,
        parent_id=body.parent_id if "parent_id" in provided else UNSET,
        description=body.description if "description" in provided else UNSET,
        sort_order=body.sort_order if "sort_order" in provided else UNSET,
        actor=actor,
    )
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=CategoryResponse.model_validate(category).model_dump(mode="json"),
    )


@router.post("/move", response_model=ApiResponse)
async def move_category(
    body: CategoryMoveRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Move a category and its subtree under another parent (or to the root)."""
    service = CategoryService(db)
    category = await service.move(
        category_id=body.category_id,
        target_parent_id=body.target_parent_id,
        sort_order=body.sort_order,
        actor=actor,
    )
    rewritten = service.last_rewrite.rewritten_count if service.last_rewrite else 0
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=CategoryMoveResponse(
            category=CategoryResponse.model_validate(category),
            descendants_rewritten=rewritten,
        ).model_dump(mode="json"),
    )


@router.post("/delete", response_model=ApiResponse)
async def delete_category(
    body: CategoryDeleteRequest,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Delete a category with no children and no materials."""
    service = CategoryService(db)
    await service.remove(body.category_id)
    await _commit_and_invalidate(db, cache)

    return ApiResponse(status="success", data={"deleted": True})


@router.post("/status", response_model=ApiResponse)
async def set_category_status(
    body: CategoryStatusRequest,
    actor: str = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Enable or disable a category."""
    service = CategoryService(db)
    category = await service.set_status(body.category_id, body.status, actor=actor)
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=CategoryResponse.model_validate(category).model_dump(mode="json"),
    )


@router.post("/repair", response_model=ApiResponse)
async def repair_paths(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Resume descendant cascades that did not complete."""
    service = CategoryService(db)
    replayed = await service.repair_pending()
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=[PathRewriteResponse.model_validate(r).model_dump(mode="json") for r in replayed],
    )


@router.post("/{category_id}/recount", response_model=ApiResponse)
async def recount_materials(
    category_id: str,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache),
):
    """Recompute material_count from the materials table."""
    service = CategoryService(db)
    count = await service.recount(category_id)
    await _commit_and_invalidate(db, cache)

    return ApiResponse(
        status="success",
        data=RecountResponse(category_id=category_id, material_count=count).model_dump(),
    )
