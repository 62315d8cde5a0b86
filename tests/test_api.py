"""HTTP tests for the categories API (in-memory DB, mocked cache)."""

from unittest.mock import AsyncMock

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.dependencies import get_db
from taxonomy.main import app
from taxonomy.services.cache_service import CacheService, get_cache

BASE = "/api/v1/categories"


@pytest_asyncio.fixture
async def cache():
    mock = AsyncMock(spec=CacheService)
    mock.get.return_value = None
    mock.set.return_value = True
    mock.delete_pattern.return_value = 0
    mock.get_counter.return_value = 0
    mock.incr.return_value = 1
    mock.health_check.return_value = True
    return mock


@pytest_asyncio.fixture
async def client(test_db: AsyncSession, cache):
    async def override_get_db():
        try:
            yield test_db
        except Exception:
            await test_db.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def create(client: AsyncClient, name: str, parent_id=None, **extra) -> str:
    payload = {"name": name, "parent_id": parent_id, **extra}
    response = await client.post(f"{BASE}/create", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]["category_id"]


# ============================================================================
# READS AND CREATE
# ============================================================================

class TestCreateAndRead:

    async def test_create_returns_generated_id(self, client: AsyncClient):
        category_id = await create(client, "Gemstones")

        response = await client.get(f"{BASE}/{category_id}")
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["path"] == f"/{category_id}"
        assert data["level"] == 1
        assert data["status"] == "enabled"
        assert data["created_by"] == "system"

    async def test_actor_header_is_recorded(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/create", json={"name": "Gemstones"}, headers={"X-User-Id": "alice"}
        )
        category_id = response.json()["data"]["category_id"]

        data = (await client.get(f"{BASE}/{category_id}")).json()["data"]
        assert data["created_by"] == "alice"
        assert data["updated_by"] == "alice"

    async def test_tree_and_list(self, client: AsyncClient, cache):
        root = await create(client, "Gemstones")
        child = await create(client, "Agate", parent_id=root)

        tree = (await client.get(f"{BASE}/tree")).json()["data"]
        assert [n["category_id"] for n in tree] == [root]
        assert tree[0]["children"][0]["category_id"] == child
        assert tree[0]["children"][0]["path"] == f"/{root}/{child}"

        flat = (await client.get(f"{BASE}/list-all")).json()["data"]
        assert [(c["category_id"], c["level"]) for c in flat] == [(root, 1), (child, 2)]
        assert set(flat[0]) == {"category_id", "name", "parent_id", "level", "path"}

        assert cache.set.await_count == 2

    async def test_cached_tree_is_served(self, client: AsyncClient, cache):
        cache.get.return_value = '{"status": "success", "data": [{"category_id": "cached"}]}'

        response = await client.get(f"{BASE}/tree")

        assert response.json()["data"] == [{"category_id": "cached"}]
        cache.set.assert_not_awaited()

    async def test_mutation_invalidates_cache(self, client: AsyncClient, cache):
        await create(client, "Gemstones")

        cache.incr.assert_awaited_with("categories:generation")
        cache.delete_pattern.assert_awaited_with("categories:v*")

    async def test_reads_use_current_generation(self, client: AsyncClient, cache):
        cache.get_counter.return_value = 7

        await client.get(f"{BASE}/tree")
        await client.get(f"{BASE}/list-all")

        cache.get.assert_any_await("categories:v7:tree")
        written = [c.args[0] for c in cache.set.await_args_list]
        assert written == ["categories:v7:tree", "categories:v7:list"]

    async def test_empty_parent_means_root(self, client: AsyncClient):
        category_id = await create(client, "Gemstones", parent_id="")

        data = (await client.get(f"{BASE}/{category_id}")).json()["data"]
        assert data["parent_id"] is None

    async def test_name_length_is_validated(self, client: AsyncClient):
        response = await client.post(f"{BASE}/create", json={"name": "G"})
        assert response.status_code == 422


# ============================================================================
# MUTATIONS
# ============================================================================

class TestMutations:

    async def test_move_reports_cascade(self, client: AsyncClient):
        gemstones = await create(client, "Gemstones")
        crystals = await create(client, "Crystals")
        agate = await create(client, "Agate", parent_id=gemstones)
        red_agate = await create(client, "Red Agate", parent_id=agate)

        response = await client.post(
            f"{BASE}/move",
            json={"category_id": agate, "target_parent_id": crystals, "sort_order": 0},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["descendants_rewritten"] == 1
        assert data["category"]["path"] == f"/{crystals}/{agate}"

        leaf = (await client.get(f"{BASE}/{red_agate}")).json()["data"]
        assert leaf["path"] == f"/{crystals}/{agate}/{red_agate}"
        assert leaf["level"] == 3

    async def test_update_without_parent_keeps_parent(self, client: AsyncClient):
        root = await create(client, "Gemstones")
        child = await create(client, "Agate", parent_id=root)

        response = await client.post(
            f"{BASE}/update", json={"category_id": child, "name": "Agates"}
        )

        data = response.json()["data"]
        assert data["name"] == "Agates"
        assert data["parent_id"] == root

    async def test_update_with_null_parent_moves_to_root(self, client: AsyncClient):
        root = await create(client, "Gemstones")
        child = await create(client, "Agate", parent_id=root)

        response = await client.post(
            f"{BASE}/update", json={"category_id": child, "name": "Agate", "parent_id": None}
        )

        data = response.json()["data"]
        assert data["parent_id"] is None
        assert data["path"] == f"/{child}"

    async def test_delete_leaf(self, client: AsyncClient):
        category_id = await create(client, "Gemstones")

        response = await client.post(f"{BASE}/delete", json={"category_id": category_id})
        assert response.status_code == 200

        response = await client.get(f"{BASE}/{category_id}")
        assert response.status_code == 404

    async def test_disable_surfaces_orphans(self, client: AsyncClient):
        root = await create(client, "Gemstones")
        child = await create(client, "Agate", parent_id=root)
        grandchild = await create(client, "Red Agate", parent_id=child)

        response = await client.post(
            f"{BASE}/status", json={"category_id": child, "status": "disabled"}
        )
        assert response.json()["data"]["status"] == "disabled"

        orphans = (await client.get(f"{BASE}/orphans")).json()["data"]
        assert [o["category_id"] for o in orphans] == [grandchild]

    async def test_recount_and_repair(self, client: AsyncClient):
        category_id = await create(client, "Gemstones")

        response = await client.post(f"{BASE}/{category_id}/recount")
        assert response.json()["data"] == {"category_id": category_id, "material_count": 0}

        response = await client.post(f"{BASE}/repair")
        assert response.json()["data"] == []

        response = await client.get(f"{BASE}/integrity")
        assert response.json()["data"] == []


# ============================================================================
# ERROR ENVELOPE
# ============================================================================

class TestErrors:

    async def test_not_found(self, client: AsyncClient):
        response = await client.get(f"{BASE}/Ghost")

        assert response.status_code == 404
        body = response.json()
        assert body["status"] == "error"
        assert body["error"]["code"] == "NOT_FOUND"

    async def test_invalid_identifier(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/delete", json={"category_id": "bad id!"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_IDENTIFIER"

    async def test_missing_parent(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/create", json={"name": "Agate", "parent_id": "Ghost"}
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "PARENT_NOT_FOUND"

    async def test_duplicate_sibling(self, client: AsyncClient):
        await create(client, "Gemstones")
        response = await client.post(f"{BASE}/create", json={"name": "Gemstones"})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_SIBLING_NAME"

    async def test_cycle(self, client: AsyncClient):
        root = await create(client, "Gemstones")
        child = await create(client, "Agate", parent_id=root)

        response = await client.post(
            f"{BASE}/move",
            json={"category_id": root, "target_parent_id": child, "sort_order": 0},
        )

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CYCLE_DETECTED"

    async def test_delete_with_children(self, client: AsyncClient):
        root = await create(client, "Gemstones")
        await create(client, "Agate", parent_id=root)

        response = await client.post(f"{BASE}/delete", json={"category_id": root})

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "HAS_CHILDREN"


class TestHealth:

    async def test_health(self, client: AsyncClient):
        response = await client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
