"""Pytest configuration and shared fixtures."""

from typing import Callable, Dict

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taxonomy.models import Base, Category
from taxonomy.services.category_service import CategoryService
from taxonomy.services.material_service import MaterialService


def make_id_factory() -> Callable[[str], str]:
    """Readable ids for tests: the category name, suffixed when reused."""
    used = set()

    def factory(name: str) -> str:
        base = name.replace(" ", "")
        candidate = base
        n = 1
        while candidate in used:
            n += 1
            candidate = f"{base}-{n}"
        used.add(candidate)
        return candidate

    return factory


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def service(test_db: AsyncSession) -> CategoryService:
    """Category service with readable ids (id == name)."""
    return CategoryService(test_db, id_factory=make_id_factory())


@pytest.fixture
def materials(test_db: AsyncSession) -> MaterialService:
    return MaterialService(test_db)


@pytest_asyncio.fixture
async def gem_tree(service: CategoryService) -> Dict[str, Category]:
    """Gemstones > Agate > RedAgate, plus a separate Crystals root.

        /Gemstones
        /Gemstones/Agate
        /Gemstones/Agate/RedAgate
        /Crystals
    """
    gemstones = await service.create("Gemstones", actor="tester")
    agate = await service.create("Agate", parent_id="Gemstones", sort_order=1, actor="tester")
    red_agate = await service.create("RedAgate", parent_id="Agate", actor="tester")
    crystals = await service.create("Crystals", sort_order=2, actor="tester")
    return {
        "Gemstones": gemstones,
        "Agate": agate,
        "RedAgate": red_agate,
        "Crystals": crystals,
    }
