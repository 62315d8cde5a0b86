"""Seed the categories table with a starter materials taxonomy."""

import asyncio
import os
import sys

# Add the project root to path so we can import taxonomy without installing it
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sqlalchemy import select

from taxonomy.db.bootstrap import create_tables
from taxonomy.db.session import async_session_factory, engine
from taxonomy.models import Category
from taxonomy.services.category_service import CategoryService

# (name, description, children)
TAXONOMY = [
    ("Metals", "Ferrous and non-ferrous metals", [
        ("Ferrous", "Iron based", [
            ("Carbon Steel", None, []),
            ("Stainless Steel", None, []),
            ("Cast Iron", None, []),
        ]),
        ("Non-ferrous", None, [
            ("Aluminium", None, []),
            ("Copper", None, []),
            ("Titanium", None, []),
        ]),
    ]),
    ("Polymers", "Plastics and elastomers", [
        ("Thermoplastics", None, [
            ("ABS", None, []),
            ("Polycarbonate", None, []),
            ("Nylon", None, []),
        ]),
        ("Elastomers", None, [
            ("Silicone", None, []),
            ("EPDM", None, []),
        ]),
    ]),
    ("Ceramics", "Technical and traditional ceramics", [
        ("Alumina", None, []),
        ("Zirconia", None, []),
    ]),
    ("Composites", None, [
        ("Carbon Fibre", None, []),
        ("Glass Fibre", None, []),
    ]),
]


async def find_existing(session, name, parent_id):
    stmt = select(Category).where(Category.name == name)
    if parent_id is None:
        stmt = stmt.where(Category.parent_id.is_(None))
    else:
        stmt = stmt.where(Category.parent_id == parent_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def seed_branch(service, session, nodes, parent_id, counts):
    for sort_order, (name, description, children) in enumerate(nodes):
        category = await find_existing(session, name, parent_id)

        if category:
            print(f"  ⏭️  '{name}' already exists at {category.path}, skipping")
            counts["skipped"] += 1
        else:
            category = await service.create(
                name=name,
                parent_id=parent_id,
                description=description,
                sort_order=sort_order,
                actor="seed",
            )
            print(f"  ✅ Added {category.path}  ({name})")
            counts["added"] += 1

        await seed_branch(service, session, children, category.category_id, counts)


async def seed_categories():
    """Seed the starter taxonomy.

    Idempotent: a category is matched by its name under its parent, so
    running the script again only adds what is missing.
    """
    print(f"\n{'='*60}")
    print(f"  Seeding Categories Database")
    print(f"{'='*60}\n")

    await create_tables()

    counts = {"added": 0, "skipped": 0}

    async with async_session_factory() as session:
        service = CategoryService(session)
        await seed_branch(service, session, TAXONOMY, None, counts)
        await session.commit()

    await engine.dispose()

    print(f"\n{'='*60}")
    print(f"  Seeding Complete")
    print(f"{'='*60}")
    print(f"  ✅ Added: {counts['added']} categories")
    print(f"  ⏭️  Skipped: {counts['skipped']} categories (already exist)\n")


if __name__ == "__main__":
    asyncio.run(seed_categories())
