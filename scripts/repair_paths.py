"""Finish interrupted path cascades and report remaining integrity issues.

Usage:
    python scripts/repair_paths.py            # replay pending rewrites, then check
    python scripts/repair_paths.py --check    # check only, change nothing
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from taxonomy.db.session import async_session_factory, engine
from taxonomy.services.cache_service import get_cache_service, invalidate_categories_cache
from taxonomy.services.category_service import CategoryService


async def repair(check_only: bool) -> int:
    print(f"\n{'='*60}")
    print(f"  Category Path Repair")
    print(f"{'='*60}\n")

    async with async_session_factory() as session:
        service = CategoryService(session)

        if check_only:
            pending = await service.rewriter.get_pending()
            print(f"  📋 Pending rewrites: {len(pending)}")
            for rewrite in pending:
                print(f"     {rewrite.old_path} -> {rewrite.new_path} "
                      f"({rewrite.rewritten_count}/{rewrite.expected_count})")
        else:
            replayed = await service.repair_pending()
            await session.commit()
            for rewrite in replayed:
                state = "done" if not rewrite.is_pending else "still pending"
                print(f"  🔧 {rewrite.old_path} -> {rewrite.new_path}: "
                      f"{rewrite.rewritten_count}/{rewrite.expected_count} ({state})")
            print(f"  ✅ Replayed: {len(replayed)} rewrites")
            if replayed:
                cache = get_cache_service()
                await invalidate_categories_cache(cache)
                await cache.close()

        issues = await service.check_integrity()

    await engine.dispose()

    print(f"\n{'='*60}")
    if issues:
        print(f"  ❌ {len(issues)} integrity issues")
        print(f"{'='*60}")
        for issue in issues:
            print(f"  {issue.category_id:<24} {issue.issue:<18} {issue.detail}")
        print()
        return 1

    print(f"  ✅ Tree is consistent")
    print(f"{'='*60}\n")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Repair category materialized paths")
    parser.add_argument("--check", action="store_true", help="Report only, change nothing")
    args = parser.parse_args()
    sys.exit(asyncio.run(repair(args.check)))


if __name__ == "__main__":
    main()
