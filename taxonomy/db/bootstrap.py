"""Database bootstrap: create tables and finish interrupted cascades."""

from typing import List

import structlog
from sqlalchemy.exc import OperationalError
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from taxonomy.db.session import async_session_factory, engine
from taxonomy.models import Base, PathRewrite
from taxonomy.services.category_service import CategoryService

logger = structlog.get_logger(__name__)


# The database container may still be starting when the API boots
db_retry = retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, min=1, max=15),
    retry=retry_if_exception_type((OperationalError, ConnectionError, OSError)),
    before_sleep=before_sleep_log(logger, "warning"),
    reraise=True,
)


@db_retry
async def create_tables() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ready")


async def replay_pending_rewrites() -> List[PathRewrite]:
    """Complete every journaled cascade a previous process left unfinished."""
    async with async_session_factory() as session:
        replayed = await CategoryService(session).repair_pending()
        await session.commit()

    if replayed:
        logger.warning("pending_rewrites_recovered", count=len(replayed))
    return replayed


async def init_database() -> List[PathRewrite]:
    """Create tables, then recover pending cascades. Returns the replayed journal rows."""
    await create_tables()
    return await replay_pending_rewrites()
