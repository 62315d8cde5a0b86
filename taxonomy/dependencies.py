"""FastAPI dependency injection providers."""

from typing import AsyncGenerator, Optional

from fastapi import Header
from sqlalchemy.ext.asyncio import AsyncSession

from taxonomy.db.session import async_session_factory

DEFAULT_ACTOR = "system"


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session for request-scoped usage.

    The session is committed on success or rolled back on error, so a
    category mutation and its descendant cascade land together or not at all.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_actor(x_user_id: Optional[str] = Header(None)) -> str:
    """Identify who is making the change (for created_by/updated_by).

    Authentication lives in front of this service; it forwards the user id
    in the ``X-User-Id`` header.
    """
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return DEFAULT_ACTOR
