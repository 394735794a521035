"""Database dependencies for FastAPI route handlers.

Two session getters exist:

1. `get_db_session()` (this module) - FastAPI dependency, one session per request.
2. `get_async_session()` (infra.database) - context manager for tasks and scripts.

Both use the same session factory.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from fanout_service.infra.database import get_async_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """FastAPI dependency for database session.

    Yields:
        Database session that is automatically closed after request.
    """
    async with get_async_session() as session:
        yield session
