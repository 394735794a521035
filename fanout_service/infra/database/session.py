"""Database session management with psycopg3 async driver."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fanout_service.core.settings import get_app_settings, get_db_settings
from fanout_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()
app_settings = get_app_settings()

engine_kwargs = db_settings.sqlalchemy_engine_kwargs()
engine_kwargs["echo"] = db_settings.echo or app_settings.debug

# Falls back to a local SQLite file when PostgreSQL is disabled
engine = create_async_engine(db_settings.get_sqlalchemy_url(), **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False,
)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session, session.begin():
            await channel_service.publish(session, "news", b"hello")
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


@retry(
    max_attempts=db_settings.startup_retry_attempts,
    initial_delay=db_settings.startup_retry_delay,
    max_delay=30.0,
    exponential_base=2.0,
    jitter=True,
)
async def init_database() -> None:
    """Check the database connection, retrying with exponential backoff.

    Raises:
        RetryError: If unable to connect after all retry attempts.
    """
    db_url = db_settings.get_sqlalchemy_url()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"url": db_url.split("@")[-1], "error": str(e)},
        )
        raise

    logger.info(
        "Database connection established successfully",
        extra={"url": db_url.split("@")[-1]},
    )


async def close_database() -> None:
    """Dispose of the engine's connection pool.

    This should be called during application shutdown.
    """
    logger.info("Closing database connection")

    try:
        await engine.dispose()
        logger.info("Database connection closed successfully")
    except Exception as e:
        logger.exception("Error closing database connection", extra={"error": str(e)})


__all__ = [
    "AsyncSessionLocal",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
