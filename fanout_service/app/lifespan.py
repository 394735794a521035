"""Application lifespan management.

Startup Order:
1. Core (logging)
2. Database (PostgreSQL, or the local SQLite fallback)
3. Background tasks (Taskiq broker)
4. Task outbox relay - requires the broker
5. Scheduler (APScheduler expiry sweep)

Shutdown Order: Reverse of startup (what starts first, shuts down last)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fanout_service.core.settings import (
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_push_settings,
    get_rabbit_settings,
)
from fanout_service.infra.logging.config import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_core() -> None:
    app = get_app_settings()

    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app.service_name, "environment": app.environment},
    )
    if not get_push_settings().is_configured:
        logger.warning("PUSH_API_KEY not set - gateway requests will be rejected")


async def _startup_database() -> None:
    """Check the database connection; create tables on the SQLite fallback."""
    from fanout_service.core.database.base import Base
    from fanout_service.infra.database.session import engine, init_database

    # Model modules must be imported for create_all to see their tables
    import fanout_service.features.channels.models  # noqa: F401
    import fanout_service.infra.tasks.outbox.models  # noqa: F401

    await init_database()

    if not get_db_settings().is_configured:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Local SQLite schema ensured", extra={"url": str(engine.url)})


async def _startup_tasks() -> None:
    """Start the Taskiq broker, the outbox relay and the scheduler."""
    from fanout_service.infra.tasks.outbox.relay import start_outbox_relay
    from fanout_service.tasks.broker import broker, start_taskiq
    from fanout_service.tasks.scheduler import setup_scheduled_jobs, start_scheduler

    await start_taskiq()
    await start_outbox_relay(broker)

    setup_scheduled_jobs()
    await start_scheduler()


async def _shutdown_tasks() -> None:
    from fanout_service.infra.tasks.outbox.relay import stop_outbox_relay
    from fanout_service.tasks.broker import stop_taskiq
    from fanout_service.tasks.scheduler import stop_scheduler

    await stop_scheduler()
    await stop_outbox_relay()
    await stop_taskiq()


async def _shutdown_database() -> None:
    from fanout_service.infra.database.session import close_database

    await close_database()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Args:
        app: FastAPI application instance.

    Yields:
        None during application runtime.
    """
    _ = app

    await _startup_core()
    await _startup_database()
    await _startup_tasks()

    app_settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        app_settings.host,
        app_settings.port,
        extra={
            "service": app_settings.service_name,
            "broker": get_rabbit_settings().is_configured,
            "database": get_db_settings().is_configured,
        },
    )

    try:
        yield
    finally:
        logger.info("Application shutting down")
        await _shutdown_tasks()
        await _shutdown_database()

        from fanout_service.infra.logging.config import shutdown as shutdown_logging

        shutdown_logging()
