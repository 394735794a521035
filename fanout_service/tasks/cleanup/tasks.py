"""Expiry sweep task definitions.

This module provides:
- Expired subscription removal
- Old message and idle channel removal
- Relayed task outbox row cleanup
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fanout_service.core.settings import get_push_settings, get_task_settings
from fanout_service.features.channels.service import ChannelService
from fanout_service.infra.tasks.outbox.repository import TaskOutboxRepository
from fanout_service.infra.tasks.queue import OutboxTaskQueue
from fanout_service.tasks.broker import broker

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)

SWEEP_TASK_NAME = "maintenance.sweep_expired"


async def run_expiry_sweep(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Delete expired records in one transaction.

    Returns:
        Deleted row counts per table
    """
    if session_factory is None:
        from fanout_service.infra.database.session import AsyncSessionLocal

        session_factory = AsyncSessionLocal

    task_settings = get_task_settings()
    service = ChannelService(OutboxTaskQueue(), get_push_settings())
    outbox = TaskOutboxRepository()

    async with session_factory() as session, session.begin():
        counts: dict[str, Any] = await service.sweep_expired(session, now=now)
        counts["task_outbox"] = await outbox.cleanup_processed(
            session, older_than_days=task_settings.outbox_retention_days
        )
        failed = await outbox.count_failed(session, max_retries=task_settings.relay_max_attempts)

    if failed:
        logger.warning(
            "Task outbox holds rows that exhausted their kick attempts",
            extra={"count": failed, "operation": "maintenance.sweep_expired"},
        )

    logger.info("Expired records swept", extra={**counts, "operation": "maintenance.sweep_expired"})
    return counts


if broker is not None:

    @broker.task(task_name=SWEEP_TASK_NAME)
    async def sweep_expired() -> dict[str, Any]:
        """Remove expired subscriptions, messages, channels and outbox rows.

        Scheduled: every TASK_SWEEP_INTERVAL_HOURS hours.
        """
        return await run_expiry_sweep()
