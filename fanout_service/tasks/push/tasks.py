"""Push pipeline task registration.

The four pipeline handlers are registered under their task names and, when
a broker is configured, bound to it so workers can execute them.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fanout_service.core.settings import get_push_settings, get_task_settings
from fanout_service.features.push.gateway import PushGatewayClient
from fanout_service.features.push.pipeline import PushPipeline
from fanout_service.infra.tasks.queue import OutboxTaskQueue
from fanout_service.tasks.broker import broker
from fanout_service.tasks.registry import TaskRegistry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from fanout_service.core.settings.push import PushSettings
    from fanout_service.infra.tasks.queue import TaskQueue

logger = logging.getLogger(__name__)


def build_push_registry(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    queue: TaskQueue | None = None,
    gateway: PushGatewayClient | None = None,
    settings: PushSettings | None = None,
) -> tuple[TaskRegistry, PushPipeline, TaskQueue]:
    """Wire a pipeline to a registry.

    Without an explicit queue, follow-ups are staged in the task outbox and
    restricted to the registry's own task names.

    Returns:
        The registry, the pipeline and the queue the pipeline stages into
    """
    settings = settings or get_push_settings()
    registry = TaskRegistry()
    queue = queue or OutboxTaskQueue(registry.names)
    pipeline = PushPipeline(
        session_factory=session_factory,
        queue=queue,
        gateway=gateway or PushGatewayClient(settings),
        settings=settings,
    )
    pipeline.register(registry)
    return registry, pipeline, queue


if broker is not None:
    from fanout_service.infra.database.session import AsyncSessionLocal

    push_settings = get_push_settings()
    if not push_settings.is_configured:
        logger.warning("PUSH_API_KEY not set - gateway requests will be rejected")

    push_registry, _, push_queue = build_push_registry(AsyncSessionLocal, settings=push_settings)
    push_tasks = push_registry.bind(broker, push_queue, max_retries=get_task_settings().max_retries)


__all__ = ["build_push_registry"]
