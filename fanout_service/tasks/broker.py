"""Taskiq broker configuration for the push pipeline.

Background tasks run on RabbitMQ through taskiq-aio-pika:
    - Run worker: `taskiq worker fanout_service.tasks.broker:broker`

Producers never kick tasks directly. They stage rows in the task outbox and
the outbox relay kicks them onto this broker by task name.
"""

from __future__ import annotations

import logging

from taskiq import SimpleRetryMiddleware
from taskiq_aio_pika import AioPikaBroker

from fanout_service.core.settings import get_rabbit_settings, get_task_settings
from fanout_service.infra.logging.config import setup_logging

logger = logging.getLogger(__name__)

rabbit_settings = get_rabbit_settings()
task_settings = get_task_settings()
setup_logging()

TASK_QUEUE = "taskiq-tasks"

broker: AioPikaBroker | None = None

if rabbit_settings.is_configured:
    from fanout_service.tasks.middleware import LogContextMiddleware

    broker = AioPikaBroker(
        url=rabbit_settings.url,
        queue_name=rabbit_settings.get_prefixed_queue(TASK_QUEUE),
        declare_exchange=True,
        declare_queues=True,
        qos=rabbit_settings.prefetch_count,
    ).with_middlewares(
        SimpleRetryMiddleware(default_retry_count=task_settings.max_retries),
        LogContextMiddleware(),
    )

    logger.info(
        "Taskiq background task broker configured",
        extra={
            "queue": rabbit_settings.get_prefixed_queue(TASK_QUEUE),
            "max_retries": task_settings.max_retries,
        },
    )
else:
    logger.warning("RabbitMQ not configured - background tasks disabled")


async def start_taskiq() -> None:
    """Start the Taskiq broker.

    This only opens the connection used for kicking tasks from the API
    process. Tasks are executed by a separate worker:
        taskiq worker fanout_service.tasks.broker:broker

    Raises:
        ConnectionError: If unable to connect to RabbitMQ.
    """
    if broker is None:
        logger.warning("Taskiq broker not configured, skipping startup")
        return

    logger.info("Starting Taskiq broker")

    try:
        await broker.startup()
        logger.info("Taskiq broker started successfully")
    except Exception as e:
        logger.exception("Failed to start Taskiq broker", extra={"error": str(e)})
        raise


async def stop_taskiq() -> None:
    if broker is None:
        logger.debug("Taskiq broker not configured, skipping shutdown")
        return

    logger.info("Stopping Taskiq broker")

    try:
        await broker.shutdown()
        logger.info("Taskiq broker stopped successfully")
    except Exception as e:
        logger.exception("Error stopping Taskiq broker", extra={"error": str(e)})


# Workers relay the outbox rows their own tasks stage
if broker is not None:
    from taskiq import TaskiqEvents, TaskiqState

    @broker.on_event(TaskiqEvents.WORKER_STARTUP)
    async def _start_worker_relay(state: TaskiqState) -> None:
        from fanout_service.infra.tasks.outbox import start_outbox_relay

        await start_outbox_relay(broker)

    @broker.on_event(TaskiqEvents.WORKER_SHUTDOWN)
    async def _stop_worker_relay(state: TaskiqState) -> None:
        from fanout_service.infra.tasks.outbox import stop_outbox_relay

        await stop_outbox_relay()


# Importing the task modules registers their tasks on the broker; the worker
# only imports this module.
if broker is not None:
    import fanout_service.tasks.cleanup.tasks  # noqa: F401
    import fanout_service.tasks.push.tasks  # noqa: F401

    logger.debug("All task modules imported and registered with broker")
