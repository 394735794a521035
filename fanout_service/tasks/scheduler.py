"""APScheduler integration for the periodic expiry sweep.

With a broker configured the sweep is kicked onto the queue and runs in a
worker; without one it runs in-process:

    APScheduler (in-process) -> Taskiq kiq() -> RabbitMQ -> Taskiq Worker
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fanout_service.core.settings import get_task_settings
from fanout_service.tasks.broker import broker

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 60,
    },
)


async def _schedule_expiry_sweep() -> None:
    from fanout_service.tasks.cleanup.tasks import SWEEP_TASK_NAME, run_expiry_sweep

    if broker is not None:
        task = broker.find_task(SWEEP_TASK_NAME)
        if task is not None:
            await task.kiq()
            return
    await run_expiry_sweep()


def setup_scheduled_jobs() -> None:
    """Register the scheduled jobs with APScheduler.

    Call during application startup after the Taskiq broker is started.
    """
    task_settings = get_task_settings()
    if not task_settings.sweeps_enabled:
        logger.info("Expiry sweeps disabled by configuration")
        return

    scheduler.add_job(
        func=_schedule_expiry_sweep,
        trigger=IntervalTrigger(hours=task_settings.sweep_interval_hours),
        id="expiry_sweep",
        name="Delete expired subscriptions, messages, channels and outbox rows",
        replace_existing=True,
    )

    logger.info(f"Scheduled {len(scheduler.get_jobs())} jobs")


async def start_scheduler() -> None:
    if not scheduler.running:
        logger.info("Starting APScheduler")
        scheduler.start()
        logger.info(f"APScheduler started with {len(scheduler.get_jobs())} jobs")
    else:
        logger.warning("APScheduler is already running")


async def stop_scheduler() -> None:
    """Stop the APScheduler gracefully.

    Call during application shutdown.
    """
    if scheduler.running:
        logger.info("Stopping APScheduler")
        scheduler.shutdown(wait=True)
        logger.info("APScheduler stopped")
    else:
        logger.debug("APScheduler is not running")


def get_job_status() -> list[dict]:
    """Get status of all scheduled jobs."""
    jobs = []
    for job in scheduler.get_jobs():
        # Jobs added before start() have no next_run_time yet
        next_run_time = getattr(job, "next_run_time", None)
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run_time": next_run_time.isoformat() if next_run_time else None,
                "trigger": str(job.trigger),
            }
        )
    return jobs
