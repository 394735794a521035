"""Background relay moving task outbox rows onto the taskiq broker.

The relay runs as a background task that:
1. Polls the task outbox for pending rows
2. Kicks each row to the broker under its task name, with its delay
3. Marks rows as processed or schedules a retry on failure

Delivery to the broker is at-least-once: a crash between the kick and the
commit re-kicks the row on the next poll. Every pipeline step tolerates
being executed twice.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from typing import TYPE_CHECKING, Any, Protocol

from fanout_service.infra.tasks.outbox.repository import TaskOutboxRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from taskiq import AsyncBroker

    from fanout_service.infra.tasks.outbox.models import TaskOutbox

logger = logging.getLogger(__name__)

# Global relay instance
_relay: OutboxRelay | None = None


class TaskKicker(Protocol):
    async def kick(self, task_name: str, args: Sequence[Any], delay: float) -> None: ...


class BrokerKicker:
    """Kicks tasks registered on a taskiq broker.

    The delay is passed as the ``delay`` label (whole seconds, rounded up),
    which the broker's delayed-message support honours.
    """

    def __init__(self, broker: AsyncBroker) -> None:
        self.broker = broker

    async def kick(self, task_name: str, args: Sequence[Any], delay: float) -> None:
        task = self.broker.find_task(task_name)
        if task is None:
            msg = f"Task {task_name!r} is not registered on the broker"
            raise KeyError(msg)

        kicker = task.kicker()
        if delay > 0:
            kicker = kicker.with_labels(delay=math.ceil(delay))
        await kicker.kiq(*args)


class OutboxRelay:
    """Background relay for task outbox rows.

    Attributes:
        batch_size: Rows relayed per iteration
        poll_interval: Seconds between polls when the outbox is empty
        max_attempts: Failed kicks before a row is left for inspection
        retry_delay_seconds: Base delay of the exponential kick backoff
    """

    def __init__(
        self,
        kicker: TaskKicker,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        batch_size: int = 100,
        poll_interval: float = 1.0,
        max_attempts: int = 10,
        retry_delay_seconds: int = 5,
    ) -> None:
        if session_factory is None:
            from fanout_service.infra.database.session import AsyncSessionLocal

            session_factory = AsyncSessionLocal

        self.kicker = kicker
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.retry_delay_seconds = retry_delay_seconds

        self._repository = TaskOutboxRepository()
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            logger.warning("Outbox relay already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info(
            "Outbox relay started",
            extra={
                "batch_size": self.batch_size,
                "poll_interval": self.poll_interval,
                "max_attempts": self.max_attempts,
            },
        )

    async def stop(self) -> None:
        """Stop the relay, waiting for the current batch to finish."""
        if not self._running:
            return

        self._running = False

        if self._task:
            try:
                await asyncio.wait_for(self._task, timeout=30.0)
            except TimeoutError:
                logger.warning("Outbox relay shutdown timed out, cancelling")
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            self._task = None

        logger.info("Outbox relay stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                relayed = await self._process_batch()

                if relayed == 0:
                    await asyncio.sleep(self.poll_interval)
                else:
                    # More rows might be waiting
                    await asyncio.sleep(0)

            except asyncio.CancelledError:
                logger.info("Outbox relay loop cancelled")
                break
            except Exception:
                logger.exception("Error in outbox relay loop")
                await asyncio.sleep(self.poll_interval * 2)

    async def _kick_row(self, session: AsyncSession, row: TaskOutbox) -> bool:
        try:
            await self.kicker.kick(row.task_name, row.args, row.delay_seconds)
        except Exception as e:
            error_msg = str(e) or type(e).__name__
            await self._repository.mark_failed(
                session,
                row,
                error_msg,
                retry_delay_seconds=self.retry_delay_seconds,
            )
            logger.warning(
                "Failed to kick outbox task, scheduled for retry",
                extra={
                    "outbox_id": str(row.id),
                    "task_name": row.task_name,
                    "error": error_msg,
                    "retry_count": row.retry_count + 1,
                    "operation": "outbox.relay",
                },
            )
            return False

        await self._repository.mark_processed(session, row.id)
        return True

    async def _process_batch(self) -> int:
        """Relay one batch of pending rows.

        Returns:
            Number of rows kicked successfully
        """
        relayed = 0

        async with self.session_factory() as session:
            rows = await self._repository.fetch_pending(
                session,
                batch_size=self.batch_size,
                max_retries=self.max_attempts,
            )
            if not rows:
                return 0

            logger.debug("Relaying outbox batch", extra={"batch_size": len(rows)})

            for row in rows:
                if await self._kick_row(session, row):
                    relayed += 1

            await session.commit()

        if relayed > 0:
            logger.info(
                "Outbox batch relayed",
                extra={"relayed": relayed, "total": len(rows), "operation": "outbox.relay"},
            )
        return relayed

    async def process_one(self) -> bool:
        """Relay a single pending row.

        Returns:
            True if a row was kicked, False if none pending or the kick failed
        """
        async with self.session_factory() as session:
            rows = await self._repository.fetch_pending(
                session, batch_size=1, max_retries=self.max_attempts
            )
            if not rows:
                return False

            kicked = await self._kick_row(session, rows[0])
            await session.commit()
            return kicked

    async def drain(self) -> int:
        """Relay batches until the outbox has nothing due.

        Returns:
            Total number of rows kicked
        """
        total = 0
        while True:
            relayed = await self._process_batch()
            if relayed == 0:
                return total
            total += relayed


async def start_outbox_relay(broker: AsyncBroker | None) -> None:
    """Start the global outbox relay for ``broker``."""
    global _relay

    from fanout_service.core.settings import get_task_settings

    task_settings = get_task_settings()
    if broker is None:
        logger.info("Task broker not configured, skipping outbox relay")
        return
    if not task_settings.relay_enabled:
        logger.info("Outbox relay disabled by configuration")
        return

    _relay = OutboxRelay(
        BrokerKicker(broker),
        batch_size=task_settings.relay_batch_size,
        poll_interval=task_settings.relay_poll_interval_seconds,
        max_attempts=task_settings.relay_max_attempts,
        retry_delay_seconds=task_settings.relay_retry_delay_seconds,
    )
    await _relay.start()


async def stop_outbox_relay() -> None:
    global _relay

    if _relay is not None:
        await _relay.stop()
        _relay = None


__all__ = [
    "BrokerKicker",
    "OutboxRelay",
    "TaskKicker",
    "start_outbox_relay",
    "stop_outbox_relay",
]
