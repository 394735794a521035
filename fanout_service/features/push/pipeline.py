"""Push fan-out pipeline.

Every step is a task handler taking a ``TaskHandle`` first:

    fanout_channel(channel_id)
        -> deliver_batch(0, channel_id, batch)            one per batch
            -> deliver_batch(next_delay, channel_id, ids)  5xx or Unavailable
            -> rotate_device_ids(old_ids, new_ids)         canonical ids
            -> remove_device_ids(ids)                      dead devices

Follow-up tasks are staged through the ``TaskQueue`` inside the same storage
transaction as the step's own writes. A step that fails with a storage,
transport or unreadable-response error raises, and the broker redelivers
it. Steps are idempotent, so redelivery is safe.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from fanout_service.features.channels.repository import SubscriptionRepository
from fanout_service.features.push import task_names
from fanout_service.features.push.backoff import next_delay
from fanout_service.features.push.classifier import Classification, classify_results
from fanout_service.features.push.exceptions import (
    GatewayClientError,
    GatewayServerError,
    StorageError,
)
from fanout_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from fanout_service.core.settings.push import PushSettings
    from fanout_service.features.push.gateway import PushGatewayClient
    from fanout_service.infra.tasks.queue import TaskQueue
    from fanout_service.tasks.registry import TaskHandle, TaskRegistry

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


@dataclass
class DeliveryReport:
    """What one ``deliver_batch`` execution did with its batch."""

    channel_id: str
    batch_size: int
    next_delay: float
    status_code: int | None = None
    rotations: int = 0
    retries: int = 0
    removals: int = 0
    redispatched: bool = False
    dropped: bool = False


class PushPipeline:
    """Task handlers of the fan-out, delivery and reconciliation pipeline.

    Args:
        session_factory: Creates the sessions each step runs its transactions in.
        queue: Where follow-up tasks are staged.
        gateway: Client for the push gateway.
        settings: Batch size, backoff curve and chain step size.
        subscriptions: Subscription repository (a fresh one by default).
    """

    def __init__(
        self,
        *,
        session_factory: async_sessionmaker[AsyncSession],
        queue: TaskQueue,
        gateway: PushGatewayClient,
        settings: PushSettings,
        subscriptions: SubscriptionRepository | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.queue = queue
        self.gateway = gateway
        self.settings = settings
        self.subscriptions = subscriptions or SubscriptionRepository()

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        """One committed transaction; SQLAlchemy failures surface as ``StorageError``."""
        try:
            async with self.session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.warning(
                "Storage error in push pipeline",
                extra={"error": str(exc), "operation": operation},
            )
            msg = f"{operation} failed: {exc}"
            raise StorageError(msg) from exc

    def _next_delay(self, delay: float) -> float:
        return next_delay(
            delay,
            multiplier=self.settings.backoff_multiplier,
            min_delay=self.settings.min_delay_seconds,
            max_delay=self.settings.max_delay_seconds,
        )

    # ------------------------------------------------------------------
    # Subscriber enumeration
    # ------------------------------------------------------------------

    async def fanout_channel(self, handle: TaskHandle, channel_id: str) -> int:
        """Enqueue one ``deliver_batch`` per batch of the channel's live devices.

        All batches are staged in one transaction.

        Returns:
            Number of batches enqueued
        """
        batches = 0
        devices = 0

        async with self._transaction("push.fanout_channel") as session:
            async for batch in self.subscriptions.stream_device_ids(
                session, channel_id, batch_size=self.settings.batch_size
            ):
                await self.queue.enqueue(session, task_names.DELIVER_BATCH, 0.0, channel_id, batch)
                batches += 1
                devices += len(batch)

        logger.info(
            "Channel fanned out",
            extra={
                "channel_id": channel_id,
                "batches": batches,
                "devices": devices,
                "operation": handle.name,
            },
        )
        return batches

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def deliver_batch(
        self,
        handle: TaskHandle,
        delay: float,
        channel_id: str,
        device_ids: list[str],
    ) -> DeliveryReport:
        """Send one multicast request for ``device_ids`` and act on the answer.

        ``delay`` is the backoff this batch was scheduled with; the next
        retry, if any, waits ``next_delay(delay)`` unless the gateway sent a
        usable ``Retry-After``.
        """
        computed_delay = self._next_delay(float(delay))
        report = DeliveryReport(
            channel_id=channel_id,
            batch_size=len(device_ids),
            next_delay=computed_delay,
        )

        if not device_ids:
            lazy_logger.debug(lambda: f"push.deliver_batch: empty batch for {channel_id!r}")
            return report

        try:
            response = await self.gateway.send(channel_id, device_ids)
        except GatewayServerError as exc:
            report.status_code = exc.status_code
            if exc.retry_after is not None:
                report.next_delay = exc.retry_after
            async with self._transaction(handle.name) as session:
                await handle.enqueue(
                    session,
                    report.next_delay,
                    channel_id,
                    list(device_ids),
                    delay=report.next_delay,
                )
            report.redispatched = True
            logger.error(
                "Push gateway error, batch rescheduled",
                extra={
                    "channel_id": channel_id,
                    "batch_size": len(device_ids),
                    "status_code": exc.status_code,
                    "next_delay": report.next_delay,
                    "operation": handle.name,
                },
            )
            return report
        except GatewayClientError as exc:
            report.status_code = exc.status_code
            report.dropped = True
            logger.error(
                "Push gateway rejected batch, dropping it",
                extra={
                    "channel_id": channel_id,
                    "batch_size": len(device_ids),
                    "status_code": exc.status_code,
                    "operation": handle.name,
                },
            )
            return report

        report.status_code = 200
        if response.retry_after is not None:
            report.next_delay = response.retry_after

        if not response.needs_reconciliation:
            return report

        classification = classify_results(
            device_ids,
            response.results,
            unavailable_error=self.settings.unavailable_error,
        )
        report.rotations = len(classification.rotate_old)
        report.retries = len(classification.retries)
        report.removals = len(classification.removals)

        if not classification.is_empty:
            await self.apply_reconciliation(channel_id, classification, report.next_delay)
        return report

    async def apply_reconciliation(
        self,
        channel_id: str,
        classification: Classification,
        next_delay: float,
    ) -> None:
        """Stage retry, rotation and removal follow-ups in one transaction."""
        if classification.is_empty:
            return

        async with self._transaction("push.apply_reconciliation") as session:
            if classification.retries:
                await self.queue.enqueue(
                    session,
                    task_names.DELIVER_BATCH,
                    next_delay,
                    channel_id,
                    list(classification.retries),
                    delay=next_delay,
                )
            if classification.rotate_old:
                await self.queue.enqueue(
                    session,
                    task_names.ROTATE_DEVICE_IDS,
                    list(classification.rotate_old),
                    list(classification.rotate_new),
                )
            if classification.removals:
                await self.queue.enqueue(
                    session,
                    task_names.REMOVE_DEVICE_IDS,
                    list(classification.removals),
                )

        logger.info(
            "Delivery results reconciled",
            extra={
                "channel_id": channel_id,
                "retries": len(classification.retries),
                "rotations": len(classification.rotate_old),
                "removals": len(classification.removals),
                "next_delay": next_delay,
                "operation": "push.apply_reconciliation",
            },
        )

    # ------------------------------------------------------------------
    # Correction chains
    # ------------------------------------------------------------------

    def _split(self, items: Sequence[Any]) -> tuple[list[Any], list[Any]]:
        step = self.settings.chain_step_size
        return list(items[:step]), list(items[step:])

    async def remove_device_ids(self, handle: TaskHandle, device_ids: list[str]) -> int:
        """Delete the subscriptions of the head group and re-enqueue the tail.

        Returns:
            Number of subscriptions deleted by this step
        """
        if not device_ids:
            return 0

        head, tail = self._split(device_ids)
        async with self._transaction(handle.name) as session:
            deleted = await self.subscriptions.delete_by_device_ids(session, head)
            if tail:
                await handle.enqueue(session, tail)

        logger.info(
            "Removed subscriptions of dead devices",
            extra={
                "devices": len(head),
                "deleted": deleted,
                "remaining": len(tail),
                "operation": handle.name,
            },
        )
        return deleted

    async def _rotate_subscription(self, subscription_id: int, old_id: str, new_id: str) -> str:
        """Rewrite one subscription from ``old_id`` to ``new_id``.

        Returns:
            "rotated", "merged" (stale duplicate deleted) or "skipped"
        """
        async with self._transaction("push.rotate_subscription") as session:
            subscription = await self.subscriptions.get_for_update(session, subscription_id)
            if subscription is None or subscription.device_id != old_id:
                return "skipped"

            existing = await self.subscriptions.find(session, subscription.channel_id, new_id)
            if existing is not None and existing.id != subscription.id:
                await session.delete(subscription)
                return "merged"

            subscription.device_id = new_id
            return "rotated"

    async def rotate_device_ids(
        self,
        handle: TaskHandle,
        old_ids: list[str],
        new_ids: list[str],
    ) -> int:
        """Rotate the head pairs' subscriptions and re-enqueue the tail pairs.

        Each subscription is re-read and verified in its own transaction, so
        a row rotated or deleted concurrently is skipped.

        Returns:
            Number of subscriptions rewritten or merged by this step
        """
        if len(old_ids) != len(new_ids):
            msg = f"rotate_device_ids needs equal-length lists, got {len(old_ids)} and {len(new_ids)}"
            raise ValueError(msg)
        if not old_ids:
            return 0

        old_head, old_tail = self._split(old_ids)
        new_head, new_tail = self._split(new_ids)
        changed = 0

        for old_id, new_id in zip(old_head, new_head, strict=True):
            async with self._transaction(handle.name) as session:
                subscription_ids = await self.subscriptions.ids_for_device(session, old_id)

            for subscription_id in subscription_ids:
                outcome = await self._rotate_subscription(subscription_id, old_id, new_id)
                if outcome != "skipped":
                    changed += 1
                lazy_logger.debug(
                    lambda sid=subscription_id, outcome=outcome: f"push.rotate: subscription {sid} {outcome}"
                )

        if old_tail:
            async with self._transaction(handle.name) as session:
                await handle.enqueue(session, old_tail, new_tail)

        logger.info(
            "Rotated device ids",
            extra={
                "pairs": len(old_head),
                "changed": changed,
                "remaining": len(old_tail),
                "operation": handle.name,
            },
        )
        return changed

    def register(self, registry: TaskRegistry) -> None:
        """Register the four pipeline handlers under their task names."""
        registry.register(task_names.FANOUT_CHANNEL, self.fanout_channel)
        registry.register(task_names.DELIVER_BATCH, self.deliver_batch)
        registry.register(task_names.ROTATE_DEVICE_IDS, self.rotate_device_ids)
        registry.register(task_names.REMOVE_DEVICE_IDS, self.remove_device_ids)


__all__ = ["DeliveryReport", "PushPipeline"]
