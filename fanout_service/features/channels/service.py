"""Business logic for posting messages and managing subscriptions.

Methods work inside the caller's session and never commit. Posting a
message stages the channel fan-out in the same session, so the message and
the task that announces it become durable together.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from fanout_service.core.exceptions import BadRequestException
from fanout_service.features.channels.models import Message
from fanout_service.features.channels.repository import (
    ChannelRepository,
    MessageRepository,
    SubscriptionRepository,
)
from fanout_service.features.push.task_names import FANOUT_CHANNEL
from fanout_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from fanout_service.core.settings.push import PushSettings
    from fanout_service.features.channels.models import Subscription
    from fanout_service.infra.tasks.queue import TaskQueue

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)


class ChannelService:
    """Channel messages, subscriptions and their expiry sweeps."""

    def __init__(
        self,
        queue: TaskQueue,
        settings: PushSettings,
        *,
        channels: ChannelRepository | None = None,
        messages: MessageRepository | None = None,
        subscriptions: SubscriptionRepository | None = None,
    ) -> None:
        self.queue = queue
        self.settings = settings
        self.channels = channels or ChannelRepository()
        self.messages = messages or MessageRepository()
        self.subscriptions = subscriptions or SubscriptionRepository()

    async def publish(
        self,
        session: AsyncSession,
        channel_id: str,
        payload: bytes,
        *,
        now: datetime | None = None,
    ) -> Message:
        """Store ``payload`` as a new message and stage the channel fan-out.

        Raises:
            BadRequestException: If the payload is empty.
        """
        if not payload:
            raise BadRequestException(
                detail="No empty messages allowed",
                type="empty-message",
                extra={"channel_id": channel_id},
            )

        now = now or datetime.now(UTC)
        await self.channels.touch(session, channel_id, now)
        message = await self.messages.create(
            session,
            Message(channel_id=channel_id, created_at=now, payload=payload),
        )
        await self.queue.enqueue(session, FANOUT_CHANNEL, channel_id)

        logger.info(
            "Message accepted",
            extra={
                "channel_id": channel_id,
                "message_id": str(message.id),
                "bytes": len(payload),
                "operation": "channels.publish",
            },
        )
        return message

    async def list_messages(
        self,
        session: AsyncSession,
        channel_id: str,
        *,
        since: datetime | None = None,
    ) -> Sequence[Message]:
        return await self.messages.list_for_channel(session, channel_id, since=since)

    async def subscribe(
        self,
        session: AsyncSession,
        channel_id: str,
        device_id: str,
        *,
        now: datetime | None = None,
    ) -> Subscription:
        """Create or renew the subscription for ``subscription_ttl_days``."""
        now = now or datetime.now(UTC)
        expires_at = now + timedelta(days=self.settings.subscription_ttl_days)
        subscription = await self.subscriptions.upsert(session, channel_id, device_id, expires_at)

        lazy_logger.debug(
            lambda: f"channels.subscribe: {channel_id!r} subscription {subscription.id} until {expires_at.isoformat()}"
        )
        return subscription

    async def unsubscribe(self, session: AsyncSession, channel_id: str, device_id: str) -> int:
        deleted = await self.subscriptions.delete_for(session, channel_id, device_id)
        logger.info(
            "Device unsubscribed",
            extra={"channel_id": channel_id, "deleted": deleted, "operation": "channels.unsubscribe"},
        )
        return deleted

    async def subscribing(
        self,
        session: AsyncSession,
        channel_id: str,
        device_id: str,
    ) -> Sequence[Subscription]:
        return await self.subscriptions.list_for(session, channel_id, device_id)

    async def sweep_expired(
        self,
        session: AsyncSession,
        *,
        now: datetime | None = None,
    ) -> dict[str, int]:
        """Delete expired subscriptions, old messages and idle channels.

        Returns:
            Deleted row counts keyed by "subscriptions", "messages" and "channels"
        """
        now = now or datetime.now(UTC)
        counts = {
            "subscriptions": await self.subscriptions.delete_expired(session, now),
            "messages": await self.messages.delete_older_than(
                session, now - timedelta(days=self.settings.message_max_age_days)
            ),
            "channels": await self.channels.delete_idle(
                session, now - timedelta(days=self.settings.channel_max_idle_days)
            ),
        }
        logger.info("Expiry sweep finished", extra={**counts, "operation": "channels.sweep_expired"})
        return counts


_channel_service: ChannelService | None = None


def get_channel_service() -> ChannelService:
    """Get the process-wide channel service backed by the task outbox.

    Usage in FastAPI:
        @router.post("/{channel_id}")
        async def post_message(
            channel_id: str,
            service: Annotated[ChannelService, Depends(get_channel_service)],
        ): ...
    """
    global _channel_service
    if _channel_service is None:
        from fanout_service.core.settings import get_push_settings
        from fanout_service.infra.tasks.queue import OutboxTaskQueue

        _channel_service = ChannelService(OutboxTaskQueue(), get_push_settings())
    return _channel_service


__all__ = ["ChannelService", "get_channel_service"]
