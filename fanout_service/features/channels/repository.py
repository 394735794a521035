"""Repositories for channels, messages and subscriptions."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select

from fanout_service.core.database.repository import BaseRepository
from fanout_service.features.channels.models import Channel, Message, Subscription

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class ChannelRepository(BaseRepository[Channel]):
    """Repository for Channel rows."""

    def __init__(self) -> None:
        super().__init__(Channel)

    async def touch(self, session: AsyncSession, channel_id: str, at: datetime) -> Channel:
        """Create the channel or move its ``last_message_at`` forward."""
        channel = await self.get(session, channel_id)
        if channel is None:
            channel = Channel(id=channel_id, last_message_at=at)
            session.add(channel)
        else:
            channel.last_message_at = at
        await session.flush()
        return channel

    async def delete_idle(self, session: AsyncSession, cutoff: datetime) -> int:
        """Delete channels without a message since ``cutoff``, with their messages.

        Returns:
            Number of channels deleted
        """
        idle = select(Channel.id).where(Channel.last_message_at < cutoff)
        await session.execute(
            delete(Message)
            .where(Message.channel_id.in_(idle))
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(
            delete(Channel)
            .where(Channel.last_message_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0

        if deleted:
            self._logger.info(
                "Deleted idle channels",
                extra={"count": deleted, "cutoff": cutoff.isoformat(), "operation": "db.delete_idle"},
            )
        return deleted


class MessageRepository(BaseRepository[Message]):
    """Repository for Message rows."""

    def __init__(self) -> None:
        super().__init__(Message)

    async def list_for_channel(
        self,
        session: AsyncSession,
        channel_id: str,
        *,
        since: datetime | None = None,
    ) -> Sequence[Message]:
        """List a channel's messages oldest first, strictly after ``since`` if given."""
        stmt = select(Message).where(Message.channel_id == channel_id)
        if since is not None:
            stmt = stmt.where(Message.created_at > since)
        stmt = stmt.order_by(Message.created_at.asc(), Message.id.asc())

        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list_for_channel: Message(channel={channel_id!r}, since={since}) -> {len(items)} items"
        )
        return items

    async def delete_older_than(self, session: AsyncSession, cutoff: datetime) -> int:
        result = await session.execute(
            delete(Message)
            .where(Message.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0

        if deleted:
            self._logger.info(
                "Deleted old messages",
                extra={"count": deleted, "cutoff": cutoff.isoformat(), "operation": "db.delete_older_than"},
            )
        return deleted


class SubscriptionRepository(BaseRepository[Subscription]):
    """Repository for Subscription rows.

    Feature-specific methods cover the three access paths of the system:
        - by channel (fan-out enumeration)
        - by device id (removal and rotation chains)
        - by (channel, device) pair (subscribe / unsubscribe / lookup)
    """

    def __init__(self) -> None:
        super().__init__(Subscription)

    async def stream_device_ids(
        self,
        session: AsyncSession,
        channel_id: str,
        *,
        batch_size: int,
        now: datetime | None = None,
    ) -> AsyncIterator[list[str]]:
        """Yield the channel's live device ids in lists of at most ``batch_size``.

        Rows are streamed from the database so large channels are never
        loaded into memory at once.
        """
        now = now or datetime.now(UTC)
        stmt = (
            select(Subscription.device_id)
            .where(Subscription.channel_id == channel_id, Subscription.expires_at > now)
            .order_by(Subscription.id.asc())
            .execution_options(yield_per=batch_size)
        )

        result = await session.stream_scalars(stmt)
        async for partition in result.partitions(batch_size):
            yield list(partition)

    async def ids_for_device(self, session: AsyncSession, device_id: str) -> list[int]:
        """Primary keys of every subscription held by ``device_id``."""
        result = await session.execute(
            select(Subscription.id).where(Subscription.device_id == device_id)
        )
        return list(result.scalars().all())

    async def get_for_update(self, session: AsyncSession, subscription_id: int) -> Subscription | None:
        """Re-read a subscription with a row lock where the backend supports it."""
        result = await session.execute(
            select(Subscription).where(Subscription.id == subscription_id).with_for_update()
        )
        return result.scalars().first()

    async def find(
        self,
        session: AsyncSession,
        channel_id: str,
        device_id: str,
    ) -> Subscription | None:
        result = await session.execute(
            select(Subscription).where(
                Subscription.channel_id == channel_id,
                Subscription.device_id == device_id,
            )
        )
        return result.scalars().first()

    async def list_for(
        self,
        session: AsyncSession,
        channel_id: str,
        device_id: str,
    ) -> Sequence[Subscription]:
        result = await session.execute(
            select(Subscription)
            .where(
                Subscription.channel_id == channel_id,
                Subscription.device_id == device_id,
            )
            .order_by(Subscription.id.asc())
        )
        return result.scalars().all()

    async def upsert(
        self,
        session: AsyncSession,
        channel_id: str,
        device_id: str,
        expires_at: datetime,
    ) -> Subscription:
        """Create the (channel, device) subscription or extend its expiry."""
        subscription = await self.find(session, channel_id, device_id)
        if subscription is None:
            subscription = Subscription(
                channel_id=channel_id,
                device_id=device_id,
                expires_at=expires_at,
            )
            return await self.create(session, subscription)

        subscription.expires_at = expires_at
        await session.flush()
        return subscription

    async def delete_for(self, session: AsyncSession, channel_id: str, device_id: str) -> int:
        result = await session.execute(
            delete(Subscription)
            .where(
                Subscription.channel_id == channel_id,
                Subscription.device_id == device_id,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_by_device_ids(self, session: AsyncSession, device_ids: Sequence[str]) -> int:
        """Delete every subscription held by any of ``device_ids``.

        Returns:
            Number of subscriptions deleted (zero is not an error)
        """
        if not device_ids:
            return 0
        result = await session.execute(
            delete(Subscription)
            .where(Subscription.device_id.in_(list(device_ids)))
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0

        self._lazy.debug(
            lambda: f"db.delete_by_device_ids: Subscription(devices={len(device_ids)}) -> {deleted} deleted"
        )
        return deleted

    async def delete_expired(self, session: AsyncSession, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        result = await session.execute(
            delete(Subscription)
            .where(Subscription.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        deleted = result.rowcount or 0

        if deleted:
            self._logger.info(
                "Deleted expired subscriptions",
                extra={"count": deleted, "cutoff": now.isoformat(), "operation": "db.delete_expired"},
            )
        return deleted


__all__ = ["ChannelRepository", "MessageRepository", "SubscriptionRepository"]
