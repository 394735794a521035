"""Unit tests for ChannelService and the channel repositories."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select

from fanout_service.core.exceptions import BadRequestException
from fanout_service.features.channels.models import Channel, Message, Subscription
from fanout_service.features.channels.service import ChannelService
from fanout_service.features.push.task_names import FANOUT_CHANNEL
from fanout_service.infra.tasks.outbox.models import TaskOutbox
from fanout_service.infra.tasks.queue import OutboxTaskQueue

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


def _naive_utc(value: datetime) -> datetime:
    """SQLite hands timezone-aware columns back without tzinfo."""
    return value.astimezone(UTC).replace(tzinfo=None) if value.tzinfo else value


async def _count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


@pytest.fixture
def service(task_queue, push_settings) -> ChannelService:
    return ChannelService(task_queue, push_settings)


@pytest.mark.unit
class TestPublish:
    """Test suite for ChannelService.publish."""

    async def test_stores_message_and_stages_fanout(self, service, task_queue, db_session):
        message = await service.publish(db_session, "news", b"hello", now=NOW)
        await db_session.commit()

        assert message.channel_id == "news"
        assert message.payload == b"hello"
        channel = await db_session.get(Channel, "news")
        assert channel is not None
        [task] = task_queue.tasks
        assert task.task_name == FANOUT_CHANNEL
        assert task.args == ("news",)

    async def test_empty_payload_rejected(self, service, task_queue, db_session):
        with pytest.raises(BadRequestException) as exc_info:
            await service.publish(db_session, "news", b"")

        assert exc_info.value.status_code == 400
        assert exc_info.value.type == "empty-message"
        assert task_queue.tasks == []
        assert await _count(db_session, Message) == 0

    async def test_touch_moves_last_message_forward(self, service, db_session):
        await service.publish(db_session, "news", b"one", now=NOW)
        await service.publish(db_session, "news", b"two", now=NOW + timedelta(minutes=5))
        await db_session.commit()

        channel = await db_session.get(Channel, "news")
        assert _naive_utc(channel.last_message_at) == _naive_utc(NOW + timedelta(minutes=5))
        assert await _count(db_session, Channel) == 1

    async def test_outbox_row_commits_with_message(self, push_settings, session_factory):
        service = ChannelService(OutboxTaskQueue(), push_settings)

        async with session_factory() as session, session.begin():
            await service.publish(session, "news", b"hello")

        async with session_factory() as session:
            rows = (await session.execute(select(TaskOutbox))).scalars().all()
            assert [(row.task_name, row.args) for row in rows] == [(FANOUT_CHANNEL, ["news"])]
            assert await _count(session, Message) == 1

    async def test_rollback_discards_message_and_outbox_row(self, push_settings, session_factory):
        service = ChannelService(OutboxTaskQueue(), push_settings)

        async with session_factory() as session:
            await service.publish(session, "news", b"hello")
            await session.rollback()

        async with session_factory() as session:
            assert await _count(session, Message) == 0
            assert await _count(session, TaskOutbox) == 0


@pytest.mark.unit
class TestListMessages:
    """Test suite for reading a channel's messages."""

    async def test_ordered_and_filtered_strictly_after(self, service, db_session):
        for minutes, body in [(0, b"a"), (1, b"b"), (2, b"c")]:
            await service.publish(db_session, "news", body, now=NOW + timedelta(minutes=minutes))
        await service.publish(db_session, "other", b"x", now=NOW)
        await db_session.commit()

        everything = await service.list_messages(db_session, "news")
        later = await service.list_messages(db_session, "news", since=NOW + timedelta(minutes=1))

        assert [m.payload for m in everything] == [b"a", b"b", b"c"]
        assert [m.payload for m in later] == [b"c"]

    async def test_unknown_channel_is_empty(self, service, db_session):
        assert list(await service.list_messages(db_session, "nobody")) == []


@pytest.mark.unit
class TestSubscriptions:
    """Test suite for subscribe, unsubscribe and subscribing."""

    async def test_subscribe_sets_expiry(self, service, db_session):
        subscription = await service.subscribe(db_session, "news", "device-1", now=NOW)
        await db_session.commit()

        assert subscription.device_id == "device-1"
        assert _naive_utc(subscription.expires_at) == _naive_utc(NOW + timedelta(days=35))

    async def test_resubscribe_extends_existing(self, service, db_session):
        first = await service.subscribe(db_session, "news", "device-1", now=NOW)
        second = await service.subscribe(db_session, "news", "device-1", now=NOW + timedelta(days=10))
        await db_session.commit()

        assert first.id == second.id
        assert await _count(db_session, Subscription) == 1
        assert _naive_utc(second.expires_at) == _naive_utc(NOW + timedelta(days=45))

    async def test_unsubscribe(self, service, db_session):
        await service.subscribe(db_session, "news", "device-1")
        await service.subscribe(db_session, "sports", "device-1")

        assert await service.unsubscribe(db_session, "news", "device-1") == 1
        assert await service.unsubscribe(db_session, "news", "device-1") == 0
        remaining = await service.subscribing(db_session, "sports", "device-1")
        assert len(remaining) == 1

    async def test_subscribing(self, service, db_session):
        await service.subscribe(db_session, "news", "device-1")

        assert len(await service.subscribing(db_session, "news", "device-1")) == 1
        assert list(await service.subscribing(db_session, "news", "device-2")) == []


@pytest.mark.unit
class TestSweepExpired:
    """Test suite for the expiry sweep."""

    async def test_deletes_only_expired_records(self, service, db_session):
        old = NOW - timedelta(days=40)
        await service.publish(db_session, "stale", b"old", now=old)
        await service.publish(db_session, "fresh", b"old", now=old)
        await service.publish(db_session, "fresh", b"new", now=NOW - timedelta(days=1))
        db_session.add_all(
            [
                Subscription(channel_id="fresh", device_id="gone", expires_at=NOW - timedelta(seconds=1)),
                Subscription(channel_id="fresh", device_id="live", expires_at=NOW + timedelta(days=1)),
            ]
        )
        await db_session.commit()

        counts = await service.sweep_expired(db_session, now=NOW)
        await db_session.commit()

        assert counts == {"subscriptions": 1, "messages": 2, "channels": 1}
        messages = await service.list_messages(db_session, "fresh")
        assert [m.payload for m in messages] == [b"new"]
        assert list((await db_session.execute(select(Channel.id))).scalars()) == ["fresh"]
        assert [s.device_id for s in (await db_session.execute(select(Subscription))).scalars()] == ["live"]
