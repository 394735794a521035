"""Unit tests for the expiry sweep, its scheduling and the task log middleware."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from fanout_service.features.channels.models import Channel, Message, Subscription
from fanout_service.infra.logging import clear_log_context, get_log_context, set_log_context
from fanout_service.infra.tasks.outbox.models import TaskOutbox
from fanout_service.tasks import scheduler as scheduler_module
from fanout_service.tasks.cleanup import run_expiry_sweep
from fanout_service.tasks.middleware import LogContextMiddleware

NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)


async def _count(session_factory, model) -> int:
    async with session_factory() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


@pytest.mark.unit
class TestRunExpirySweep:
    """Test suite for run_expiry_sweep."""

    async def test_sweeps_every_table(self, session_factory):
        old = NOW - timedelta(days=60)
        async with session_factory() as session, session.begin():
            session.add_all(
                [
                    Channel(id="idle", last_message_at=old),
                    Channel(id="busy", last_message_at=NOW),
                    Message(channel_id="idle", created_at=old, payload=b"x"),
                    Message(channel_id="busy", created_at=NOW, payload=b"y"),
                    Subscription(channel_id="busy", device_id="gone", expires_at=NOW - timedelta(days=1)),
                    Subscription(channel_id="busy", device_id="live", expires_at=NOW + timedelta(days=1)),
                    TaskOutbox(
                        task_name="push.fanout_channel",
                        args=["busy"],
                        processed_at=datetime.now(UTC) - timedelta(days=30),
                    ),
                    TaskOutbox(task_name="push.fanout_channel", args=["busy"]),
                ]
            )

        counts = await run_expiry_sweep(session_factory, now=NOW)

        assert counts == {"subscriptions": 1, "messages": 1, "channels": 1, "task_outbox": 1}
        assert await _count(session_factory, Channel) == 1
        assert await _count(session_factory, Message) == 1
        assert await _count(session_factory, Subscription) == 1
        assert await _count(session_factory, TaskOutbox) == 1

    async def test_nothing_to_sweep(self, session_factory):
        counts = await run_expiry_sweep(session_factory, now=NOW)

        assert counts == {"subscriptions": 0, "messages": 0, "channels": 0, "task_outbox": 0}


@pytest.mark.unit
class TestScheduler:
    """Test suite for the APScheduler wiring."""

    def test_sweep_job_registered(self):
        enabled = SimpleNamespace(sweeps_enabled=True, sweep_interval_hours=2)
        try:
            with patch.object(scheduler_module, "get_task_settings", return_value=enabled):
                scheduler_module.setup_scheduled_jobs()

            [job] = scheduler_module.get_job_status()
            assert job["id"] == "expiry_sweep"
            assert "2:00:00" in job["trigger"]
        finally:
            scheduler_module.scheduler.remove_all_jobs()

    def test_sweeps_disabled(self):
        disabled = SimpleNamespace(sweeps_enabled=False, sweep_interval_hours=1)
        with patch.object(scheduler_module, "get_task_settings", return_value=disabled):
            scheduler_module.setup_scheduled_jobs()

        assert scheduler_module.get_job_status() == []

    async def test_sweep_runs_in_process_without_broker(self):
        with (
            patch.object(scheduler_module, "broker", None),
            patch(
                "fanout_service.tasks.cleanup.tasks.run_expiry_sweep", new=AsyncMock()
            ) as sweep,
        ):
            await scheduler_module._schedule_expiry_sweep()

        sweep.assert_awaited_once_with()


@pytest.mark.unit
class TestLogContextMiddleware:
    """Test suite for LogContextMiddleware."""

    async def test_binds_and_clears_task_context(self):
        clear_log_context()
        middleware = LogContextMiddleware()
        message = SimpleNamespace(task_id="t-1", task_name="push.deliver_batch", labels={})

        await middleware.pre_execute(message)
        assert get_log_context() == {"task_id": "t-1", "task_name": "push.deliver_batch"}

        await middleware.post_execute(message, SimpleNamespace(is_err=False, error=None))
        assert get_log_context() == {}

    async def test_failure_still_clears_context(self):
        middleware = LogContextMiddleware()
        message = SimpleNamespace(task_id="t-2", task_name="push.fanout_channel", labels={"_retries": 1})
        set_log_context(channel_id="news")

        await middleware.pre_execute(message)
        await middleware.post_execute(message, SimpleNamespace(is_err=True, error=RuntimeError("boom")))

        assert get_log_context() == {}
