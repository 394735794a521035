"""Repository for TaskOutbox rows.

Provides methods for:
- Staging a task invocation inside the caller's transaction
- Fetching pending rows for the relay
- Marking rows as relayed or failed
- Cleaning up old relayed rows
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from fanout_service.core.database.repository import BaseRepository
from fanout_service.infra.tasks.outbox.models import TaskOutbox

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


class TaskOutboxRepository(BaseRepository[TaskOutbox]):
    """Repository for task outbox operations."""

    def __init__(self) -> None:
        super().__init__(TaskOutbox)

    def stage(
        self,
        session: AsyncSession,
        task_name: str,
        args: Sequence[Any],
        *,
        delay: float = 0.0,
    ) -> TaskOutbox:
        """Add a pending row to ``session`` without flushing or committing.

        The row becomes durable when the caller commits its transaction.
        """
        row = TaskOutbox(task_name=task_name, args=list(args), delay_seconds=float(delay))
        session.add(row)
        self._lazy.debug(
            lambda: f"outbox.stage: {task_name} delay={delay} args={len(row.args)}"
        )
        return row

    async def fetch_pending(
        self,
        session: AsyncSession,
        *,
        batch_size: int = 100,
        max_retries: int = 10,
    ) -> Sequence[TaskOutbox]:
        """Fetch pending rows ready to be relayed.

        Returns rows that have not been relayed, are not waiting for a
        future retry, and have not exhausted their kick attempts. Rows come
        back oldest first and locked with ``FOR UPDATE SKIP LOCKED`` so
        concurrent relays never kick the same row.
        """
        now = datetime.now(UTC)

        stmt = (
            select(TaskOutbox)
            .where(
                TaskOutbox.processed_at.is_(None),
                TaskOutbox.retry_count < max_retries,
            )
            .where((TaskOutbox.next_retry_at.is_(None)) | (TaskOutbox.next_retry_at <= now))
            .order_by(TaskOutbox.created_at.asc(), TaskOutbox.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )

        result = await session.execute(stmt)
        return result.scalars().all()

    async def mark_processed(self, session: AsyncSession, row_id: uuid.UUID) -> None:
        stmt = (
            update(TaskOutbox)
            .where(TaskOutbox.id == row_id)
            .values(processed_at=datetime.now(UTC), error_message=None)
        )
        await session.execute(stmt)

    async def mark_failed(
        self,
        session: AsyncSession,
        row: TaskOutbox,
        error_message: str,
        *,
        retry_delay_seconds: int = 5,
    ) -> None:
        """Record a failed kick and schedule the next attempt.

        The wait doubles with every failure: base, 2x base, 4x base, ...
        """
        retry_count = row.retry_count + 1
        delay = timedelta(seconds=retry_delay_seconds * 2 ** (retry_count - 1))

        stmt = (
            update(TaskOutbox)
            .where(TaskOutbox.id == row.id)
            .values(
                retry_count=retry_count,
                error_message=error_message[:1000],
                next_retry_at=datetime.now(UTC) + delay,
            )
        )
        await session.execute(stmt)

    async def cleanup_processed(
        self,
        session: AsyncSession,
        *,
        older_than_days: int = 7,
    ) -> int:
        """Delete relayed rows older than ``older_than_days``.

        Returns:
            Number of rows deleted
        """
        cutoff = datetime.now(UTC) - timedelta(days=older_than_days)

        stmt = (
            delete(TaskOutbox)
            .where(
                TaskOutbox.processed_at.is_not(None),
                TaskOutbox.processed_at < cutoff,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def count_pending(self, session: AsyncSession) -> int:
        stmt = (
            select(func.count()).select_from(TaskOutbox).where(TaskOutbox.processed_at.is_(None))
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def count_failed(self, session: AsyncSession, *, max_retries: int = 10) -> int:
        """Count rows that exhausted their kick attempts and need inspection."""
        stmt = (
            select(func.count())
            .select_from(TaskOutbox)
            .where(
                TaskOutbox.processed_at.is_(None),
                TaskOutbox.retry_count >= max_retries,
            )
        )
        result = await session.execute(stmt)
        return result.scalar_one()


__all__ = ["TaskOutboxRepository"]
