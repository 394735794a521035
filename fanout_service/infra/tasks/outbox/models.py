"""TaskOutbox SQLAlchemy model for transactional task enqueueing.

A pipeline step never talks to the broker directly. It writes one row per
follow-up task into this table in the same transaction as its own storage
changes, so either both are durable or neither is. The relay later kicks
each row onto the broker and marks it processed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from fanout_service.core.database.base import Base, CreatedAtMixin, UUIDv7PKMixin


class TaskOutbox(Base, UUIDv7PKMixin, CreatedAtMixin):
    """A task invocation waiting to be handed to the broker.

    Attributes:
        id: UUID v7 primary key (time-sortable for FIFO relaying)
        task_name: Registered task name (e.g., "push.deliver_batch")
        args: JSON list of positional task arguments
        delay_seconds: Delay requested by the producer, applied by the broker
        processed_at: When the row was kicked to the broker
        retry_count: Number of failed kick attempts
        error_message: Last kick error
        next_retry_at: Earliest time of the next kick attempt
    """

    __tablename__ = "task_outbox"

    task_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Registered task name",
    )
    args: Mapped[list[Any]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Positional task arguments",
    )
    delay_seconds: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        comment="Requested execution delay in seconds",
    )

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
        comment="When the task was kicked to the broker",
    )
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Number of failed kick attempts",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Last kick error",
    )
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Scheduled time for next kick attempt",
    )

    __table_args__ = (
        Index(
            "ix_task_outbox_pending",
            "processed_at",
            "next_retry_at",
            "created_at",
            postgresql_where=(processed_at.is_(None)),
        ),
    )

    @property
    def is_processed(self) -> bool:
        return self.processed_at is not None

    @property
    def can_retry(self) -> bool:
        """Check if the row is due for another kick attempt."""
        if self.is_processed:
            return False
        if self.next_retry_at is None:
            return True
        next_retry_at = self.next_retry_at
        if next_retry_at.tzinfo is None:
            next_retry_at = next_retry_at.replace(tzinfo=UTC)
        return datetime.now(UTC) >= next_retry_at

    def __repr__(self) -> str:
        status = "processed" if self.is_processed else f"pending (retries={self.retry_count})"
        return f"TaskOutbox(id={self.id}, task_name={self.task_name!r}, status={status})"


__all__ = ["TaskOutbox"]
