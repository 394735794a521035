"""SQLAlchemy models for channels, their messages and subscriptions."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from fanout_service.core.database.base import Base, CreatedAtMixin, IntegerPKMixin, UUIDv7PKMixin


class Channel(Base):
    """A named channel; upserted on every accepted message."""

    __tablename__ = "channels"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    last_message_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        default=lambda: datetime.now(UTC),
        comment="Time of the latest accepted message",
    )

    def __repr__(self) -> str:
        return f"Channel(id={self.id!r})"


class Message(Base, UUIDv7PKMixin, CreatedAtMixin):
    """An immutable message posted to a channel."""

    __tablename__ = "messages"

    channel_id: Mapped[str] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    def __repr__(self) -> str:
        return f"Message(id={self.id}, channel_id={self.channel_id!r})"


class Subscription(Base, IntegerPKMixin):
    """A device subscribed to a channel until ``expires_at``.

    At most one row exists per (channel, device) pair. ``device_id`` is the
    opaque registration id the push gateway knows the device by.
    """

    __tablename__ = "subscriptions"

    channel_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    device_id: Mapped[str] = mapped_column(String(4096), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    __table_args__ = (UniqueConstraint("channel_id", "device_id"),)

    def __repr__(self) -> str:
        return f"Subscription(id={self.id}, channel_id={self.channel_id!r})"


__all__ = ["Channel", "Message", "Subscription"]
