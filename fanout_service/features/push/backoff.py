"""Retry delay arithmetic for gateway batches."""

from __future__ import annotations

from datetime import UTC, datetime
from email.utils import parsedate_to_datetime


def next_delay(
    delay: float,
    *,
    multiplier: float = 1.5,
    min_delay: float = 1.0,
    max_delay: float = 3600.0,
) -> float:
    """Escalate ``delay`` for the next retry.

    The result is ``delay * multiplier`` clamped to ``[min_delay, max_delay]``,
    so the first escalation from 0 lands on ``min_delay``.

    Example:
        >>> next_delay(0)
        1.0
        >>> next_delay(2.0)
        3.0
        >>> next_delay(3000.0)
        3600.0
    """
    return max(min(delay * multiplier, max_delay), min_delay)


def parse_retry_after(value: str | None, *, now: datetime | None = None) -> float | None:
    """Parse a ``Retry-After`` header into seconds from ``now``.

    Accepts either a non-negative integer number of seconds or an HTTP-date.
    A date in the past yields 0. Anything else yields None so the caller
    keeps its computed escalation.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    if value.isascii() and value.isdigit():
        try:
            return float(int(value))
        except (ValueError, OverflowError):
            return None

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)

    now = now or datetime.now(UTC)
    return max((when - now).total_seconds(), 0.0)


__all__ = ["next_delay", "parse_retry_after"]
