"""Unit tests for retry delay escalation and Retry-After parsing."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from fanout_service.features.push.backoff import next_delay, parse_retry_after


@pytest.mark.unit
class TestNextDelay:
    """Test suite for next_delay."""

    def test_first_escalation_lands_on_minimum(self):
        assert next_delay(0) == 1.0

    def test_escalates_by_multiplier(self):
        assert next_delay(2.0) == 3.0
        assert next_delay(10.0) == 15.0

    def test_clamped_to_maximum(self):
        assert next_delay(3000.0) == 3600.0
        assert next_delay(3600.0) == 3600.0

    def test_below_minimum_is_raised(self):
        assert next_delay(0.5) == 1.0

    def test_custom_curve(self):
        assert next_delay(4.0, multiplier=2.0, min_delay=5.0, max_delay=10.0) == 8.0
        assert next_delay(8.0, multiplier=2.0, min_delay=5.0, max_delay=10.0) == 10.0

    def test_sequence_is_monotonic_until_cap(self):
        delay = 0.0
        seen = []
        for _ in range(30):
            delay = next_delay(delay)
            seen.append(delay)

        assert seen == sorted(seen)
        assert seen[-1] == 3600.0


@pytest.mark.unit
class TestParseRetryAfter:
    """Test suite for parse_retry_after."""

    def test_missing_header(self):
        assert parse_retry_after(None) is None
        assert parse_retry_after("   ") is None

    def test_seconds(self):
        assert parse_retry_after("120") == 120.0
        assert parse_retry_after(" 0 ") == 0.0

    def test_http_date_in_future(self):
        now = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after("Sat, 17 Oct 2026 12:01:30 GMT", now=now) == 90.0

    def test_http_date_in_past_is_zero(self):
        now = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)
        assert parse_retry_after("Sat, 17 Oct 2026 11:00:00 GMT", now=now) == 0.0

    @pytest.mark.parametrize(
        "value",
        ["soon", "-5", "1.5", "Someday, 99 Foo", "\u00b2", "\u0663", "1" + "0" * 400, "9" * 5000],
    )
    def test_unusable_values(self, value):
        assert parse_retry_after(value) is None
