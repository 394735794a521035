"""Unit tests for the retry decorator."""

from __future__ import annotations

import pytest

from fanout_service.utils.retry import RetryError, calculate_delay, retry


@pytest.mark.unit
class TestRetryDecorator:
    """Test suite for retry decorator."""

    async def test_retry_succeeds_first_attempt(self):
        call_count = 0

        @retry(max_attempts=3)
        async def connect():
            nonlocal call_count
            call_count += 1
            return "connected"

        assert await connect() == "connected"
        assert call_count == 1

    async def test_retry_succeeds_after_retries(self):
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, jitter=False)
        async def flaky_connect():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionError("database not ready")
            return "connected"

        assert await flaky_connect() == "connected"
        assert call_count == 3

    async def test_retry_fails_after_max_attempts(self):
        @retry(max_attempts=2, initial_delay=0.01)
        async def always_fails():
            raise ConnectionError("database down")

        with pytest.raises(RetryError) as exc_info:
            await always_fails()

        assert exc_info.value.attempts == 2
        assert isinstance(exc_info.value.last_exception, ConnectionError)
        assert "after 2 attempts" in str(exc_info.value)

    async def test_retry_only_retries_specified_exceptions(self):
        call_count = 0

        @retry(max_attempts=3, initial_delay=0.01, exceptions=(ConnectionError,))
        async def raises_type_error():
            nonlocal call_count
            call_count += 1
            raise TypeError("not retryable")

        with pytest.raises(TypeError):
            await raises_type_error()
        assert call_count == 1


@pytest.mark.unit
class TestCalculateDelay:
    """Test suite for calculate_delay."""

    def test_exponential_growth_and_cap(self):
        kwargs = {"initial_delay": 1.0, "max_delay": 5.0, "exponential_base": 2.0, "jitter": False}

        assert [calculate_delay(n, **kwargs) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_range(self):
        for _ in range(20):
            delay = calculate_delay(0, initial_delay=2.0, max_delay=10.0, exponential_base=2.0, jitter=True)
            assert 1.0 <= delay <= 3.0
