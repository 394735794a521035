"""Unit tests for the logging infrastructure."""

from __future__ import annotations

import json
import logging

import pytest

from fanout_service.infra.logging import (
    ContextInjectingFilter,
    JSONFormatter,
    clear_log_context,
    get_lazy_logger,
    get_log_context,
    set_log_context,
)


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("fanout.test", logging.INFO, __file__, 1, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestJSONFormatter:
    """Test suite for JSONFormatter."""

    def test_basic_fields(self):
        data = json.loads(JSONFormatter(static={"service": "fanout-service"}).format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "fanout.test"
        assert data["message"] == "hello"
        assert data["service"] == "fanout-service"
        assert data["timestamp"].endswith("Z")

    def test_extra_fields_included(self):
        record = _record(channel_id="news", batch_size=3, operation="push.deliver_batch")

        data = json.loads(JSONFormatter().format(record))

        assert data["channel_id"] == "news"
        assert data["batch_size"] == 3
        assert data["operation"] == "push.deliver_batch"

    def test_exception_is_single_line(self):
        try:
            raise ValueError("boom")
        except ValueError:
            import sys

            record = logging.LogRecord(
                "fanout.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info()
            )

        output = JSONFormatter().format(record)

        assert "\n" not in output
        assert "ValueError: boom" in json.loads(output)["exception"]


@pytest.mark.unit
class TestLogContext:
    """Test suite for the contextvar-backed log context."""

    def test_set_and_clear(self):
        clear_log_context()
        set_log_context(channel_id="news")
        set_log_context(task_name="push.fanout_channel")

        assert get_log_context() == {"channel_id": "news", "task_name": "push.fanout_channel"}

        clear_log_context()
        assert get_log_context() == {}

    def test_filter_injects_without_overwriting(self):
        clear_log_context()
        set_log_context(channel_id="news", request_id="req-1")
        record = _record(channel_id="explicit")

        try:
            assert ContextInjectingFilter().filter(record) is True
        finally:
            clear_log_context()

        assert record.channel_id == "explicit"
        assert record.request_id == "req-1"


@pytest.mark.unit
class TestLazyLogger:
    """Test suite for the lazy logger adapter."""

    def test_callable_not_evaluated_when_disabled(self):
        logger = logging.getLogger("fanout.test.lazy.disabled")
        logger.setLevel(logging.WARNING)
        calls = []

        get_lazy_logger(logger.name).debug(lambda: calls.append("evaluated") or "msg")

        assert calls == []

    def test_callable_evaluated_when_enabled(self):
        logger = logging.getLogger("fanout.test.lazy.enabled")
        logger.setLevel(logging.DEBUG)
        seen = []

        class _Collect(logging.Handler):
            def emit(self, record):
                seen.append(record.getMessage())

        handler = _Collect()
        logger.addHandler(handler)
        try:
            get_lazy_logger(logger.name).debug(lambda: "computed message")
        finally:
            logger.removeHandler(handler)

        assert seen == ["computed message"]
