"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (request_id, task_name, channel_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug output
- OpenTelemetry trace correlation

Basic usage:
    from fanout_service.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(channel_id="news")
    logger.info("Fan-out scheduled")  # Includes channel_id
"""

from fanout_service.infra.logging.config import configure_logging, setup_logging, shutdown
from fanout_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    set_log_context,
)
from fanout_service.infra.logging.formatters import JSONFormatter
from fanout_service.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
