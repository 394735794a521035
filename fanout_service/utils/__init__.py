"""Utility modules for common operations."""

from fanout_service.utils.retry import RetryError, retry

__all__ = ["RetryError", "retry"]
