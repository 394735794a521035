"""Taskiq middleware binding task identity into the log context.

Every log line emitted while a task runs carries ``task_id`` and
``task_name``; completion is logged with its duration.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from taskiq import TaskiqMiddleware

from fanout_service.infra.logging import clear_log_context, set_log_context

if TYPE_CHECKING:
    from taskiq import TaskiqMessage, TaskiqResult

logger = logging.getLogger(__name__)


class LogContextMiddleware(TaskiqMiddleware):
    """Adds task context to logs and records task duration and failures."""

    def __init__(self) -> None:
        super().__init__()
        self._start_times: dict[str, float] = {}

    async def shutdown(self) -> None:
        self._start_times.clear()

    async def pre_execute(self, message: TaskiqMessage) -> TaskiqMessage:
        self._start_times[message.task_id] = time.perf_counter()
        set_log_context(task_id=message.task_id, task_name=message.task_name)
        logger.debug(
            "Task started",
            extra={"task_id": message.task_id, "task_name": message.task_name},
        )
        return message

    async def post_execute(self, message: TaskiqMessage, result: TaskiqResult[Any]) -> None:
        start_time = self._start_times.pop(message.task_id, None)
        duration_ms = int((time.perf_counter() - start_time) * 1000) if start_time else 0

        try:
            if result.is_err:
                logger.warning(
                    "Task failed",
                    extra={
                        "task_id": message.task_id,
                        "task_name": message.task_name,
                        "duration_ms": duration_ms,
                        "error": repr(result.error),
                        "retry": message.labels.get("_retries", 0),
                    },
                )
            else:
                logger.info(
                    "Task completed",
                    extra={
                        "task_id": message.task_id,
                        "task_name": message.task_name,
                        "duration_ms": duration_ms,
                    },
                )
        finally:
            clear_log_context()


__all__ = ["LogContextMiddleware"]
