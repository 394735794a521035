"""Task queue abstraction used by every pipeline step.

Producers enqueue by task name with positional arguments and an optional
delay. ``OutboxTaskQueue`` stages the invocation as a task outbox row in the
caller's session, so the enqueue commits or rolls back together with the
caller's own changes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from fanout_service.infra.tasks.outbox.repository import TaskOutboxRepository

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy.ext.asyncio import AsyncSession


@runtime_checkable
class TaskQueue(Protocol):
    """Enqueue a named task inside the caller's storage transaction."""

    async def enqueue(
        self,
        session: AsyncSession,
        task_name: str,
        *args: Any,
        delay: float = 0.0,
    ) -> None: ...


class OutboxTaskQueue:
    """Durable ``TaskQueue`` backed by the task outbox table.

    Args:
        known_names: Optional callable returning the registered task names.
            When given, enqueueing an unknown name raises ``KeyError``
            before anything is written.
    """

    def __init__(self, known_names: Callable[[], Iterable[str]] | None = None) -> None:
        self._known_names = known_names
        self._repository = TaskOutboxRepository()

    async def enqueue(
        self,
        session: AsyncSession,
        task_name: str,
        *args: Any,
        delay: float = 0.0,
    ) -> None:
        if self._known_names is not None and task_name not in set(self._known_names()):
            msg = f"Unknown task: {task_name}"
            raise KeyError(msg)
        if delay < 0:
            msg = f"delay must be >= 0, got {delay}"
            raise ValueError(msg)
        self._repository.stage(session, task_name, args, delay=delay)


__all__ = ["OutboxTaskQueue", "TaskQueue"]
