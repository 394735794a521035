"""Explicit registry mapping task names to handlers.

Handlers are plain async callables taking a ``TaskHandle`` followed by
their JSON-serialisable positional arguments. The handle lets a handler
re-enqueue itself (or enqueue siblings) through the same queue it was
started from, without knowing how the queue is implemented.

Example:
    registry = TaskRegistry()

    @registry.task("push.remove_device_ids")
    async def remove_device_ids(handle: TaskHandle, device_ids: list[str]) -> None:
        ...

    registry.bind(broker, OutboxTaskQueue(registry.names), max_retries=5)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from sqlalchemy.ext.asyncio import AsyncSession
    from taskiq import AsyncBroker

    from fanout_service.infra.tasks.queue import TaskQueue

    TaskHandler = Callable[..., Awaitable[Any]]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskHandle:
    """A handler's handle on its own task name."""

    name: str
    queue: TaskQueue

    async def enqueue(self, session: AsyncSession, *args: Any, delay: float = 0.0) -> None:
        """Stage another invocation of this task in ``session``."""
        await self.queue.enqueue(session, self.name, *args, delay=delay)


class TaskRegistry:
    """Name to handler mapping shared by producers, workers and tests."""

    def __init__(self) -> None:
        self._handlers: dict[str, TaskHandler] = {}

    def register(self, name: str, handler: TaskHandler) -> None:
        if name in self._handlers:
            msg = f"Task {name!r} is already registered"
            raise ValueError(msg)
        self._handlers[name] = handler
        logger.debug("Task handler registered", extra={"task_name": name})

    def task(self, name: str) -> Callable[[TaskHandler], TaskHandler]:
        """Decorator form of ``register``."""

        def decorator(handler: TaskHandler) -> TaskHandler:
            self.register(name, handler)
            return handler

        return decorator

    def handler(self, name: str) -> TaskHandler:
        try:
            return self._handlers[name]
        except KeyError:
            msg = f"Unknown task: {name}"
            raise KeyError(msg) from None

    def names(self) -> list[str]:
        return list(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def handle(self, name: str, queue: TaskQueue) -> TaskHandle:
        if name not in self._handlers:
            msg = f"Unknown task: {name}"
            raise KeyError(msg)
        return TaskHandle(name, queue)

    async def invoke(self, name: str, queue: TaskQueue, *args: Any) -> Any:
        """Run the handler for ``name`` in-process with a fresh handle."""
        handler = self.handler(name)
        return await handler(TaskHandle(name, queue), *args)

    def _broker_function(self, name: str, queue: TaskQueue) -> TaskHandler:
        handler = self.handler(name)

        async def run(*args: Any) -> Any:
            return await handler(TaskHandle(name, queue), *args)

        run.__name__ = name.rsplit(".", 1)[-1]
        run.__qualname__ = name
        run.__doc__ = handler.__doc__
        return run

    def bind(self, broker: AsyncBroker, queue: TaskQueue, *, max_retries: int) -> dict[str, Any]:
        """Register every handler as a taskiq task on ``broker``.

        Tasks keep their registry names so outbox rows can be kicked by
        name. A task that raises is redelivered up to ``max_retries`` times.

        Returns:
            Mapping of task name to the broker's decorated task
        """
        bound: dict[str, Any] = {}
        for name in self._handlers:
            bound[name] = broker.register_task(
                self._broker_function(name, queue),
                task_name=name,
                retry_on_error=True,
                max_retries=max_retries,
            )
        logger.info(
            "Task handlers bound to broker",
            extra={"tasks": sorted(bound), "max_retries": max_retries},
        )
        return bound


__all__ = ["TaskHandle", "TaskRegistry"]
