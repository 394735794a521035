"""Unit tests for TaskRegistry and TaskHandle."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from fanout_service.tasks.registry import TaskHandle, TaskRegistry


@pytest.mark.unit
class TestTaskRegistry:
    """Test suite for TaskRegistry."""

    def test_register_and_lookup(self):
        registry = TaskRegistry()

        @registry.task("demo.echo")
        async def echo(handle, value):
            return value

        assert "demo.echo" in registry
        assert registry.names() == ["demo.echo"]
        assert list(registry) == ["demo.echo"]
        assert len(registry) == 1
        assert registry.handler("demo.echo") is echo

    def test_duplicate_name_rejected(self):
        registry = TaskRegistry()

        async def handler(handle):
            return None

        registry.register("demo.task", handler)
        with pytest.raises(ValueError, match="already registered"):
            registry.register("demo.task", handler)

    def test_unknown_name(self, task_queue):
        registry = TaskRegistry()

        with pytest.raises(KeyError):
            registry.handler("demo.missing")
        with pytest.raises(KeyError):
            registry.handle("demo.missing", task_queue)

    async def test_invoke_passes_handle_and_args(self, task_queue):
        registry = TaskRegistry()
        seen = {}

        @registry.task("demo.record")
        async def record(handle, *args):
            seen["handle"] = handle
            seen["args"] = args
            return "done"

        result = await registry.invoke("demo.record", task_queue, 1, "two", [3])

        assert result == "done"
        assert seen["args"] == (1, "two", [3])
        assert seen["handle"] == TaskHandle("demo.record", task_queue)

    async def test_handle_reenqueues_under_own_name(self, task_queue):
        registry = TaskRegistry()

        @registry.task("demo.chain")
        async def chain(handle, items):
            if len(items) > 1:
                await handle.enqueue(None, items[1:], delay=2.0)

        await registry.invoke("demo.chain", task_queue, ["a", "b", "c"])

        [task] = task_queue.tasks
        assert task.task_name == "demo.chain"
        assert task.args == (["b", "c"],)
        assert task.delay == 2.0

    async def test_bind_registers_every_task_by_name(self, task_queue):
        registry = TaskRegistry()

        @registry.task("demo.first")
        async def first(handle, value):
            return value * 2

        @registry.task("demo.second")
        async def second(handle):
            return None

        broker = MagicMock()
        broker.register_task.side_effect = lambda fn, **kwargs: fn

        bound = registry.bind(broker, task_queue, max_retries=3)

        assert sorted(bound) == ["demo.first", "demo.second"]
        names = [call.kwargs["task_name"] for call in broker.register_task.call_args_list]
        assert names == ["demo.first", "demo.second"]
        assert all(call.kwargs["max_retries"] == 3 for call in broker.register_task.call_args_list)
        assert all(call.kwargs["retry_on_error"] is True for call in broker.register_task.call_args_list)
        # The broker function supplies the handle itself
        assert await bound["demo.first"](21) == 42
