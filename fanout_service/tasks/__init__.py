"""Background task infrastructure using Taskiq.

This package provides:
- broker.py: Taskiq broker configuration (taskiq-aio-pika)
- registry.py: explicit task name to handler registry
- middleware.py: log context and duration logging for task runs
- scheduler.py: APScheduler job for the expiry sweep

Task modules:
- push/: fan-out, delivery and correction chain tasks
- cleanup/: expiry sweeps

Run the worker to execute tasks:
    taskiq worker fanout_service.tasks.broker:broker
"""

from __future__ import annotations

from fanout_service.tasks.registry import TaskHandle, TaskRegistry

__all__ = ["TaskHandle", "TaskRegistry"]
