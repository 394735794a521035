"""Push pipeline tasks."""

from __future__ import annotations

from .tasks import build_push_registry

__all__ = ["build_push_registry"]
