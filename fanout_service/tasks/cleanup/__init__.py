"""Expiry sweep tasks."""

from __future__ import annotations

from .tasks import run_expiry_sweep

__all__ = ["run_expiry_sweep"]
