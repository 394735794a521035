"""Helpers to clean up environment variable values before validation."""

from __future__ import annotations

from typing import Any


def strip_inline_comment(value: str) -> str:
    """Drop a trailing ``  # comment`` from an env value.

    Some env-file loaders keep inline comments, so ``PUSH_MAX_DELAY_SECONDS``
    can arrive as ``3600  # 1 hour``. A ``#`` only starts a comment when it
    is preceded by whitespace, so values like ``key#1`` survive intact.
    """

    idx = value.find("#")
    if idx == -1:
        return value.strip()
    if idx == 0:
        return ""
    if not value[idx - 1].isspace():
        return value.strip()
    return value[:idx].strip()


def sanitize_inline_numeric(value: Any) -> Any:
    """Normalize numeric env vars that may carry inline comments."""

    if isinstance(value, str):
        cleaned = strip_inline_comment(value)
        if cleaned:
            return cleaned
    return value
