"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app/db/broker/logging/tasks/push), read from
environment variables and an optional .env file, validated once and cached.

Import settings via the cached loaders:
    from fanout_service.core.settings import get_push_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables (production)
    3. .env file (development only)
"""

from __future__ import annotations

from .app import AppSettings
from .loader import (
    clear_all_caches,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_push_settings,
    get_rabbit_settings,
    get_task_settings,
)
from .logs import LoggingSettings
from .postgres import PostgresSettings
from .push import MAX_GATEWAY_BATCH_SIZE, PushSettings
from .rabbit import RabbitSettings
from .tasks import TaskSettings

__all__ = [
    "MAX_GATEWAY_BATCH_SIZE",
    "AppSettings",
    "LoggingSettings",
    "PostgresSettings",
    "PushSettings",
    "RabbitSettings",
    "TaskSettings",
    "clear_all_caches",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_push_settings",
    "get_rabbit_settings",
    "get_task_settings",
]
