"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fanout_service.core.settings import get_app_settings
from fanout_service.features.channels.router import router as channels_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from fanout_service.core.settings.app import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional application settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    app.include_router(channels_router, prefix=api_prefix)

    logger.debug("Routers registered", extra={"api_prefix": api_prefix})
