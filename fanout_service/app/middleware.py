"""HTTP middleware configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi.middleware.cors import CORSMiddleware

if TYPE_CHECKING:
    from fastapi import FastAPI

    from fanout_service.core.settings.app import AppSettings


def configure_middleware(app: FastAPI, app_settings: AppSettings) -> None:
    """Add CORS handling.

    Channels are read and written straight from browsers, so every origin,
    method and header is allowed unless configured otherwise.
    """
    allow_all_origins = app_settings.cors_origins == ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_credentials=not allow_all_origins,
        allow_methods=app_settings.cors_allow_methods,
        allow_headers=app_settings.cors_allow_headers,
        max_age=app_settings.cors_max_age,
    )
