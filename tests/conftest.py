"""Pytest configuration and shared fixtures.

Organization:
    - Application Fixtures: FastAPI app and HTTP client
    - Database Fixtures: SQLAlchemy engine, session and session factory
    - Task Fixtures: recording task queue and push settings
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_ENABLED", "false")
os.environ.setdefault("DB_DATABASE_URL", "")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("TASK_SWEEPS_ENABLED", "false")
os.environ.setdefault("TASK_RELAY_ENABLED", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
async def app(session_factory: async_sessionmaker[AsyncSession]):
    """FastAPI application whose request sessions come from the test database."""
    from fanout_service.app.main import create_app
    from fanout_service.core.dependencies.database import get_db_session

    application = create_app()

    async def _override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = _override_session
    return application


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client bound to the app via ASGI transport."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine on a fresh in-memory SQLite database with all tables created."""
    from fanout_service.core.database.base import Base
    from fanout_service.features.channels import models as _channel_models  # noqa: F401
    from fanout_service.infra.tasks.outbox import models as _outbox_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """A session for arranging and asserting database state."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


# ============================================================================
# Task Fixtures
# ============================================================================


@dataclass
class EnqueuedTask:
    task_name: str
    args: tuple[Any, ...]
    delay: float


@dataclass
class RecordingTaskQueue:
    """TaskQueue that remembers what was enqueued instead of writing outbox rows."""

    tasks: list[EnqueuedTask] = field(default_factory=list)

    async def enqueue(
        self,
        session: AsyncSession,
        task_name: str,
        *args: Any,
        delay: float = 0.0,
    ) -> None:
        self.tasks.append(EnqueuedTask(task_name, args, delay))

    def named(self, task_name: str) -> list[EnqueuedTask]:
        return [task for task in self.tasks if task.task_name == task_name]


@pytest.fixture
def task_queue() -> RecordingTaskQueue:
    return RecordingTaskQueue()


@pytest.fixture
def push_settings():
    """Push settings with a gateway key and the production defaults otherwise."""
    from fanout_service.core.settings.push import PushSettings

    return PushSettings(api_key="test-key", gateway_url="https://push.test/send")
