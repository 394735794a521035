"""Unit tests for the Pydantic settings modules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from fanout_service.core.settings import (
    AppSettings,
    PostgresSettings,
    PushSettings,
    RabbitSettings,
    TaskSettings,
    clear_all_caches,
    get_push_settings,
)
from fanout_service.core.settings._sanitizers import sanitize_inline_numeric, strip_inline_comment
from fanout_service.core.settings.postgres import SQLITE_FALLBACK_URL


@pytest.mark.unit
class TestPushSettings:
    """Test suite for PushSettings."""

    def test_defaults(self):
        settings = PushSettings()

        assert settings.batch_size == 1000
        assert settings.chain_step_size == 1
        assert settings.backoff_multiplier == 1.5
        assert settings.min_delay_seconds == 1.0
        assert settings.max_delay_seconds == 3600.0
        assert settings.unavailable_error == "Unavailable"
        assert settings.subscription_ttl_days == 35

    def test_frozen(self):
        settings = PushSettings()

        with pytest.raises(ValidationError):
            settings.batch_size = 10

    def test_batch_size_capped_at_gateway_limit(self):
        with pytest.raises(ValidationError):
            PushSettings(batch_size=1001)

    def test_delay_bounds_checked(self):
        with pytest.raises(ValidationError, match="min_delay_seconds"):
            PushSettings(min_delay_seconds=10.0, max_delay_seconds=5.0)

    def test_is_configured(self):
        assert PushSettings(api_key="").is_configured is False
        assert PushSettings(api_key="secret").is_configured is True

    def test_api_key_hidden(self):
        assert "secret" not in repr(PushSettings(api_key="secret"))

    def test_env_with_inline_comment(self, monkeypatch):
        monkeypatch.setenv("PUSH_BATCH_SIZE", "500  # half")

        assert PushSettings().batch_size == 500

    def test_cached_loader(self, monkeypatch):
        clear_all_caches()
        try:
            monkeypatch.setenv("PUSH_CHAIN_STEP_SIZE", "3")
            first = get_push_settings()
            assert first.chain_step_size == 3
            assert get_push_settings() is first
        finally:
            clear_all_caches()


@pytest.mark.unit
class TestTaskSettings:
    """Test suite for TaskSettings."""

    def test_defaults(self):
        settings = TaskSettings(sweeps_enabled=True, relay_enabled=True)

        assert settings.relay_batch_size == 100
        assert settings.relay_max_attempts == 10
        assert settings.sweep_interval_seconds == 3600

    def test_bounds(self):
        with pytest.raises(ValidationError):
            TaskSettings(sweep_interval_hours=0)


@pytest.mark.unit
class TestConnectionSettings:
    """Test suite for database, broker and app settings."""

    def test_database_falls_back_to_sqlite(self):
        settings = PostgresSettings(enabled=False)

        assert settings.is_configured is False
        assert settings.get_sqlalchemy_url() == SQLITE_FALLBACK_URL

    def test_database_url_from_components(self):
        settings = PostgresSettings(enabled=True, host="db", name="fanout", user="svc")

        assert settings.get_sqlalchemy_url().startswith("postgresql+psycopg://svc:")
        assert "@db:5432/fanout" in settings.get_sqlalchemy_url()

    def test_rabbit_url(self):
        settings = RabbitSettings(enabled=True, host="mq", username="guest", vhost="/")

        assert settings.url == "amqp://guest:guest@mq:5672/"
        assert settings.is_configured is True

    def test_rabbit_disabled(self):
        assert RabbitSettings(enabled=False).is_configured is False

    def test_app_defaults(self):
        settings = AppSettings()

        assert settings.api_prefix == "/api/v1"
        assert settings.cors_origins == ["*"]


@pytest.mark.unit
class TestSanitizers:
    """Test suite for env value sanitizers."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("3600  # 1 hour", "3600"),
            ("key#1", "key#1"),
            ("# only comment", ""),
            ("  42 ", "42"),
        ],
    )
    def test_strip_inline_comment(self, raw, expected):
        assert strip_inline_comment(raw) == expected

    def test_non_strings_untouched(self):
        assert sanitize_inline_numeric(5) == 5
        assert sanitize_inline_numeric("# nothing") == "# nothing"
