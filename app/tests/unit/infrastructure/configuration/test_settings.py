"""Unit tests for infrastructure.configuration.

Tests cover:
- BroadcastSettings defaults and validation
- Environment variable loading
- Settings aggregation and the get_settings provider
"""

import pytest
from pydantic import ValidationError

from infrastructure.configuration import BroadcastSettings, Settings
from infrastructure.configuration.integrations.notify import NotifySettings
from infrastructure.services.providers import get_settings


@pytest.mark.unit
class TestBroadcastSettings:
    """Test suite for BroadcastSettings configuration."""

    def test_defaults(self, monkeypatch):
        for var in (
            "CRON_SECRET",
            "BROADCAST_MAX_ATTEMPTS",
            "BROADCAST_MAX_WORKERS",
            "BROADCAST_STORE_BACKEND",
            "BROADCAST_SCHEDULER_ENABLED",
        ):
            monkeypatch.delenv(var, raising=False)

        settings = BroadcastSettings(_env_file=None)

        assert settings.cron_secret == ""
        assert settings.max_attempts == 3
        assert settings.max_workers == 10
        assert settings.store_backend == "dynamodb"
        assert settings.scheduler_enabled is False
        assert settings.daily_limit == 50

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CRON_SECRET", "s3cret")
        monkeypatch.setenv("BROADCAST_MAX_WORKERS", "20")
        monkeypatch.setenv("BROADCAST_STORE_BACKEND", "MEMORY")
        monkeypatch.setenv("BROADCAST_SCHEDULER_ENABLED", "true")

        settings = BroadcastSettings(_env_file=None)

        assert settings.cron_secret == "s3cret"
        assert settings.max_workers == 20
        assert settings.store_backend == "memory"
        assert settings.scheduler_enabled is True

    @pytest.mark.parametrize("workers", [5, 12, 20])
    def test_worker_pool_bounds_accepted(self, workers):
        assert BroadcastSettings(BROADCAST_MAX_WORKERS=workers).max_workers == workers

    @pytest.mark.parametrize("workers", [0, 4, 21, 100])
    def test_worker_pool_bounds_rejected(self, workers):
        with pytest.raises(ValidationError, match="between 5 and 20"):
            BroadcastSettings(BROADCAST_MAX_WORKERS=workers)

    def test_unknown_store_backend(self):
        with pytest.raises(ValidationError, match="Unsupported"):
            BroadcastSettings(BROADCAST_STORE_BACKEND="redis")

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            BroadcastSettings(BROADCAST_SEND_TIMEOUT_SECONDS=0)


@pytest.mark.unit
class TestNotifySettings:
    def test_has_credentials(self, notify_settings):
        assert notify_settings.has_credentials is True

    def test_missing_secret(self):
        settings = NotifySettings(
            NOTIFY_API_URL="https://api.notification.example.com",
            NOTIFY_SRE_USER_NAME="user",
            NOTIFY_SRE_CLIENT_SECRET=None,
        )
        assert settings.has_credentials is False


@pytest.mark.unit
class TestSettings:
    def test_sections_instantiated(self):
        settings = Settings()
        assert settings.broadcasts is not None
        assert settings.notify is not None
        assert settings.slack is not None
        assert settings.aws is not None
        assert settings.server is not None

    def test_override_section(self, broadcast_settings):
        settings = Settings(broadcasts=broadcast_settings)
        assert settings.broadcasts.cron_secret == "test-cron-secret"

    def test_is_production(self, monkeypatch):
        monkeypatch.setenv("PREFIX", "dev-")
        assert Settings().is_production is False
        monkeypatch.setenv("PREFIX", "")
        assert Settings().is_production is True

    def test_get_settings_is_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
