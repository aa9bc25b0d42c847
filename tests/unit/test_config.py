"""Unit tests for offercalc configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

import pytest
import structlog

from offercalc.config import AppConfig, DBConfig, get_config, reset_config
from offercalc.core.logging import configure_logging


class TestAppConfig:
    """Test AppConfig creation and validation."""

    def test_from_env_requires_database_url(self, monkeypatch):
        """Test DATABASE_URL is required."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        with pytest.raises(KeyError) as exc_info:
            AppConfig.from_env()

        assert "DATABASE_URL" in str(exc_info.value)

    def test_from_env_with_minimal_config(self, monkeypatch):
        """Test loading with only required env vars."""
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_FORMAT", raising=False)
        monkeypatch.delenv("LOG_FILE", raising=False)
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.log_level == "INFO"
        assert config.log_format == "text"
        assert config.log_file == "logs/offercalc.log"

    def test_pricing_defaults(self):
        config = AppConfig.from_env()

        assert config.pricing.distance_increment_km == 150
        assert config.pricing.default_hours_per_day == 8.0

    def test_sync_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("SYNC_REMOVAL_SUMMARY_LIMIT", "3")
        monkeypatch.setenv("SYNC_TECHNICAL_OFFERS_ONLY", "false")

        config = AppConfig.from_env()

        assert config.sync.removal_summary_limit == 3
        assert config.sync.technical_offers_only is False
        assert config.sync.tooltip_section_limit == 8

    def test_db_pool_settings(self, monkeypatch):
        monkeypatch.setenv("DB_POOL_SIZE", "20")
        monkeypatch.setenv("DB_ECHO", "true")

        config = AppConfig.from_env()

        assert config.db.pool_size == 20
        assert config.db.echo is True


class TestGetConfig:
    def test_singleton_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        assert get_config().log_level == "DEBUG"

        reset_config()
        assert get_config().log_level == "WARNING"


class TestConfigureLogging:
    """Logging follows AppConfig, not raw env vars."""

    @pytest.fixture(autouse=True)
    def restore_structlog(self):
        yield
        structlog.reset_defaults()

    def _config(self, log_format: str) -> AppConfig:
        return AppConfig(
            db=DBConfig(url="sqlite+aiosqlite:///:memory:"),
            log_level="WARNING",
            log_format=log_format,
            log_file=None,
        )

    def test_json_format_uses_json_renderer(self, monkeypatch):
        monkeypatch.setenv("JSON_LOGS", "false")
        configure_logging(self._config("json"))

        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)

    def test_text_format_uses_console_renderer(self):
        configure_logging(self._config("text"))

        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.dev.ConsoleRenderer)

    def test_defaults_to_env_config(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "json")
        monkeypatch.setenv("LOG_FILE", "")
        reset_config()

        configure_logging()

        renderer = structlog.get_config()["processors"][-1]
        assert isinstance(renderer, structlog.processors.JSONRenderer)
