"""Unit tests for BMCalc configuration management.

Tests AppConfig loading from environment variables, validation, and defaults.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest

from bmcalc.config import AppConfig, IngestionConfig, get_config, reset_config


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
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.log_level == "INFO"
        assert config.ingestion.max_sheets_per_contractor == 20
        assert config.ingestion.max_file_size == 100 * 1024 * 1024
        assert config.matching.min_description_score == 6
        assert config.locale.currency == "BRL"

    def test_ingestion_overrides(self, monkeypatch):
        monkeypatch.setenv("MAX_FILE_SIZE_MB", "5")
        monkeypatch.setenv("MAX_SHEETS_PER_CONTRACTOR", "3")
        monkeypatch.setenv("PRICE_SHEET_DIR", "/tmp/sheets")
        monkeypatch.setenv("NUMERIC_MAX", "5000")

        config = AppConfig.from_env()

        assert config.ingestion.max_file_size == 5 * 1024 * 1024
        assert config.ingestion.max_sheets_per_contractor == 3
        assert config.ingestion.storage_dir == Path("/tmp/sheets")
        assert config.ingestion.numeric_max == Decimal("5000")

    def test_extraction_settings(self, monkeypatch):
        monkeypatch.setenv("AI_GATEWAY_API_KEY", "secret")
        monkeypatch.setenv("AI_TIMEOUT_SECONDS", "30")

        config = AppConfig.from_env()

        assert config.extraction.api_key == "secret"
        assert config.extraction.timeout_seconds == 30.0

    def test_db_echo_flag(self, monkeypatch):
        monkeypatch.setenv("DB_ECHO", "TRUE")

        assert AppConfig.from_env().db.echo is True


class TestGetConfig:
    def test_singleton_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./other.db")
        reset_config()

        assert get_config().db.url == "sqlite+aiosqlite:///./other.db"


def test_ingestion_defaults():
    config = IngestionConfig()

    assert config.header_scan_rows == 25
    assert config.numeric_min == Decimal("0")
    assert config.header_min_text_length == 5
