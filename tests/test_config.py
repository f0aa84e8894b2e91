"""Tests for settings and logging setup."""

import logging

from dealerbooks.config import LOG_FORMAT, configure_logging, load_settings
from dealerbooks.web import _redacted


def test_default_settings(tmp_path, monkeypatch):
    """Test the database URL falls back to the SQLite path."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DEALERBOOKS_MAX_UPLOAD_KB", raising=False)

    settings = load_settings()

    assert settings.database_url == f"sqlite:///{tmp_path / 'default.db'}"
    assert settings.max_upload_kb == 20480
    assert settings.log_level == "WARNING"


def test_settings_from_environment(tmp_path, monkeypatch):
    """Test DEALERBOOKS_* variables override the defaults."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEALERBOOKS_DATABASE_URL", "postgresql://crm@db/crm")
    monkeypatch.setenv("DEALERBOOKS_MAX_UPLOAD_KB", "512")
    monkeypatch.setenv("DEALERBOOKS_LOG_LEVEL", "debug")

    settings = load_settings()

    assert settings.database_url == "postgresql://crm@db/crm"
    assert settings.max_upload_kb == 512
    assert settings.log_level == "DEBUG"


def test_configure_logging_replaces_handlers():
    """Test repeated setup leaves a single formatted handler."""
    configure_logging("DEBUG")
    configure_logging("WARNING")

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.handlers[0].formatter._fmt == LOG_FORMAT
    assert root.level == logging.WARNING


def test_redacted_database_url():
    """Test credentials are hidden from the startup log line."""
    assert _redacted("postgresql://user:secret@db:5432/crm") == "postgresql://***@db:5432/crm"
    assert _redacted("sqlite:///crm.db") == "sqlite:///crm.db"
