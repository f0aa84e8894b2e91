"""Shared pytest fixtures for dealerbooks tests."""

import logging
import os
import tempfile
from datetime import date
from pathlib import Path
import pytest

from dealerbooks.database.factories import create_sqlite_database
from dealerbooks.domain.importer import QuickBooksImportService
from dealerbooks.domain.journal import JournalService

# Imports run "as of" this date so due-date statuses are stable.
TODAY = date(2024, 6, 30)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Keep tests away from a developer's real database and .env."""
    monkeypatch.setenv("DEALERBOOKS_DB_PATH", str(tmp_path / "default.db"))
    monkeypatch.delenv("DEALERBOOKS_DATABASE_URL", raising=False)
    monkeypatch.setenv("DEALERBOOKS_LOG_LEVEL", "WARNING")
    yield
    # CLI runs leave a handler bound to their captured stderr
    logging.getLogger().handlers.clear()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def session(temp_db):
    """The session the services write through, for inspecting results."""
    return temp_db._get_session()


@pytest.fixture
def import_service(temp_db):
    """QuickBooks import facade pinned to TODAY."""
    return QuickBooksImportService(temp_db, today=TODAY)


@pytest.fixture
def journal_service(temp_db):
    """Create a JournalService with a temporary database."""
    return JournalService(temp_db)


@pytest.fixture
def write_csv(tmp_path):
    """Write CSV text to a file and return its path."""

    def _write(text: str, name: str = "export.csv", encoding: str = "utf-8") -> str:
        path = tmp_path / name
        path.write_bytes(text.encode(encoding))
        return str(path)

    return _write


@pytest.fixture
def fixtures_dir():
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def chart_of_accounts(import_service, fixtures_dir):
    """Import the sample chart of accounts."""
    return import_service.import_file("chart-of-accounts", fixtures_dir / "chart_of_accounts.csv")


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def app(tmp_path):
    """Flask app on its own SQLite file."""
    from dealerbooks.web import create_app

    return create_app({"TESTING": True, "DATABASE_URL": f"sqlite:///{tmp_path / 'web.db'}"})


@pytest.fixture
def client(app):
    return app.test_client()
