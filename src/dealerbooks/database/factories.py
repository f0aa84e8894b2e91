"""Database factory functions for creating database instances."""

import os
from pathlib import Path
from typing import Optional

from dealerbooks.database.sqlalchemy_db import SQLAlchemyDatabase


def default_database_path() -> str:
    """Return DEALERBOOKS_DB_PATH or ~/.dealerbooks/dealerbooks.db."""
    database_path = os.environ.get("DEALERBOOKS_DB_PATH")
    if database_path is None:
        home = Path.home()
        db_dir = home / ".dealerbooks"
        db_dir.mkdir(exist_ok=True)
        database_path = str(db_dir / "dealerbooks.db")
    return database_path


def create_sqlite_database(database_path: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a SQLite database instance.

    Args:
        database_path: Path to SQLite database file. If None, checks DEALERBOOKS_DB_PATH
            environment variable, then defaults to ~/.dealerbooks/dealerbooks.db

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if database_path is None:
        database_path = default_database_path()

    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url)


def create_database(database_url: Optional[str] = None) -> SQLAlchemyDatabase:
    """Create a database instance from a SQLAlchemy URL.

    Falls back to DEALERBOOKS_DATABASE_URL, then to the SQLite default.
    """
    if database_url is None:
        database_url = os.environ.get("DEALERBOOKS_DATABASE_URL")
    if database_url is None:
        return create_sqlite_database()
    return SQLAlchemyDatabase(database_url)
