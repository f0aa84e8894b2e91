"""Database layer for dealerbooks application."""

from dealerbooks.database.base import Database
from dealerbooks.database.factories import create_database, create_sqlite_database

__all__ = ["Database", "create_database", "create_sqlite_database"]
