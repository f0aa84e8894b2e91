"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session

# Import entities directly to avoid circular import through domain/__init__.py
from dealerbooks.domain.entities import Bill, ChartAccount, JournalEntry, JournalLine


class Database(ABC):
    """Abstract database interface for dealerbooks."""

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[Session]:
        """Open one unit of work.

        Yields the ORM session; commits when the block exits normally and
        rolls back (re-raising) when it raises. Importers run an entire file
        inside a single transaction.
        """
        pass

    # Chart of accounts operations
    @abstractmethod
    def get_chart_account(self, account_id: int) -> Optional[ChartAccount]:
        """Get chart account by ID."""
        pass

    @abstractmethod
    def get_chart_account_by_number(self, account_number: str) -> Optional[ChartAccount]:
        """Get chart account by account number."""
        pass

    @abstractmethod
    def list_chart_accounts(self) -> list[ChartAccount]:
        """List all chart accounts ordered by number."""
        pass

    @abstractmethod
    def get_chart_account_tree(self) -> list[dict[str, Any]]:
        """Get the full chart of accounts with hierarchy.

        Returns a list of dictionaries with account data and nested 'children' lists.
        """
        pass

    @abstractmethod
    def get_posted_activity(self, account_id: int) -> tuple[Decimal, Decimal]:
        """Sum debits and credits of posted journal lines for an account."""
        pass

    @abstractmethod
    def set_account_current_balance(self, account_id: int, balance: Decimal) -> None:
        """Store a recomputed current balance (mirrored to its bank account)."""
        pass

    # Bill operations
    @abstractmethod
    def list_bills(self, vendor_name: Optional[str] = None, open_only: bool = False) -> list[Bill]:
        """List bills ordered by bill date, optionally filtered."""
        pass

    # Journal entry operations
    @abstractmethod
    def create_journal_entry(
        self,
        entry_number: str,
        entry_date: date,
        lines: list[JournalLine],
        description: Optional[str] = None,
        memo: Optional[str] = None,
        status: str = "draft",
        created_by: Optional[str] = None,
    ) -> int:
        """Create a journal entry with its lines. Returns entry ID."""
        pass

    @abstractmethod
    def get_journal_entry(self, entry_id: int) -> Optional[JournalEntry]:
        """Get journal entry by ID."""
        pass

    @abstractmethod
    def get_journal_entry_by_number(self, entry_number: str) -> Optional[JournalEntry]:
        """Get journal entry by entry number."""
        pass

    @abstractmethod
    def count_journal_entries(self) -> int:
        """Count all journal entries."""
        pass

    @abstractmethod
    def update_journal_entry_status(
        self, entry_id: int, status: str, approved_at: Optional[datetime] = None
    ) -> None:
        """Change the status of a journal entry."""
        pass
