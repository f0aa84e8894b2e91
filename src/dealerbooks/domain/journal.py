"""Journal entry domain service."""

import logging
from datetime import date, datetime, UTC
from decimal import Decimal
from typing import Optional

from dealerbooks.database.base import Database
from dealerbooks.domain.chart_of_accounts import normal_balance
from dealerbooks.domain.entities import JournalEntry, JournalLine
from dealerbooks.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    journal_entry_not_found,
    unbalanced_entry,
)
from dealerbooks.utils.amount_parser import TOLERANCE, money

logger = logging.getLogger(__name__)


class JournalService:
    """Service for creating, posting and voiding journal entries."""

    def __init__(self, db: Database):
        """Initialize journal service.

        Args:
            db: Database instance
        """
        self.db = db

    def _next_entry_number(self) -> str:
        number = self.db.count_journal_entries() + 1
        while self.db.get_journal_entry_by_number(f"JE-{number:06d}") is not None:
            number += 1
        return f"JE-{number:06d}"

    def create_entry(
        self,
        entry_date: date,
        lines: list[JournalLine],
        description: Optional[str] = None,
        memo: Optional[str] = None,
        created_by: Optional[str] = None,
        entry_number: Optional[str] = None,
    ) -> int:
        """Create a draft journal entry.

        Args:
            entry_date: Date of the entry
            lines: At least two lines, each with exactly one positive side
            description: Optional description
            memo: Optional memo
            created_by: Optional author
            entry_number: Optional number (defaults to the next JE-NNNNNN)

        Returns:
            Journal entry ID

        Raises:
            ValidationError: If the lines are malformed
            NotFoundError: If a line references an unknown account
            ConflictError: If the entry number is taken
        """
        if len(lines) < 2:
            raise ValidationError("A journal entry needs at least two lines")

        normalized = []
        for index, line in enumerate(lines, start=1):
            debit = money(line.debit)
            credit = money(line.credit)
            if debit < 0 or credit < 0:
                raise ValidationError(f"Line {index}: amounts cannot be negative")
            if (debit > 0) == (credit > 0):
                raise ValidationError(f"Line {index}: exactly one of debit or credit must be non-zero")
            if self.db.get_chart_account(line.account_id) is None:
                raise NotFoundError(account_not_found(line.account_id))
            normalized.append(JournalLine(line.account_id, debit, credit, line.description))

        if entry_number is None:
            entry_number = self._next_entry_number()
        elif self.db.get_journal_entry_by_number(entry_number) is not None:
            raise ConflictError(f"Journal entry '{entry_number}' already exists")

        return self.db.create_journal_entry(
            entry_number=entry_number,
            entry_date=entry_date,
            lines=normalized,
            description=description,
            memo=memo,
            created_by=created_by,
        )

    def get_entry(self, entry_id: int) -> Optional[JournalEntry]:
        return self.db.get_journal_entry(entry_id)

    def _require(self, entry_id: int) -> JournalEntry:
        entry = self.db.get_journal_entry(entry_id)
        if entry is None:
            raise NotFoundError(journal_entry_not_found(entry_id))
        return entry

    def post_entry(self, entry_id: int) -> JournalEntry:
        """Post a draft entry and refresh the balances of its accounts.

        Raises:
            NotFoundError: If the entry does not exist
            ValidationError: If the entry is not a draft or is unbalanced
        """
        entry = self._require(entry_id)
        if entry.status != "draft":
            raise ValidationError(f"Only draft entries can be posted (entry is {entry.status})")
        if abs(entry.total_debits - entry.total_credits) > TOLERANCE:
            raise ValidationError(unbalanced_entry(entry.total_debits, entry.total_credits))

        self.db.update_journal_entry_status(entry_id, "posted", approved_at=datetime.now(UTC))
        self._refresh_balances(entry)
        logger.info("Posted journal entry %s", entry.entry_number)
        return self._require(entry_id)

    def void_entry(self, entry_id: int) -> JournalEntry:
        """Void an entry; posted entries stop counting toward balances."""
        entry = self._require(entry_id)
        if entry.status == "void":
            raise ValidationError("Journal entry is already void")

        self.db.update_journal_entry_status(entry_id, "void")
        if entry.status == "posted":
            self._refresh_balances(entry)
        logger.info("Voided journal entry %s", entry.entry_number)
        return self._require(entry_id)

    def _refresh_balances(self, entry: JournalEntry) -> None:
        for account_id in sorted({line.account_id for line in entry.lines}):
            self.recalculate_account_balance(account_id)

    def recalculate_account_balance(self, account_id: int) -> Decimal:
        """Opening balance plus posted activity on the account's normal side."""
        account = self.db.get_chart_account(account_id)
        if account is None:
            raise NotFoundError(account_not_found(account_id))
        debits, credits = self.db.get_posted_activity(account_id)
        balance = money(account.opening_balance) + normal_balance(account.account_type, debits, credits)
        self.db.set_account_current_balance(account_id, balance)
        return balance
