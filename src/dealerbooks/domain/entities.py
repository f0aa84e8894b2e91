"""Domain model entities for dealerbooks.

These are pure data classes handed to callers outside the persistence layer
(CLI listings, the journal service). Importers work on the ORM models inside
their transaction and never leak them.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class ChartAccount:
    """Chart of accounts domain entity with hierarchical structure."""

    id: int
    account_number: str
    account_name: str
    account_type: str
    detail_type: Optional[str]
    parent_id: Optional[int]
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool = True
    description: Optional[str] = None


@dataclass(frozen=True)
class Bill:
    """Vendor bill domain entity."""

    id: int
    bill_number: str
    vendor_id: int
    vendor_name: str
    bill_date: Optional[date]
    due_date: Optional[date]
    status: str
    total: Decimal
    amount_paid: Decimal
    balance: Decimal


@dataclass(frozen=True)
class JournalLine:
    """One side of a journal entry."""

    account_id: int
    debit: Decimal = Decimal("0.00")
    credit: Decimal = Decimal("0.00")
    description: Optional[str] = None


@dataclass(frozen=True)
class JournalEntry:
    """Journal entry domain entity."""

    id: int
    entry_number: str
    entry_date: date
    status: str
    description: Optional[str]
    approved_at: Optional[datetime]
    lines: tuple[JournalLine, ...] = field(default_factory=tuple)

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), Decimal("0.00"))

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), Decimal("0.00"))
