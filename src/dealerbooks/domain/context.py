"""Per-import state threaded through the importer call graph."""

from collections import deque
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from sqlalchemy.orm import Session

from dealerbooks.database.models import ChartOfAccount


@dataclass
class QueueEntry:
    """An open bill or invoice waiting for payment application."""

    document_id: int
    remaining: Any


@dataclass
class ImportContext:
    """Caches and queues owned by one import call.

    Every lookup cache lives here rather than on the service so that two
    imports never share state. Caches are dropped whenever a row's savepoint
    rolls back, since they may point at rows that no longer exist.
    """

    session: Session
    today: date = field(default_factory=date.today)
    account_cache: dict[str, ChartOfAccount] = field(default_factory=dict)
    lookup_cache: dict[str, Any] = field(default_factory=dict)
    vendor_cache: dict[str, Any] = field(default_factory=dict)
    customer_cache: dict[str, Any] = field(default_factory=dict)
    vendor_queues: dict[int, deque[QueueEntry]] = field(default_factory=dict)
    invoice_queues: dict[int, deque[QueueEntry]] = field(default_factory=dict)
    _account_numbers: Optional[set[str]] = None

    @property
    def account_numbers(self) -> set[str]:
        """Account numbers already taken, loaded on first use."""
        if self._account_numbers is None:
            rows = self.session.query(ChartOfAccount.account_number).all()
            self._account_numbers = {number for (number,) in rows if number}
        return self._account_numbers

    def reset_caches(self) -> None:
        """Forget cached rows after a savepoint rollback."""
        self.account_cache.clear()
        self.lookup_cache.clear()
        self.vendor_cache.clear()
        self.customer_cache.clear()
        # Rebuilt from storage on next use; popped or rolled-back entries are stale.
        self.vendor_queues.clear()
        self.invoice_queues.clear()
        self._account_numbers = None
