"""Chart of accounts read service."""

from typing import Any, Optional

from dealerbooks.database.base import Database
from dealerbooks.domain.entities import ChartAccount


class ChartOfAccountsService:
    """Service for browsing the chart of accounts."""

    def __init__(self, db: Database):
        self.db = db

    def list_accounts(self) -> list[ChartAccount]:
        """List all accounts ordered by account number."""
        return self.db.list_chart_accounts()

    def get_account(self, account_id: int) -> Optional[ChartAccount]:
        return self.db.get_chart_account(account_id)

    def get_account_by_number(self, account_number: str) -> Optional[ChartAccount]:
        return self.db.get_chart_account_by_number(account_number)

    def get_account_tree(self) -> list[dict[str, Any]]:
        """Return the hierarchy as nested dicts with 'children' lists."""
        return self.db.get_chart_account_tree()
