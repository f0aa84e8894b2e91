"""Chart of accounts hierarchy builder.

Resolves colon-delimited QuickBooks account paths ("Expenses:Vehicle:Fuel")
into parent-linked ChartOfAccount rows, creating missing ancestors on the way
down and classifying accounts from QuickBooks type labels.
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import func

from dealerbooks.database.models import BankAccount, ChartOfAccount
from dealerbooks.domain.context import ImportContext
from dealerbooks.domain.errors import ValidationError
from dealerbooks.utils.amount_parser import money
from dealerbooks.utils.fields import ascii_fold, clean_ledger_value, short_hash

logger = logging.getLogger(__name__)

ACCOUNT_NUMBER_LENGTH = 10


@dataclass(frozen=True)
class AccountTypeInfo:
    """Internal classification of a QuickBooks account type."""

    account_type: str
    detail_type: str
    is_bank: bool = False


DEFAULT_ACCOUNT_TYPE = AccountTypeInfo("asset", "other_asset")
EXPENSE_ACCOUNT_TYPE = AccountTypeInfo("expense", "expense")
BANK_ACCOUNT_TYPE = AccountTypeInfo("asset", "bank", is_bank=True)

# Detail types win over the broader type label.
DETAIL_TYPE_MAP = {
    "checking": BANK_ACCOUNT_TYPE,
    "savings": BANK_ACCOUNT_TYPE,
    "cash_on_hand": BANK_ACCOUNT_TYPE,
    "money_market": BANK_ACCOUNT_TYPE,
    "sales_tax_payable": AccountTypeInfo("liability", "sales_tax_payable"),
    "undeposited_funds": AccountTypeInfo("asset", "undeposited_funds", is_bank=True),
}

ACCOUNT_TYPE_MAP = {
    "bank": BANK_ACCOUNT_TYPE,
    "accounts_receivable": AccountTypeInfo("asset", "accounts_receivable"),
    "other_current_asset": AccountTypeInfo("asset", "other_current_asset"),
    "fixed_asset": AccountTypeInfo("asset", "fixed_asset"),
    "other_asset": AccountTypeInfo("asset", "other_asset"),
    "accounts_payable": AccountTypeInfo("liability", "accounts_payable"),
    "credit_card": AccountTypeInfo("liability", "credit_card"),
    "sales_tax_payable": AccountTypeInfo("liability", "sales_tax_payable"),
    "other_current_liability": AccountTypeInfo("liability", "other_current_liability"),
    "long_term_liability": AccountTypeInfo("liability", "long_term_liability"),
    "equity": AccountTypeInfo("equity", "equity"),
    "income": AccountTypeInfo("revenue", "income"),
    "sales_of_product_income": AccountTypeInfo("revenue", "income"),
    "service_fee_income": AccountTypeInfo("revenue", "income"),
    "other_income": AccountTypeInfo("other_income", "other_income"),
    "expense": EXPENSE_ACCOUNT_TYPE,
    "other_expense": AccountTypeInfo("other_expense", "other_expense"),
    "cost_of_goods_sold": AccountTypeInfo("cost_of_goods_sold", "cost_of_goods_sold"),
}

DEBIT_NORMAL_TYPES = frozenset({"asset", "expense", "cost_of_goods_sold", "other_expense"})


def _label_key(label: Optional[str]) -> str:
    if not label:
        return ""
    label = re.sub(r"\([^)]*\)", " ", label)
    return re.sub(r"[^a-z0-9]+", "_", label.lower()).strip("_")


def map_account_type(type_label: Optional[str], detail_label: Optional[str] = None) -> AccountTypeInfo:
    """Map QuickBooks type/detail labels to an AccountTypeInfo.

    Unknown labels fall back to asset/other_asset.
    """
    detail_key = _label_key(detail_label)
    if detail_key in DETAIL_TYPE_MAP:
        return DETAIL_TYPE_MAP[detail_key]
    return ACCOUNT_TYPE_MAP.get(_label_key(type_label), DEFAULT_ACCOUNT_TYPE)


def normal_balance(account_type: str, debits: Decimal, credits: Decimal) -> Decimal:
    """Net activity signed by the account's normal side."""
    if account_type in DEBIT_NORMAL_TYPES:
        return money(debits - credits)
    return money(credits - debits)


def normalize_account_number(value: Optional[str]) -> Optional[str]:
    """Uppercase an account number and drop its whitespace."""
    if value is None or not value.strip():
        return None
    return re.sub(r"\s+", "", value).upper()


def generate_account_number(full_name: str, existing_numbers: set[str]) -> str:
    """Derive a unique account number (max 10 chars) from an account path.

    The path is folded to uppercase alphanumerics and truncated; collisions
    are resolved by overwriting the tail with an increasing numeric suffix.
    The chosen number is added to ``existing_numbers``.
    """
    base = re.sub(r"[^A-Z0-9]", "", ascii_fold(full_name).upper())
    if not base:
        base = short_hash(full_name, ACCOUNT_NUMBER_LENGTH).upper()
    base = base[:ACCOUNT_NUMBER_LENGTH]

    candidate = base
    suffix = 1
    while candidate in existing_numbers:
        suffix_str = str(suffix)
        candidate = base[: ACCOUNT_NUMBER_LENGTH - len(suffix_str)] + suffix_str
        suffix += 1

    existing_numbers.add(candidate)
    return candidate


def normalize_account_label(label: Optional[str]) -> str:
    """Strip ledger decorations: a "Total " prefix and a trailing "(...)"."""
    label = clean_ledger_value(label) or ""
    if label.lower().startswith("total "):
        label = label[6:].strip()
    return re.sub(r"\s*\(([^()]*)\)\s*$", "", label).strip()


def split_account_path(full_name: str) -> list[str]:
    return [segment.strip() for segment in full_name.split(":") if segment.strip()]


class AccountHierarchy:
    """Create and resolve chart accounts within one import."""

    def __init__(self, context: ImportContext):
        self.context = context
        self.session = context.session

    def _find_child(self, parent_id: Optional[int], name: str) -> Optional[ChartOfAccount]:
        cache_key = f"{parent_id or 'root'}|{name.lower()}"
        account = self.context.account_cache.get(cache_key)
        if account is not None:
            return account

        query = self.session.query(ChartOfAccount).filter(
            func.lower(ChartOfAccount.account_name) == name.lower()
        )
        if parent_id is None:
            query = query.filter(ChartOfAccount.parent_id.is_(None))
        else:
            query = query.filter(ChartOfAccount.parent_id == parent_id)
        account = query.order_by(ChartOfAccount.id).first()

        if account is not None:
            self.context.account_cache[cache_key] = account
        return account

    def ensure_account(
        self,
        full_name: str,
        type_info: AccountTypeInfo,
        description: Optional[str] = None,
        balance: Decimal = Decimal("0.00"),
        account_number: Optional[str] = None,
    ) -> tuple[ChartOfAccount, bool]:
        """Resolve a colon path to its leaf account, creating what is missing.

        Only the leaf receives the balance, description and provided account
        number, and it is reclassified on every call. Missing intermediate
        segments are created with the leaf's type and a zero balance; existing
        ones are left as they are.

        Returns:
            Tuple of (leaf account, whether the leaf was created)

        Raises:
            ValidationError: If the path has no segments
        """
        segments = split_account_path(full_name)
        if not segments:
            raise ValidationError("Account name is empty.")

        numbers = self.context.account_numbers
        balance = money(balance)
        parent_id: Optional[int] = None
        path: list[str] = []
        leaf_created = False
        account: Optional[ChartOfAccount] = None

        for index, segment in enumerate(segments):
            is_leaf = index == len(segments) - 1
            path.append(segment)

            account = self._find_child(parent_id, segment)
            if account is None:
                assigned = None
                if is_leaf and account_number and account_number not in numbers:
                    assigned = account_number
                    numbers.add(assigned)
                if assigned is None:
                    assigned = generate_account_number(":".join(path), numbers)

                account = ChartOfAccount(
                    account_number=assigned,
                    account_name=segment,
                    account_type=type_info.account_type,
                    detail_type=type_info.detail_type,
                    parent_id=parent_id,
                    is_active=True,
                    is_sub_account=parent_id is not None,
                    description=description if is_leaf else None,
                    opening_balance=balance if is_leaf else Decimal("0.00"),
                    current_balance=balance if is_leaf else Decimal("0.00"),
                )
                self.session.add(account)
                self.session.flush()
                self.context.account_cache[f"{parent_id or 'root'}|{segment.lower()}"] = account
                logger.debug("Created account %s (%s)", ":".join(path), assigned)
                if is_leaf:
                    leaf_created = True

            if is_leaf:
                if (
                    account_number
                    and account.account_number != account_number
                    and account_number not in numbers
                ):
                    account.account_number = account_number
                    numbers.add(account_number)
                account.account_type = type_info.account_type
                account.detail_type = type_info.detail_type
                account.is_sub_account = parent_id is not None
                account.opening_balance = balance
                account.current_balance = balance
                if description is not None:
                    account.description = description
                if type_info.is_bank:
                    self.sync_bank_account(account, balance, description, account_number)

            parent_id = account.id

        self.session.flush()
        return account, leaf_created

    def find_by_path(self, full_name: str) -> Optional[ChartOfAccount]:
        """Walk an existing colon path without creating anything."""
        parent_id: Optional[int] = None
        account = None
        for segment in split_account_path(full_name):
            account = self._find_child(parent_id, segment)
            if account is None:
                return None
            parent_id = account.id
        return account

    def find_by_ledger_label(self, label: Optional[str]) -> Optional[ChartOfAccount]:
        """Match a ledger report label to an existing account by name.

        Tries the exact (case-insensitive) name, then the name with
        QuickBooks truncation dots removed, then the label as a colon path.
        """
        normalized = normalize_account_label(label)
        if not normalized:
            return None

        candidates = [normalized]
        fallback = normalized.replace("...", "").replace("  ", " ").strip()
        if fallback and fallback != normalized:
            candidates.append(fallback)

        for candidate in candidates:
            account = (
                self.session.query(ChartOfAccount)
                .filter(func.lower(ChartOfAccount.account_name) == candidate.lower())
                .order_by(ChartOfAccount.id)
                .first()
            )
            if account is not None:
                return account

        if ":" in normalized:
            return self.find_by_path(normalized)
        return None

    def resolve_expense_account(self, label: Optional[str]) -> Optional[ChartOfAccount]:
        """Find the account named by a split label, creating an expense account if absent."""
        if not label:
            return None

        cache_key = f"expense|{label.lower()}"
        if cache_key in self.context.lookup_cache:
            return self.context.lookup_cache[cache_key]

        account = self.find_by_ledger_label(label)
        if account is None:
            normalized = normalize_account_label(label)
            if normalized:
                account, _ = self.ensure_account(normalized, EXPENSE_ACCOUNT_TYPE)

        self.context.lookup_cache[cache_key] = account
        return account

    def resolve_bank_account(self, label: Optional[str]) -> Optional[BankAccount]:
        """Find or create the bank account a payment was drawn from."""
        if not label:
            return None

        cache_key = f"bank|{label.lower()}"
        if cache_key in self.context.lookup_cache:
            return self.context.lookup_cache[cache_key]

        account = self.find_by_ledger_label(label)
        if account is None:
            normalized = normalize_account_label(label)
            if normalized:
                account, _ = self.ensure_account(normalized, BANK_ACCOUNT_TYPE)

        bank_account = None
        if account is not None:
            bank_account = (
                self.session.query(BankAccount)
                .filter(BankAccount.chart_account_id == account.id)
                .first()
            )
            if bank_account is None:
                bank_account = BankAccount(
                    chart_account_id=account.id,
                    account_name=account.account_name,
                    is_active=True,
                    opening_balance=Decimal("0.00"),
                    current_balance=Decimal("0.00"),
                )
                self.session.add(bank_account)
                self.session.flush()

        self.context.lookup_cache[cache_key] = bank_account
        return bank_account

    def sync_bank_account(
        self,
        account: ChartOfAccount,
        balance: Decimal,
        description: Optional[str] = None,
        account_number: Optional[str] = None,
    ) -> BankAccount:
        """Mirror a bank-type chart account onto its BankAccount shadow."""
        bank_account = (
            self.session.query(BankAccount)
            .filter(BankAccount.chart_account_id == account.id)
            .first()
        )
        if bank_account is None:
            bank_account = BankAccount(
                chart_account_id=account.id, account_name=account.account_name, is_active=True
            )
            self.session.add(bank_account)

        if account_number:
            bank_account.account_number = account_number
        if description and not bank_account.notes:
            bank_account.notes = description
        bank_account.opening_balance = balance
        bank_account.current_balance = balance
        self.session.flush()
        return bank_account
