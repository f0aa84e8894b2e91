"""Mapper functions to convert SQLAlchemy models into domain entities."""

from dealerbooks.domain import entities as domain
from dealerbooks.database.models import (
    Bill as ORMBill,
    ChartOfAccount as ORMChartOfAccount,
    JournalEntry as ORMJournalEntry,
)


def chart_account_to_domain(orm_account: ORMChartOfAccount) -> domain.ChartAccount:
    """Convert SQLAlchemy ChartOfAccount model to domain ChartAccount entity."""
    return domain.ChartAccount(
        id=orm_account.id,
        account_number=orm_account.account_number,
        account_name=orm_account.account_name,
        account_type=orm_account.account_type,
        detail_type=orm_account.detail_type,
        parent_id=orm_account.parent_id,
        opening_balance=orm_account.opening_balance,
        current_balance=orm_account.current_balance,
        is_active=orm_account.is_active,
        description=orm_account.description,
    )


def bill_to_domain(orm_bill: ORMBill) -> domain.Bill:
    """Convert SQLAlchemy Bill model to domain Bill entity."""
    return domain.Bill(
        id=orm_bill.id,
        bill_number=orm_bill.bill_number,
        vendor_id=orm_bill.vendor_id,
        vendor_name=orm_bill.vendor.vendor_name,
        bill_date=orm_bill.bill_date,
        due_date=orm_bill.due_date,
        status=orm_bill.status,
        total=orm_bill.total,
        amount_paid=orm_bill.amount_paid,
        balance=orm_bill.balance,
    )


def journal_entry_to_domain(orm_entry: ORMJournalEntry) -> domain.JournalEntry:
    """Convert SQLAlchemy JournalEntry model (with lines) to domain entity."""
    return domain.JournalEntry(
        id=orm_entry.id,
        entry_number=orm_entry.entry_number,
        entry_date=orm_entry.entry_date,
        status=orm_entry.status,
        description=orm_entry.description,
        approved_at=orm_entry.approved_at,
        lines=tuple(
            domain.JournalLine(
                account_id=line.account_id,
                debit=line.debit,
                credit=line.credit,
                description=line.description,
            )
            for line in orm_entry.lines
        ),
    )
