"""Import QuickBooks report-style exports.

The general ledger, vendor transaction and customer payment reports are
grouped by account or party: a section header row is followed by its
transactions and closed by a "Total ..." row. Lines are tagged once by
``dealerbooks.utils.qb_csv`` and consumed here as a small state machine.
"""

import logging
import re
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from sqlalchemy import func, insert

from dealerbooks.database.models import (
    Bill,
    BillItem,
    ChartOfAccount,
    Customer,
    GeneralLedgerEntry,
    Invoice,
    JournalEntry,
    JournalEntryLine,
)
from dealerbooks.domain.chart_of_accounts import AccountHierarchy, normalize_account_label
from dealerbooks.domain.context import ImportContext, QueueEntry
from dealerbooks.domain.documents import format_bill_number, format_invoice_number, recalculate_bill
from dealerbooks.domain.errors import ValidationError, unbalanced_entry
from dealerbooks.domain.import_base import ImportFrame, ImportResult
from dealerbooks.domain.parties import append_notes, upsert_vendor
from dealerbooks.domain.payments import (
    BillPaymentLedger,
    InvoicePaymentLedger,
    apply_payment,
    customer_payment_reference,
    open_bill_queue,
    open_invoice_queue,
    vendor_payment_reference,
)
from dealerbooks.utils.amount_parser import TOLERANCE, money, parse_amount
from dealerbooks.utils.date_parser import parse_date
from dealerbooks.utils.fields import clean_ledger_value, short_hash, slugify, string_from, string_value
from dealerbooks.utils.qb_csv import (
    AccountHeader,
    PartyHeader,
    QuickBooksCsvReader,
    TotalRow,
    TransactionRow,
    iter_account_lines,
    iter_customer_lines,
    iter_vendor_lines,
)

logger = logging.getLogger(__name__)

GL_SOURCE = "quickbooks"
GL_BATCH_SIZE = 1000

# Positional columns of the general ledger export.
GL_TYPE, GL_DATE, GL_NUM, GL_NAME, GL_MEMO, GL_SPLIT, GL_DEBIT, GL_CREDIT, GL_BALANCE = range(1, 10)

VENDOR_PAYMENT_TYPES = frozenset({"check", "bill pmt -check", "credit card", "ccard", "bill pmt -ccard"})
VENDOR_UNSUPPORTED_TYPES = frozenset(
    {"deposit", "bill pmt -credit card", "purchase order", "item receipt", "general journal"}
)


@dataclass
class LedgerSection:
    label: str
    account: Optional[ChartOfAccount]


@dataclass
class JournalGroup:
    """Rows of one QuickBooks journal transaction."""

    row_num: int
    reference: str
    entry_date: date
    description: str
    memo: str
    lines: list[tuple[int, Decimal, Decimal]] = field(default_factory=list)


def journal_account_key(name: Optional[str]) -> str:
    """Ledger account names without a trailing "(...)", case-folded."""
    clean = (name or "").strip()
    clean = re.sub(r"\s*\([^)]*\)$", "", clean)
    return re.sub(r"\s+", " ", clean).lower()


def journal_reference(trans_num: Optional[str], txn_type: Optional[str], num: Optional[str], raw_date: Optional[str]) -> str:
    if trans_num and slugify(trans_num):
        return f"QB-{slugify(trans_num)}"
    parts = [slugify(part) for part in (txn_type, num, raw_date) if part]
    parts = [part for part in parts if part]
    if parts:
        return "QB-" + "-".join(parts)
    return "QB-" + short_hash(f"{txn_type}|{num}|{raw_date}", 12)


def _amount_cell(record, index: int) -> Decimal:
    return parse_amount(clean_ledger_value(record.cell(index)))


class LedgerImportService(ImportFrame):
    """General ledger snapshots, vendor and customer payment reports, journals."""

    # General ledger
    def import_general_ledger(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Replace the QuickBooks ledger snapshot with the contents of a file.

        Every previously imported QuickBooks entry is deleted first, so the
        stored snapshot always matches the latest file. "Total" rows set the
        closing balance of the account whose section they end.
        """
        return self._run(
            "General ledger import complete",
            ("created", "updated", "skipped"),
            self._process_general_ledger,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_general_ledger(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        hierarchy = AccountHierarchy(context)
        deleted = (
            session.query(GeneralLedgerEntry)
            .filter(GeneralLedgerEntry.source == GL_SOURCE)
            .delete(synchronize_session=False)
        )
        logger.info("Removed %d previously imported ledger entries", deleted)

        sections: list[LedgerSection] = []
        batch: list[dict[str, Any]] = []

        for line in iter_account_lines(reader):
            record = line.record

            if isinstance(line, AccountHeader):
                account = hierarchy.find_by_ledger_label(line.label)
                if account is None:
                    logger.debug("Ledger account %r not in chart of accounts", line.label)
                sections.append(LedgerSection(line.label, account))
                continue

            if isinstance(line, TotalRow):
                if not sections:
                    continue
                section = sections.pop()
                if section.account is None:
                    result.increment("skipped")
                    result.add_error(
                        record.number,
                        f"Skipped account total for '{section.label}': account not found.",
                    )
                    continue
                with self._row(context, result, record.number):
                    balance_cell = record.cell(GL_BALANCE)
                    if balance_cell is None:
                        balance_cell = record.raw[-1]
                    section.account.current_balance = parse_amount(clean_ledger_value(balance_cell))
                    session.flush()
                    result.increment("updated")
                continue

            txn_type = clean_ledger_value(record.cell(GL_TYPE))
            if not txn_type:
                continue
            account = sections[-1].account if sections else None
            if account is None:
                result.increment("skipped")
                continue

            with self._row(context, result, record.number):
                debit = _amount_cell(record, GL_DEBIT)
                credit = _amount_cell(record, GL_CREDIT)
                if debit == 0 and credit == 0:
                    continue
                balance_cell = clean_ledger_value(record.cell(GL_BALANCE))
                number = clean_ledger_value(record.cell(GL_NUM))
                batch.append(
                    {
                        "account_id": account.id,
                        "account_name": account.account_name,
                        "transaction_type": txn_type,
                        "transaction_date": parse_date(clean_ledger_value(record.cell(GL_DATE))),
                        "transaction_number": number,
                        "name": clean_ledger_value(record.cell(GL_NAME)),
                        "memo": clean_ledger_value(record.cell(GL_MEMO)),
                        "split": clean_ledger_value(record.cell(GL_SPLIT)),
                        "debit": debit,
                        "credit": credit,
                        "running_balance": parse_amount(balance_cell) if balance_cell else None,
                        "source": GL_SOURCE,
                        "external_reference": number,
                    }
                )

            if len(batch) >= GL_BATCH_SIZE:
                self._flush_ledger_batch(context, result, batch)

        self._flush_ledger_batch(context, result, batch)

    def _flush_ledger_batch(self, context: ImportContext, result: ImportResult, batch: list) -> None:
        if not batch:
            return
        context.session.execute(insert(GeneralLedgerEntry), batch)
        result.increment("created", len(batch))
        logger.debug("Inserted %d ledger entries", len(batch))
        batch.clear()

    # Vendor transactions
    def import_vendor_transactions(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a "Transaction List by Vendor" report.

        Bills join their vendor's open-bill queue; checks and credit card
        charges are applied to that queue oldest bill first. A payment with
        nothing left to pay creates an expense bill for the remainder.
        """
        return self._run(
            "Vendor transactions import complete",
            ("bills_created", "bills_updated", "expenses_created", "payments_created", "skipped"),
            self._process_vendor_transactions,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_vendor_transactions(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        vendor = None
        vendor_name = ""

        for line in iter_vendor_lines(reader):
            record = line.record

            if isinstance(line, PartyHeader):
                vendor = None
                vendor_name = line.name
                with self._row(context, result, record.number, skip_key=None):
                    vendor = self._resolve_vendor(context, line.name)
                    if vendor.id not in context.vendor_queues:
                        context.vendor_queues[vendor.id] = open_bill_queue(session, vendor.id)
                continue

            if isinstance(line, TotalRow):
                result.increment("skipped")
                continue

            if vendor is None:
                result.increment("skipped")
                result.add_error(record.number, "Vendor context missing for transaction.")
                continue

            row = record.values
            txn_type = (string_value(row, "type") or "").lower()
            if not txn_type:
                result.increment("skipped")
                continue

            with self._row(context, result, record.number):
                credit = parse_amount(string_value(row, "credit"))
                debit = parse_amount(string_value(row, "debit"))
                amount = credit if credit > 0 else debit if debit > 0 else Decimal("0.00")
                if amount <= 0:
                    result.increment("skipped")
                    continue
                if txn_type in VENDOR_UNSUPPORTED_TYPES:
                    raise ValidationError(f"Transaction type '{txn_type}' is not supported by the vendor import.")
                if txn_type != "bill" and txn_type not in VENDOR_PAYMENT_TYPES:
                    raise ValidationError(f"Unsupported transaction type '{txn_type}'.")

                txn_date = parse_date(string_value(row, "date"))
                reference = string_value(row, "num")
                memo = string_value(row, "memo")
                split = string_value(row, "split")
                if vendor.id not in context.vendor_queues:
                    context.vendor_queues[vendor.id] = open_bill_queue(session, vendor.id)
                queue = context.vendor_queues[vendor.id]

                if txn_type == "bill":
                    bill, created = self._upsert_vendor_bill(
                        context, vendor, vendor_name, amount, txn_date, reference, memo, split
                    )
                    if bill.balance > 0 and all(entry.document_id != bill.id for entry in queue):
                        queue.append(QueueEntry(bill.id, money(bill.balance)))
                    result.increment("bills_created" if created else "bills_updated")
                    continue

                hierarchy = AccountHierarchy(context)
                paid_on = txn_date or context.today

                def synthesize_bill(remaining: Decimal) -> Bill:
                    expense_ref = f"EXP-{reference}" if reference else None
                    bill, _ = self._upsert_vendor_bill(
                        context, vendor, vendor_name, remaining, txn_date, expense_ref, memo, split
                    )
                    result.increment("expenses_created")
                    return bill

                ledger = BillPaymentLedger(
                    session,
                    context.today,
                    paid_on,
                    txn_type,
                    reference=reference,
                    memo=memo,
                    bank_account=hierarchy.resolve_bank_account(string_value(row, "account")),
                    synthesize_bill=synthesize_bill,
                )
                application = apply_payment(
                    queue, amount, ledger, vendor_payment_reference(vendor_name, reference, paid_on, amount)
                )
                result.increment("payments_created", ledger.created)
                if not application.applied:
                    raise ValidationError(f"Unable to apply payment for {vendor_name}.")

    def _resolve_vendor(self, context: ImportContext, name: str):
        key = name.lower()
        vendor = context.vendor_cache.get(key)
        if vendor is None:
            vendor, _ = upsert_vendor(context.session, {"vendor_name": name, "company_name": name})
            context.vendor_cache[key] = vendor
        return vendor

    def _upsert_vendor_bill(
        self,
        context: ImportContext,
        vendor,
        vendor_name: str,
        amount: Decimal,
        txn_date: Optional[date],
        reference: Optional[str],
        memo: Optional[str],
        split: Optional[str],
    ) -> tuple[Bill, bool]:
        """Create or refresh the bill behind one vendor report line.

        The bill number is derived from vendor, reference, date, amount and
        a hash of split and memo, so the same line always maps to one bill.
        """
        session = context.session
        parts = [
            "BILL",
            vendor_name,
            reference or "",
            f"{txn_date:%Y%m%d}" if txn_date else "00000000",
            f"{money(amount):.2f}",
            short_hash((split or "") + (memo or "")),
        ]
        bill_number = format_bill_number("-".join(part for part in parts if part))

        bill = session.query(Bill).filter(Bill.bill_number == bill_number).first()
        created = bill is None
        if created:
            bill = Bill(bill_number=bill_number)
            session.add(bill)

        bill.vendor_id = vendor.id
        bill.bill_date = txn_date or context.today
        bill.due_date = bill.bill_date
        bill.ref_number = reference
        bill.subtotal = money(amount)
        bill.tax = Decimal("0.00")
        bill.tax_name = None
        bill.total = money(amount)
        bill.memo = append_notes(bill.memo, "Imported from QuickBooks vendor transactions.", created)
        if memo:
            bill.memo = append_notes(bill.memo, memo)
        session.flush()

        description_base = memo or (normalize_account_label(split) if split else "") or "Imported expense"
        description = f"QB Vendor Import: {description_base}"
        expense_account = AccountHierarchy(context).resolve_expense_account(split)
        item = (
            session.query(BillItem)
            .filter(BillItem.bill_id == bill.id, BillItem.description == description)
            .first()
        )
        if item is None:
            item = BillItem(bill_id=bill.id, description=description)
            session.add(item)
        item.account_id = expense_account.id if expense_account is not None else None
        item.quantity = Decimal("1")
        item.rate = money(amount)
        item.amount = money(amount)

        recalculate_bill(session, bill, context.today)
        return bill, created

    # Customer payments
    def import_payments(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a customer payment report and apply payments FIFO to invoices.

        Customers are matched by name only; payments for customers missing
        from the CRM are reported, never created.
        """
        return self._run(
            "Payments import complete",
            ("created", "skipped"),
            self._process_payments,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _find_customer(self, context: ImportContext, name: str) -> Optional[Customer]:
        key = name.lower()
        if key not in context.customer_cache:
            context.customer_cache[key] = (
                context.session.query(Customer)
                .filter(func.lower(Customer.name) == key)
                .order_by(Customer.id)
                .first()
            )
        return context.customer_cache[key]

    def _process_payments(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        customer_name: Optional[str] = None

        for line in iter_customer_lines(reader):
            record = line.record

            if isinstance(line, PartyHeader):
                customer_name = line.name
                continue
            if isinstance(line, TotalRow):
                continue

            row = record.values
            txn_type = (string_value(row, "type") or "").lower()
            if not txn_type:
                continue
            if customer_name is None:
                result.increment("skipped")
                result.add_error(record.number, f"Unable to determine customer context for {txn_type} entry.")
                continue

            with self._row(context, result, record.number):
                customer = self._find_customer(context, customer_name)

                if txn_type == "invoice":
                    number = string_value(row, "num")
                    if not number:
                        continue
                    invoice = (
                        session.query(Invoice)
                        .filter(Invoice.invoice_number == format_invoice_number(number))
                        .first()
                    )
                    if invoice is None:
                        raise ValidationError(f"Invoice {number} not found for customer {customer_name}.")
                    queue = context.invoice_queues.setdefault(invoice.customer_id, deque())
                    if all(entry.document_id != invoice.id for entry in queue):
                        queue.append(QueueEntry(invoice.id, money(invoice.balance)))
                    continue

                if txn_type != "payment":
                    continue
                if customer is None:
                    raise ValidationError(f"Customer {customer_name} was not found in the CRM. Payment skipped.")

                amount = abs(parse_amount(string_from(row, ("debit", "amount", "credit"))))
                if amount <= 0:
                    result.increment("skipped")
                    continue

                if customer.id not in context.invoice_queues:
                    context.invoice_queues[customer.id] = open_invoice_queue(session, customer.id)
                queue = context.invoice_queues[customer.id]

                paid_on = parse_date(string_value(row, "date")) or context.today
                payment_number = string_value(row, "num")
                ledger = InvoicePaymentLedger(
                    session,
                    context.today,
                    paid_on,
                    customer.id,
                    payment_number=payment_number,
                    memo=string_value(row, "memo"),
                )
                application = apply_payment(
                    queue,
                    amount,
                    ledger,
                    customer_payment_reference(customer_name, payment_number, paid_on, amount),
                )
                result.increment("created", ledger.created)
                if application.remaining > 0:
                    result.increment("skipped")
                    result.add_error(
                        record.number,
                        f"Could not apply ${application.remaining:,.2f} of payment for {customer_name}.",
                    )

    # Journal
    def import_journal(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a QuickBooks journal export as posted journal entries.

        Rows are grouped by "Trans #"; each group becomes one entry numbered
        ``QB-<trans>``. Entries already imported, empty or unbalanced are
        skipped.
        """
        return self._run(
            "Journal import complete",
            ("created", "skipped", "lines"),
            self._process_journal,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_journal(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        accounts = {
            journal_account_key(name): account_id
            for account_id, name in session.query(ChartOfAccount.id, ChartOfAccount.account_name)
            .order_by(ChartOfAccount.id.desc())
            .all()
        }
        group: Optional[JournalGroup] = None

        for record in reader:
            row = record.values
            trans_num = string_value(row, "trans_num")
            account_name = string_value(row, "account")
            raw_debit = string_value(row, "debit")
            raw_credit = string_value(row, "credit")

            if trans_num is not None:
                self._flush_journal_group(context, result, group)
                txn_type = string_value(row, "type")
                num = string_value(row, "num")
                name = string_value(row, "name")
                memo = string_value(row, "memo")
                raw_date = string_value(row, "date")
                group = JournalGroup(
                    row_num=record.number,
                    reference=journal_reference(trans_num, txn_type, num, raw_date),
                    entry_date=parse_date(raw_date) or context.today,
                    description=" ".join(part for part in (txn_type, num) if part),
                    memo=" ".join(part for part in (name, memo) if part),
                )

            if account_name is None and raw_debit is None and raw_credit is None:
                continue
            if group is None:
                continue

            with self._row(context, result, record.number, skip_key=None):
                debit = parse_amount(raw_debit)
                credit = parse_amount(raw_credit)
                if account_name is None and debit == 0 and credit == 0:
                    continue
                account_id = accounts.get(journal_account_key(account_name))
                if account_id is None:
                    raise ValidationError(f"Account '{account_name}' was not found in the chart of accounts.")
                group.lines.append((account_id, debit, credit))

        self._flush_journal_group(context, result, group)

    def _flush_journal_group(self, context: ImportContext, result: ImportResult, group: Optional[JournalGroup]) -> None:
        if group is None:
            return
        session = context.session

        exists = session.query(JournalEntry.id).filter(JournalEntry.entry_number == group.reference).first()
        if exists is not None:
            result.increment("skipped")
            return

        net_by_account: dict[int, Decimal] = defaultdict(Decimal)
        for account_id, debit, credit in group.lines:
            if debit > 0 or credit > 0:
                net_by_account[account_id] += debit - credit
        lines = [(account_id, money(net)) for account_id, net in net_by_account.items() if net != 0]

        if not lines:
            result.increment("skipped")
            return

        total_debits = sum((net for _, net in lines if net > 0), Decimal("0.00"))
        total_credits = sum((-net for _, net in lines if net < 0), Decimal("0.00"))
        if abs(total_debits - total_credits) > TOLERANCE:
            result.increment("skipped")
            result.add_error(group.row_num, f"{group.reference}: {unbalanced_entry(total_debits, total_credits)}")
            return

        with self._row(context, result, group.row_num):
            entry = JournalEntry(
                entry_number=group.reference,
                entry_date=group.entry_date,
                description=group.description or "QuickBooks Import",
                memo=group.memo or None,
                status="posted",
                created_by="quickbooks-import",
            )
            for account_id, net in lines:
                entry.lines.append(
                    JournalEntryLine(
                        account_id=account_id,
                        debit=net if net > 0 else Decimal("0.00"),
                        credit=-net if net < 0 else Decimal("0.00"),
                    )
                )
            session.add(entry)
            session.flush()
            result.increment("created")
            result.increment("lines", len(lines))
