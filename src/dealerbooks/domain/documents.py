"""Shared rules for imported bills, invoices and estimates."""

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dealerbooks.database.models import (
    Bill,
    BillItem,
    BillPayment,
    Invoice,
    InvoiceItem,
    Payment,
    Quote,
    QuoteItem,
)
from dealerbooks.utils.amount_parser import TOLERANCE, money
from dealerbooks.utils.fields import ascii_fold, short_hash

ZERO = Decimal("0.00")
OPENING_SUFFIX = "-OPENING"


@dataclass(frozen=True)
class TaxFields:
    amount: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    tax_rate: Optional[Decimal]


def reconcile_tax(
    amount: Decimal,
    subtotal: Decimal,
    tax_amount: Decimal,
    tax_rate: Optional[Decimal],
) -> TaxFields:
    """Back-fill whichever of subtotal, tax rate and amount is missing.

    The fallbacks run in a fixed order and each only fires when the earlier
    ones left its field unresolved.
    """
    if subtotal <= 0 and amount > 0 and tax_amount > 0:
        subtotal = max(ZERO, amount - tax_amount)
    if tax_rate is None and subtotal > 0 and tax_amount > 0:
        tax_rate = (tax_amount / subtotal * 100).quantize(Decimal("0.0001"))
    if subtotal <= 0:
        subtotal = max(ZERO, amount - tax_amount)
    if amount <= 0:
        amount = subtotal + tax_amount
    return TaxFields(money(amount), money(subtotal), money(tax_amount), tax_rate)


def format_document_number(prefix: str, number: str) -> str:
    """Prefix a QuickBooks document number, keeping only [A-Z0-9-]."""
    cleaned = re.sub(r"[^A-Z0-9-]", "", number.upper())
    if not cleaned:
        cleaned = short_hash(number, 10).upper()
    return prefix + cleaned


def format_invoice_number(number: str) -> str:
    return format_document_number("QB-INV-", number)


def format_quote_number(number: str) -> str:
    return format_document_number("QB-EST-", number)


def format_bill_number(number: str) -> str:
    return format_document_number("QB-BILL-", number)


def fallback_bill_number(vendor_name: str, bill_date: Optional[date]) -> str:
    """Stand-in QuickBooks number for bills exported without one."""
    base = re.sub(r"[^A-Z0-9]", "", ascii_fold(vendor_name).upper())[:8] or "QB"
    if bill_date is not None:
        return f"{base}-{bill_date:%Y%m%d}"
    return f"{base}-{short_hash(vendor_name, 6).upper()}"


def bill_status(due_date: Optional[date], balance: Decimal, amount_paid: Decimal, today: date) -> str:
    if balance <= TOLERANCE:
        return "paid"
    if amount_paid > TOLERANCE:
        return "partial"
    if due_date is not None and due_date < today:
        return "overdue"
    return "unpaid"


def invoice_status(due_date: Optional[date], balance: Decimal, paid_amount: Decimal, today: date) -> str:
    if balance <= TOLERANCE:
        return "paid"
    if due_date is not None and due_date < today:
        return "overdue"
    if paid_amount > TOLERANCE:
        return "partial"
    return "sent"


def quote_status(open_balance: Decimal, is_active: bool) -> str:
    if open_balance <= TOLERANCE:
        return "accepted"
    return "sent" if is_active else "expired"


def _sum(session: Session, column, *criteria) -> Decimal:
    total = session.query(func.coalesce(func.sum(column), 0)).filter(*criteria).scalar()
    return money(total)


def recalculate_bill(session: Session, bill: Bill, today: date) -> Bill:
    """Derive amount_paid, balance and status from the bill's payments."""
    session.flush()
    bill.amount_paid = _sum(session, BillPayment.amount, BillPayment.bill_id == bill.id)
    bill.balance = max(ZERO, money(bill.total) - bill.amount_paid)
    bill.status = bill_status(bill.due_date, bill.balance, bill.amount_paid, today)
    session.flush()
    return bill


def recalculate_invoice(session: Session, invoice: Invoice, today: date) -> Invoice:
    """Derive paid_amount, balance and status from completed payments."""
    session.flush()
    invoice.paid_amount = _sum(
        session,
        Payment.amount,
        Payment.invoice_id == invoice.id,
        Payment.status == "completed",
    )
    invoice.balance = max(ZERO, money(invoice.total) - invoice.paid_amount)
    invoice.status = invoice_status(invoice.due_date, invoice.balance, invoice.paid_amount, today)
    session.flush()
    return invoice


def sync_bill_opening_payment(session: Session, bill: Bill, open_balance: Decimal, today: date) -> None:
    """Record what QuickBooks says was paid before the import as one payment.

    The payment is keyed ``<bill_number>-OPENING`` and sized so the bill's
    derived balance lands on the exported open balance. Payments recorded by
    other imports count toward the paid amount.
    """
    reference = bill.bill_number + OPENING_SUFFIX
    opening = (
        session.query(BillPayment)
        .filter(BillPayment.bill_id == bill.id, BillPayment.external_reference == reference)
        .first()
    )
    others = _sum(
        session,
        BillPayment.amount,
        BillPayment.bill_id == bill.id,
        BillPayment.external_reference.is_distinct_from(reference),
    )
    amount = max(ZERO, money(bill.total) - money(open_balance) - others)

    if amount <= 0:
        if opening is not None:
            session.delete(opening)
    elif opening is None:
        session.add(
            BillPayment(
                bill_id=bill.id,
                payment_date=bill.bill_date or today,
                amount=amount,
                payment_method="other",
                reference="Opening balance",
                external_reference=reference,
                memo="Paid in QuickBooks before import",
                created_by="quickbooks-import",
            )
        )
    else:
        opening.amount = amount
    recalculate_bill(session, bill, today)


def sync_invoice_opening_payment(session: Session, invoice: Invoice, open_balance: Decimal, today: date) -> None:
    """Invoice counterpart of sync_bill_opening_payment."""
    reference = invoice.invoice_number + OPENING_SUFFIX
    opening = (
        session.query(Payment)
        .filter(Payment.invoice_id == invoice.id, Payment.provider_transaction_id == reference)
        .first()
    )
    others = _sum(
        session,
        Payment.amount,
        Payment.invoice_id == invoice.id,
        Payment.status == "completed",
        Payment.provider_transaction_id.is_distinct_from(reference),
    )
    amount = max(ZERO, money(invoice.total) - money(open_balance) - others)

    if amount <= 0:
        if opening is not None:
            session.delete(opening)
    elif opening is None:
        session.add(
            Payment(
                invoice_id=invoice.id,
                payment_provider="offline",
                provider_transaction_id=reference,
                amount=amount,
                status="completed",
                payment_method_type="other",
                notes="Paid in QuickBooks before import",
                processed_at=datetime.combine(invoice.issue_date or today, time()),
            )
        )
    else:
        opening.amount = amount
    recalculate_invoice(session, invoice, today)


def _sync_item(session: Session, model, parent_column, parent_id: int, description: str, **values):
    item = (
        session.query(model)
        .filter(parent_column == parent_id, model.description == description)
        .first()
    )
    if item is None:
        item = model(description=description)
        setattr(item, parent_column.key, parent_id)
        session.add(item)
    for key, value in values.items():
        setattr(item, key, value)
    return item


def sync_invoice_item(session: Session, invoice: Invoice, quickbooks_number: str) -> InvoiceItem:
    """Keep one summary line on an imported invoice."""
    line_total = invoice.subtotal or invoice.total
    return _sync_item(
        session,
        InvoiceItem,
        InvoiceItem.invoice_id,
        invoice.id,
        f"Imported from QuickBooks invoice #{quickbooks_number}",
        item_type="service",
        quantity=Decimal("1"),
        unit_price=line_total,
        discount=ZERO,
        total=line_total,
        sort_order=1,
    )


def sync_quote_item(session: Session, quote: Quote, quickbooks_number: str) -> QuoteItem:
    return _sync_item(
        session,
        QuoteItem,
        QuoteItem.quote_id,
        quote.id,
        f"Imported from QuickBooks estimate #{quickbooks_number}",
        item_type="service",
        quantity=Decimal("1"),
        unit_price=quote.subtotal or quote.total,
        discount=ZERO,
        total=quote.total,
        sort_order=1,
    )


def sync_bill_item(session: Session, bill: Bill, bill_number: str) -> BillItem:
    line_total = bill.subtotal or bill.total
    return _sync_item(
        session,
        BillItem,
        BillItem.bill_id,
        bill.id,
        f"Imported from QuickBooks bill #{bill_number}",
        account_id=None,
        quantity=Decimal("1"),
        rate=line_total,
        amount=line_total,
    )


def _tax_lines(tax_amount: Optional[Decimal], tax_rate: Optional[Decimal], tax_name: Optional[str]) -> list[str]:
    lines = []
    if tax_amount is not None:
        lines.append(f"Tax amount: {tax_amount:,.2f}")
    if tax_rate is not None:
        lines.append(f"Tax rate: {tax_rate:,.2f}%")
    if tax_name is not None:
        lines.append(f"Tax name: {tax_name}")
    return lines


def invoice_note(number, amount, open_balance, aging, tax_amount, tax_rate, tax_name) -> str:
    lines = [
        f"Imported from QuickBooks invoice #{number}",
        f"Original amount: {amount:,.2f}",
        f"Open balance: {open_balance:,.2f}",
    ]
    if aging is not None:
        lines.append(f"Aging: {aging}")
    return "\n".join(lines + _tax_lines(tax_amount, tax_rate, tax_name))


def quote_note(number, amount, open_balance, is_active, tax_amount, tax_rate, tax_name) -> str:
    lines = [
        f"Imported from QuickBooks estimate #{number}",
        f"Amount: {amount:,.2f}",
        f"Open balance: {open_balance:,.2f}",
        f"Active estimate: {'Yes' if is_active else 'No'}",
    ]
    return "\n".join(lines + _tax_lines(tax_amount, tax_rate, tax_name))


def bill_note(number, amount, open_balance, terms, tax_amount, tax_rate, tax_name) -> str:
    lines = [
        f"Imported from QuickBooks bill #{number}",
        f"Total amount: {amount:,.2f}",
        f"Balance: {open_balance:,.2f}",
    ]
    if terms:
        lines.append(f"Terms: {terms}")
    return "\n".join(lines + _tax_lines(tax_amount, tax_rate, tax_name))
