"""FIFO payment application against per-party open-document queues.

A payment is spread over the oldest open bill or invoice first, splitting
across as many documents as it takes. Amounts are exact two-place decimals,
so the loop runs until every cent is placed; the iteration cap only guards
against a ledger adapter that never settles a document.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Callable, Optional, Protocol

from sqlalchemy import or_
from sqlalchemy.orm import Session

from dealerbooks.database.models import BankAccount, Bill, BillPayment, Invoice, Payment
from dealerbooks.domain.context import QueueEntry
from dealerbooks.domain.documents import recalculate_bill, recalculate_invoice
from dealerbooks.utils.amount_parser import money
from dealerbooks.utils.fields import slugify

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 1000
ZERO = Decimal("0.00")


class PaymentLedger(Protocol):
    """Storage side of the FIFO engine for one kind of document."""

    def reference_exists(self, base_reference: str) -> bool: ...

    def outstanding(self, document_id: int) -> Decimal: ...

    def record(self, document_id: int, amount: Decimal, reference: str) -> Decimal:
        """Store a payment and return the document's new balance."""
        ...

    def synthesize(self, amount: Decimal) -> Optional[QueueEntry]: ...


@dataclass
class PaymentApplication:
    requested: Decimal
    remaining: Decimal
    payments: list[tuple[int, Decimal, str]] = field(default_factory=list)
    synthesized: int = 0
    already_recorded: bool = False

    @property
    def applied(self) -> bool:
        """True when at least part of the payment landed (or already had)."""
        if self.already_recorded:
            return True
        return self.requested > 0 and self.remaining < self.requested


def part_reference(base_reference: str, part: int) -> str:
    return base_reference if part == 1 else f"{base_reference}-PART{part}"


def apply_payment(
    queue: deque[QueueEntry],
    amount: Decimal,
    ledger: PaymentLedger,
    base_reference: str,
    max_iterations: int = MAX_ITERATIONS,
) -> PaymentApplication:
    """Apply ``amount`` to the documents in ``queue``, oldest first.

    The queue is mutated: settled documents are popped and a synthesized
    document (when the ledger supports one) is pushed when the queue runs
    dry. Every payment record carries ``base_reference``, with ``-PART<n>``
    appended for the second and later documents, so re-running the same
    payment is detected by ``ledger.reference_exists`` and skipped.
    """
    requested = money(amount)
    result = PaymentApplication(requested=requested, remaining=requested)

    if requested <= 0:
        return result
    if ledger.reference_exists(base_reference):
        result.already_recorded = True
        result.remaining = ZERO
        return result

    attempts = 0
    while result.remaining > 0 and attempts < max_iterations:
        attempts += 1

        if not queue:
            entry = ledger.synthesize(result.remaining)
            if entry is None or entry.remaining <= 0:
                break
            queue.append(entry)
            result.synthesized += 1

        entry = queue[0]
        entry.remaining = ledger.outstanding(entry.document_id)
        if entry.remaining <= 0:
            queue.popleft()
            continue

        to_apply = min(entry.remaining, result.remaining)
        reference = part_reference(base_reference, len(result.payments) + 1)
        entry.remaining = ledger.record(entry.document_id, to_apply, reference)
        result.payments.append((entry.document_id, to_apply, reference))
        result.remaining = money(result.remaining - to_apply)

        if entry.remaining <= 0:
            queue.popleft()

    if result.remaining > 0:
        logger.warning(
            "Payment %s left %s unapplied after %d iterations", base_reference, result.remaining, attempts
        )
    return result


def vendor_payment_reference(vendor_name: str, reference: Optional[str], paid_on: date, amount: Decimal) -> str:
    vendor_slug = slugify(vendor_name).upper() or "VENDOR"
    ref_slug = slugify(reference).upper() if reference else ""
    cents = int(money(amount) * 100)
    return f"QB-BPMT-{vendor_slug}-{ref_slug or 'NOREF'}-{paid_on:%Y%m%d}-{cents}"


def customer_payment_reference(
    customer_name: str, payment_number: Optional[str], paid_on: date, amount: Decimal
) -> str:
    customer_slug = slugify(customer_name).upper() or "CUSTOMER"
    number_slug = slugify(payment_number).upper() if payment_number else ""
    cents = int(money(amount) * 100)
    return f"QB-PMT-{customer_slug}-{number_slug or 'NOREF'}-{paid_on:%Y%m%d}-{cents}"


class BillPaymentLedger:
    """Records BillPayments for one vendor's FIFO run."""

    def __init__(
        self,
        session: Session,
        today: date,
        paid_on: date,
        transaction_type: str,
        reference: Optional[str] = None,
        memo: Optional[str] = None,
        bank_account: Optional[BankAccount] = None,
        synthesize_bill: Optional[Callable[[Decimal], Bill]] = None,
    ):
        self.session = session
        self.today = today
        self.paid_on = paid_on
        self.payment_method = "check" if "check" in transaction_type else "ach"
        self.reference = reference
        self.memo = memo
        self.bank_account = bank_account
        self.synthesize_bill = synthesize_bill
        self.created = 0

    def reference_exists(self, base_reference: str) -> bool:
        query = self.session.query(BillPayment.id).filter(
            or_(
                BillPayment.external_reference == base_reference,
                BillPayment.external_reference.like(f"{base_reference}-PART%"),
            )
        )
        return query.first() is not None

    def outstanding(self, document_id: int) -> Decimal:
        bill = self.session.get(Bill, document_id)
        if bill is None:
            return ZERO
        return money(bill.balance)

    def record(self, document_id: int, amount: Decimal, reference: str) -> Decimal:
        bill = self.session.get(Bill, document_id)
        self.session.add(
            BillPayment(
                bill_id=bill.id,
                bank_account_id=self.bank_account.id if self.bank_account is not None else None,
                payment_date=self.paid_on,
                amount=amount,
                payment_method=self.payment_method,
                check_number=self.reference,
                reference=self.reference,
                external_reference=reference,
                memo=self.memo,
                created_by="quickbooks-import",
            )
        )
        self.created += 1
        recalculate_bill(self.session, bill, self.today)
        return money(bill.balance)

    def synthesize(self, amount: Decimal) -> Optional[QueueEntry]:
        if self.synthesize_bill is None:
            return None
        bill = self.synthesize_bill(amount)
        return QueueEntry(document_id=bill.id, remaining=money(bill.balance))


class InvoicePaymentLedger:
    """Records completed offline Payments against a customer's invoices."""

    def __init__(
        self,
        session: Session,
        today: date,
        paid_on: date,
        customer_id: int,
        payment_number: Optional[str] = None,
        memo: Optional[str] = None,
    ):
        self.session = session
        self.today = today
        self.customer_id = customer_id
        self.paid_on = paid_on
        self.payment_number = payment_number
        self.memo = memo
        self.created = 0

    def reference_exists(self, base_reference: str) -> bool:
        query = (
            self.session.query(Payment.id)
            .join(Invoice, Payment.invoice_id == Invoice.id)
            .filter(Invoice.customer_id == self.customer_id)
            .filter(
                or_(
                    Payment.provider_transaction_id == base_reference,
                    Payment.provider_transaction_id.like(f"{base_reference}-PART%"),
                )
            )
        )
        return query.first() is not None

    def outstanding(self, document_id: int) -> Decimal:
        invoice = self.session.get(Invoice, document_id)
        if invoice is None:
            return ZERO
        return money(invoice.balance)

    def _notes(self) -> str:
        notes = ["Imported from QuickBooks payment data"]
        if self.payment_number:
            notes.append(f"QuickBooks payment #: {self.payment_number}")
        if self.memo:
            notes.append(f"Memo: {self.memo}")
        return "\n".join(notes)

    def record(self, document_id: int, amount: Decimal, reference: str) -> Decimal:
        invoice = self.session.get(Invoice, document_id)
        self.session.add(
            Payment(
                invoice_id=invoice.id,
                payment_provider="offline",
                provider_transaction_id=reference,
                amount=amount,
                status="completed",
                payment_method_type="other",
                notes=self._notes(),
                processed_at=datetime.combine(self.paid_on, time()),
            )
        )
        self.created += 1
        recalculate_invoice(self.session, invoice, self.today)
        return money(invoice.balance)

    def synthesize(self, amount: Decimal) -> Optional[QueueEntry]:
        return None


def open_bill_queue(session: Session, vendor_id: int) -> deque[QueueEntry]:
    bills = (
        session.query(Bill)
        .filter(Bill.vendor_id == vendor_id, Bill.balance > 0)
        .order_by(Bill.bill_date, Bill.id)
        .all()
    )
    return deque(QueueEntry(bill.id, money(bill.balance)) for bill in bills)


def open_invoice_queue(session: Session, customer_id: int) -> deque[QueueEntry]:
    invoices = (
        session.query(Invoice)
        .filter(Invoice.customer_id == customer_id, Invoice.balance > 0)
        .order_by(Invoice.issue_date, Invoice.id)
        .all()
    )
    return deque(QueueEntry(invoice.id, money(invoice.balance)) for invoice in invoices)
