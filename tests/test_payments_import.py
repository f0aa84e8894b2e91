"""Tests for the customer payment report import."""

from datetime import datetime
from decimal import Decimal

import pytest

from dealerbooks.database.models import Customer, Invoice, Payment

PAYMENTS_CSV = (
    "Customer,Type,Date,Num,Memo,Amount\n"
    'Jane Doe,Invoice,01/15/2024,1001,,"1,082.50"\n'
    "Jane Doe,Payment,02/01/2024,PMT-7,Check 5521,200.00\n"
    "Total Jane Doe,,,,,\n"
    'Acme Fleet Services,Payment,06/15/2024,,,"2,500.00"\n'
    "Bob Smith,Payment,06/20/2024,,,50.00\n"
)


@pytest.fixture
def invoices(import_service, fixtures_dir):
    """Import the sample invoices so payments have something to settle."""
    return import_service.import_file("invoices", fixtures_dir / "invoices.csv")


def _invoice(session, number):
    return session.query(Invoice).filter(Invoice.invoice_number == number).one()


def _imported_payments(session):
    return session.query(Payment).filter(Payment.provider_transaction_id.like("QB-PMT-%")).order_by(Payment.id).all()


def test_import_payments(import_service, invoices, write_csv):
    """Test counters and row errors for a mixed payment report."""
    result = import_service.import_file("payments", write_csv(PAYMENTS_CSV))

    assert result["message"] == "Payments import complete"
    assert result["created"] == 2
    assert result["skipped"] == 2
    assert result["errors"] == [
        "Row 5: Could not apply $500.00 of payment for Acme Fleet Services.",
        "Row 6: Customer Bob Smith was not found in the CRM. Payment skipped.",
    ]


def test_payment_reduces_invoice_balance(import_service, invoices, write_csv, session):
    """Test a payment is recorded against the open invoice and the balance re-derived."""
    import_service.import_file("payments", write_csv(PAYMENTS_CSV))

    invoice = _invoice(session, "QB-INV-1001")
    assert invoice.paid_amount == Decimal("782.50")
    assert invoice.balance == Decimal("300.00")
    assert invoice.status == "overdue"

    payment = _imported_payments(session)[0]
    assert payment.invoice_id == invoice.id
    assert payment.amount == Decimal("200.00")
    assert payment.provider_transaction_id == "QB-PMT-JANE-DOE-PMT-7-20240201-20000"
    assert payment.payment_provider == "offline"
    assert payment.status == "completed"
    assert payment.processed_at == datetime(2024, 2, 1)
    assert "QuickBooks payment #: PMT-7" in payment.notes
    assert "Memo: Check 5521" in payment.notes


def test_overpayment_settles_open_invoices(import_service, invoices, write_csv, session):
    """Test the applied part of an overpayment still lands."""
    import_service.import_file("payments", write_csv(PAYMENTS_CSV))

    invoice = _invoice(session, "QB-INV-1002")
    assert invoice.balance == Decimal("0.00")
    assert invoice.status == "paid"
    payment = _imported_payments(session)[1]
    assert payment.provider_transaction_id == "QB-PMT-ACME-FLEET-SERVICES-NOREF-20240615-250000"
    assert payment.amount == Decimal("2000.00")


def test_unknown_customer_is_not_created(import_service, invoices, write_csv, session):
    """Test payments never create customers."""
    import_service.import_file("payments", write_csv(PAYMENTS_CSV))

    assert session.query(Customer).filter(Customer.name == "Bob Smith").count() == 0


def test_reimport_is_idempotent(import_service, invoices, write_csv, session):
    """Test payments already imported are recognised by reference."""
    path = write_csv(PAYMENTS_CSV)
    import_service.import_file("payments", path)

    result = import_service.import_file("payments", path)

    assert result["created"] == 0
    assert result["errors"] == ["Row 6: Customer Bob Smith was not found in the CRM. Payment skipped."]
    assert len(_imported_payments(session)) == 2
    assert _invoice(session, "QB-INV-1001").balance == Decimal("300.00")


def test_payment_split_across_invoices(import_service, write_csv, session):
    """Test a payment larger than the oldest invoice flows into the next one."""
    import_service.import_file(
        "invoices",
        write_csv(
            "Customer,Date,Num,Due Date,Amount,Open Balance\n"
            "Jane Doe,01/01/2024,2001,12/31/2024,100.00,100.00\n"
            "Jane Doe,02/01/2024,2002,12/31/2024,100.00,100.00\n",
            name="invoices.csv",
        ),
    )

    result = import_service.import_file(
        "payments", write_csv("Customer,Type,Date,Num,Memo,Amount\nJane Doe,Payment,03/01/2024,55,,150.00\n")
    )

    assert result["created"] == 2
    first, second = _invoice(session, "QB-INV-2001"), _invoice(session, "QB-INV-2002")
    assert (first.balance, first.status) == (Decimal("0.00"), "paid")
    assert (second.balance, second.status) == (Decimal("50.00"), "partial")
    references = [p.provider_transaction_id for p in _imported_payments(session)]
    assert references == ["QB-PMT-JANE-DOE-55-20240301-15000", "QB-PMT-JANE-DOE-55-20240301-15000-PART2"]


def test_missing_invoice_is_reported(import_service, invoices, write_csv):
    """Test invoice rows that do not match an imported invoice are reported."""
    result = import_service.import_file(
        "payments", write_csv("Customer,Type,Date,Num,Memo,Amount\nJane Doe,Invoice,01/15/2024,9999,,10.00\n")
    )

    assert result["skipped"] == 1
    assert result["errors"] == ["Row 2: Invoice 9999 not found for customer Jane Doe."]


def test_payment_without_customer_context(import_service, invoices, write_csv):
    """Test transaction rows before any customer header are reported."""
    result = import_service.import_file(
        "payments", write_csv("Customer,Type,Date,Num,Memo,Amount\n,Payment,01/15/2024,1,,10.00\n")
    )

    assert result["skipped"] == 1
    assert result["errors"] == ["Row 2: Unable to determine customer context for payment entry."]


def test_same_check_number_for_two_customers(import_service, write_csv, session):
    """Test identical check details from different customers are both recorded."""
    import_service.import_file(
        "invoices",
        write_csv(
            "Customer,Date,Num,Due Date,Amount,Open Balance\n"
            "Alice Boats,01/01/2024,3001,12/31/2024,50.00,50.00\n"
            "Bob Yachts,01/01/2024,3002,12/31/2024,50.00,50.00\n",
            name="invoices.csv",
        ),
    )

    result = import_service.import_file(
        "payments",
        write_csv(
            "Customer,Type,Date,Num,Memo,Amount\n"
            "Alice Boats,Payment,02/01/2024,1001,,50.00\n"
            "Bob Yachts,Payment,02/01/2024,1001,,50.00\n"
        ),
    )

    assert result["created"] == 2
    assert result["errors"] == []
    assert _invoice(session, "QB-INV-3001").balance == Decimal("0.00")
    assert _invoice(session, "QB-INV-3002").balance == Decimal("0.00")
    references = [p.provider_transaction_id for p in _imported_payments(session)]
    assert references == ["QB-PMT-ALICE-BOATS-1001-20240201-5000", "QB-PMT-BOB-YACHTS-1001-20240201-5000"]
