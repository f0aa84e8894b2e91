"""Tests for the per-row savepoint boundary."""

from collections import deque
from decimal import Decimal

from dealerbooks.database.models import Bill, Vendor
from dealerbooks.domain.context import ImportContext, QueueEntry
from dealerbooks.domain.import_base import ImportFrame, ImportResult
from dealerbooks.domain.payments import open_bill_queue


def test_failed_row_rolls_back_and_clears_queues(temp_db, session):
    """Test a failing row discards its writes and forgets queued documents."""
    vendor = Vendor(vendor_name="Parts Warehouse")
    session.add(vendor)
    session.flush()
    frame = ImportFrame(temp_db)
    context = ImportContext(session=session)
    result = ImportResult(message="Test import complete", counts={"skipped": 0})
    context.vendor_queues[vendor.id] = deque([QueueEntry(1, Decimal("10.00"))])
    context.invoice_queues[7] = deque([QueueEntry(2, Decimal("5.00"))])

    with frame._row(context, result, 4):
        bill = Bill(vendor_id=vendor.id, bill_number="B-1", total=Decimal("25.00"), balance=Decimal("25.00"))
        session.add(bill)
        session.flush()
        context.vendor_queues[vendor.id].append(QueueEntry(bill.id, Decimal("25.00")))
        raise ValueError("boom")

    assert result.errors == ["Row 4: boom"]
    assert result.counts["skipped"] == 1
    assert context.vendor_queues == {}
    assert context.invoice_queues == {}
    assert session.query(Bill).count() == 0
    assert open_bill_queue(session, vendor.id) == deque()
    session.rollback()


def test_successful_row_keeps_queues(temp_db, session):
    """Test queues survive rows that commit."""
    frame = ImportFrame(temp_db)
    context = ImportContext(session=session)
    result = ImportResult(message="Test import complete", counts={"skipped": 0})
    context.vendor_queues[1] = deque([QueueEntry(1, Decimal("10.00"))])

    with frame._row(context, result, 2):
        context.vendor_queues[1].popleft()

    assert result.errors == []
    assert context.vendor_queues == {1: deque()}
    session.rollback()
