"""Import QuickBooks invoices, estimates and bills."""

from datetime import timedelta
from pathlib import Path
from typing import Any, Union

from dealerbooks.database.models import Bill, Invoice, Quote
from dealerbooks.domain.context import ImportContext
from dealerbooks.domain.documents import (
    bill_note,
    fallback_bill_number,
    format_bill_number,
    format_invoice_number,
    format_quote_number,
    invoice_note,
    quote_note,
    quote_status,
    reconcile_tax,
    sync_bill_item,
    sync_bill_opening_payment,
    sync_invoice_item,
    sync_invoice_opening_payment,
    sync_quote_item,
)
from dealerbooks.domain.errors import ValidationError
from dealerbooks.domain.import_base import ImportFrame, ImportResult
from dealerbooks.domain.parties import append_notes, upsert_customer, upsert_vendor, vendor_notes
from dealerbooks.utils.amount_parser import TOLERANCE, parse_amount, parse_percentage
from dealerbooks.utils.date_parser import parse_date
from dealerbooks.utils.fields import (
    build_address,
    parse_boolean,
    parse_city_state_zip,
    string_from,
    string_value,
)
from dealerbooks.utils.qb_csv import QuickBooksCsvReader

TAX_AMOUNT_KEYS = ("tax_amount", "sales_tax", "tax")
TAX_RATE_KEYS = ("tax_rate", "sales_tax_rate", "tax_percent")
TAX_NAME_KEYS = ("tax_item", "sales_tax_item", "tax_name", "tax_code", "sales_tax_code")

ESTIMATE_VALIDITY = timedelta(days=30)
DOCUMENT_COUNTERS = ("created", "updated", "skipped")


def _tax_columns(row):
    return (
        parse_amount(string_from(row, TAX_AMOUNT_KEYS)),
        parse_percentage(string_from(row, TAX_RATE_KEYS)),
        string_from(row, TAX_NAME_KEYS),
    )


class DocumentImportService(ImportFrame):
    """Upserts sales and purchase documents keyed by their QuickBooks number."""

    def import_invoices(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import an open invoices / invoice list export.

        Amounts already paid in QuickBooks become one opening payment per
        invoice so the balance stays derived from payments.
        """
        return self._run(
            "Invoices import complete",
            DOCUMENT_COUNTERS,
            self._process_invoices,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_invoices(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                customer_name = string_value(row, "customer")
                number = string_from(row, ("num", "invoice", "txn_id"))
                if not customer_name or not number or customer_name.lower().startswith("total"):
                    result.increment("skipped")
                    continue

                issue_date = parse_date(string_value(row, "date"))
                due_date = parse_date(string_value(row, "due_date")) or issue_date
                amount = parse_amount(string_from(row, ("amount", "total")))
                open_balance = parse_amount(string_from(row, ("open_balance", "balance")))
                aging = string_value(row, "aging")
                tax_amount, tax_rate, tax_name = _tax_columns(row)
                tax = reconcile_tax(amount, parse_amount(string_value(row, "subtotal")), tax_amount, tax_rate)

                if abs(tax.subtotal + tax.tax_amount - tax.amount) > TOLERANCE:
                    raise ValidationError(
                        f"Invoice {number} subtotal {tax.subtotal:.2f} plus tax {tax.tax_amount:.2f} "
                        f"does not match total {tax.amount:.2f}"
                    )

                customer, _ = upsert_customer(session, {"name": customer_name})
                invoice_number = format_invoice_number(number)
                invoice = session.query(Invoice).filter(Invoice.invoice_number == invoice_number).first()
                created = invoice is None
                if created:
                    invoice = Invoice(invoice_number=invoice_number)
                    session.add(invoice)

                invoice.customer_id = customer.id
                invoice.issue_date = issue_date
                invoice.due_date = due_date
                invoice.subtotal = tax.subtotal
                invoice.tax_rate = tax.tax_rate or 0
                invoice.tax_amount = tax.tax_amount
                invoice.tax_name = tax_name
                invoice.total = tax.amount
                note = invoice_note(number, tax.amount, open_balance, aging, tax_amount, tax.tax_rate, tax_name)
                invoice.notes = append_notes(invoice.notes, note, created)
                session.flush()

                sync_invoice_opening_payment(session, invoice, open_balance, context.today)
                sync_invoice_item(session, invoice, number)
                result.increment("created" if created else "updated")

    def import_estimates(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import QuickBooks estimates as quotes valid for 30 days."""
        return self._run(
            "Estimates import complete",
            DOCUMENT_COUNTERS,
            self._process_estimates,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_estimates(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                customer_name = string_value(row, "customer")
                number = string_value(row, "num")
                if not customer_name or not number or customer_name.lower().startswith("total"):
                    result.increment("skipped")
                    continue

                issue_date = parse_date(string_value(row, "date"))
                amount = parse_amount(string_value(row, "amount"))
                open_balance = parse_amount(string_value(row, "open_balance"))
                is_active = parse_boolean(string_value(row, "active_estimate"))
                tax_amount, tax_rate, tax_name = _tax_columns(row)
                tax = reconcile_tax(amount, parse_amount(string_value(row, "subtotal")), tax_amount, tax_rate)

                customer, _ = upsert_customer(session, {"name": customer_name})
                quote_number = format_quote_number(number)
                quote = session.query(Quote).filter(Quote.quote_number == quote_number).first()
                created = quote is None
                if created:
                    quote = Quote(quote_number=quote_number)
                    session.add(quote)

                quote.customer_id = customer.id
                quote.issue_date = issue_date
                quote.expiration_date = issue_date + ESTIMATE_VALIDITY if issue_date else None
                quote.subtotal = tax.subtotal
                quote.tax_rate = tax.tax_rate or 0
                quote.tax_amount = tax.tax_amount
                quote.tax_name = tax_name
                quote.total = tax.amount
                quote.status = quote_status(open_balance, is_active)
                note = quote_note(number, tax.amount, open_balance, is_active, tax_amount, tax.tax_rate, tax_name)
                quote.notes = append_notes(quote.notes, note, created)
                session.flush()

                sync_quote_item(session, quote, number)
                result.increment("created" if created else "updated")

    def import_bills(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a QuickBooks bill list, creating vendors as needed."""
        return self._run(
            "Bills import complete",
            DOCUMENT_COUNTERS,
            self._process_bills,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_bills(self, context: ImportContext, result: ImportResult, reader) -> None:
        session = context.session
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                vendor_name = string_from(row, ("vendor", "supplier", "payee", "name"))
                if not vendor_name or vendor_name.lower().startswith("total"):
                    result.increment("skipped")
                    continue

                bill_date = parse_date(string_from(row, ("bill_date", "date")))
                due_date = parse_date(string_value(row, "due_date")) or bill_date
                number = string_from(row, ("num", "bill", "bill_number", "ref_number", "txn_id"))
                if not number:
                    number = fallback_bill_number(vendor_name, bill_date)

                amount = parse_amount(string_from(row, ("amount", "total")))
                open_balance = parse_amount(string_from(row, ("open_balance", "balance")))
                tax_amount, tax_rate, tax_name = _tax_columns(row)
                tax = reconcile_tax(amount, parse_amount(string_value(row, "subtotal")), tax_amount, tax_rate)
                terms = string_value(row, "terms")
                memo = string_from(row, ("memo", "description", "note"))

                city, state, zip_code = parse_city_state_zip(
                    string_from(row, ("bill_to_2", "bill_addr2", "vendor_address_2"))
                )
                vendor, _ = upsert_vendor(
                    session,
                    {
                        "vendor_name": vendor_name,
                        "company_name": string_value(row, "company"),
                        "contact_person": string_from(row, ("primary_contact", "contact")),
                        "email": string_from(row, ("main_email", "email")),
                        "phone": string_from(row, ("main_phone", "phone", "fax")),
                        "address": build_address(row, ("bill_to_", "bill_addr", "address", "vendor_address")),
                        "city": city or string_from(row, ("bill_to_city", "city")),
                        "state": state or string_from(row, ("bill_to_state", "state")),
                        "zip": zip_code or string_from(row, ("bill_to_zip", "zip", "postal_code")),
                        "payment_terms": terms,
                        "notes": vendor_notes(row),
                    },
                )

                bill_number = format_bill_number(number)
                bill = session.query(Bill).filter(Bill.bill_number == bill_number).first()
                created = bill is None
                if created:
                    bill = Bill(bill_number=bill_number)
                    session.add(bill)

                bill.vendor_id = vendor.id
                bill.ref_number = number
                bill.bill_date = bill_date
                bill.due_date = due_date
                bill.subtotal = tax.subtotal if tax.subtotal > 0 else tax.amount
                bill.tax = tax.tax_amount
                bill.tax_name = tax_name
                bill.total = tax.amount
                bill.terms = terms or bill.terms
                note = bill_note(bill_number, tax.amount, open_balance, terms, tax_amount, tax.tax_rate, tax_name)
                bill.memo = append_notes(bill.memo, note, created)
                if memo:
                    bill.memo = append_notes(bill.memo, memo)
                session.flush()

                sync_bill_opening_payment(session, bill, open_balance, context.today)
                sync_bill_item(session, bill, bill_number)
                result.increment("created" if created else "updated")
