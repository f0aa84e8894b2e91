"""Import chart of accounts, customers, vendors and items."""

import logging
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Union

from dealerbooks.database.models import Part, Service
from dealerbooks.domain.chart_of_accounts import (
    AccountHierarchy,
    map_account_type,
    normalize_account_number,
)
from dealerbooks.domain.context import ImportContext
from dealerbooks.domain.errors import ValidationError
from dealerbooks.domain.import_base import ImportFrame, ImportResult
from dealerbooks.domain.parties import (
    append_notes,
    customer_notes,
    upsert_customer,
    upsert_vendor,
    vendor_notes,
)
from dealerbooks.utils.amount_parser import parse_amount
from dealerbooks.utils.fields import (
    build_address,
    extract_city_state_zip,
    parse_city_state_zip,
    short_hash,
    string_from,
    string_value,
)
from dealerbooks.utils.qb_csv import QuickBooksCsvReader

logger = logging.getLogger(__name__)

EMAIL_KEYS = ("main_email", "email", "e_mail", "email_address", "primary_email")
PHONE_KEYS = (
    "main_phone",
    "phone",
    "primary_phone",
    "phone_1",
    "work_phone",
    "mobile",
    "mobile_phone",
    "alt_phone",
    "fax",
)

BILLING_PREFIXES = (
    "bill_to_",
    "bill_addr",
    "bill_address_",
    "bill_address_line_",
    "billing_address_",
    "billing_address_line_",
)
SHIPPING_PREFIXES = (
    "ship_to_",
    "ship_addr",
    "ship_address_",
    "ship_address_line_",
    "shipping_address_",
    "shipping_address_line_",
)
BILLING_LINE_2 = (
    "bill_to_2",
    "bill_addr2",
    "bill_address_2",
    "bill_address_line_2",
    "billing_address_2",
    "billing_address_line_2",
)
SHIPPING_LINE_2 = (
    "ship_to_2",
    "ship_addr2",
    "ship_address_2",
    "ship_address_line_2",
    "shipping_address_2",
    "shipping_address_line_2",
)

IMPORT_AS_CHOICES = ("parts", "services", "both")
SKIPPED_ITEM_TYPES = ("subtotal", "group", "discount", "payment", "sales tax")
SERVICE_ITEM_TYPES = ("service", "charge", "labor")
PART_ITEM_TYPES = ("inventory", "part")


def _is_label_row(name: Optional[str], literal: Optional[str] = None) -> bool:
    if not name:
        return True
    if literal is not None and name.lower() == literal:
        return True
    return name.lower().startswith("total")


def _normalize_address(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    lines = [line.strip() for line in value.replace("\r", "\n").split("\n") if line.strip()]
    return "\n".join(lines) or None


def _fill_location(row, address, line_two_keys, prefix_keys):
    city, state, zip_code = parse_city_state_zip(string_from(row, line_two_keys))
    city = city or string_from(row, prefix_keys["city"])
    state = state or string_from(row, prefix_keys["state"])
    zip_code = zip_code or string_from(row, prefix_keys["zip"])
    if not (city and state and zip_code):
        addr_city, addr_state, addr_zip = extract_city_state_zip(address)
        city = city or addr_city
        state = state or addr_state
        zip_code = zip_code or addr_zip
    return city, state, zip_code


BILLING_LOCATION_KEYS = {
    "city": ("bill_to_city", "bill_city", "billing_city", "bill_address_city", "billing_address_city"),
    "state": ("bill_to_state", "bill_state", "billing_state", "bill_address_state", "billing_address_state"),
    "zip": (
        "bill_to_zip",
        "bill_zip",
        "billing_zip",
        "bill_postal_code",
        "billing_postal_code",
        "bill_address_postal_code",
        "billing_address_postal_code",
    ),
}
SHIPPING_LOCATION_KEYS = {
    "city": ("ship_to_city", "ship_city", "shipping_city", "ship_address_city", "shipping_address_city"),
    "state": ("ship_to_state", "ship_state", "shipping_state", "ship_address_state", "shipping_address_state"),
    "zip": (
        "ship_to_zip",
        "ship_zip",
        "shipping_zip",
        "ship_postal_code",
        "shipping_postal_code",
        "ship_address_postal_code",
        "shipping_address_postal_code",
    ),
}


def categorize_item_type(type_label: Optional[str]) -> str:
    """Classify a QuickBooks item type as ``part``, ``service`` or ``skip``."""
    item_type = (type_label or "").strip().lower()
    if not item_type:
        return "service"
    if any(marker in item_type for marker in SKIPPED_ITEM_TYPES):
        return "skip"
    if any(marker in item_type for marker in SERVICE_ITEM_TYPES):
        return "service"
    if any(marker in item_type for marker in PART_ITEM_TYPES):
        return "part"
    return "service"


def placeholder_sku(seed: str) -> str:
    return "QB-" + short_hash(seed).upper()


class MasterDataImportService(ImportFrame):
    """Imports the reference lists other QuickBooks exports point at."""

    def import_chart_of_accounts(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a QuickBooks "Account List" export.

        Colon paths build the account hierarchy; re-importing a file updates
        the same accounts instead of creating new ones.
        """
        return self._run(
            "Chart of Accounts import complete",
            ("created", "updated", "skipped"),
            self._process_chart_of_accounts,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_chart_of_accounts(self, context: ImportContext, result: ImportResult, reader) -> None:
        hierarchy = AccountHierarchy(context)
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                name = string_from(row, ("account", "full_name", "name"))
                if _is_label_row(name, "account"):
                    result.increment("skipped")
                    continue

                number = normalize_account_number(
                    string_from(row, ("account_number", "account_num", "accnt_num", "acct_num", "number"))
                )
                type_info = map_account_type(
                    string_value(row, "type"),
                    string_from(row, ("detail_type", "detail", "account_detail_type")),
                )
                balance = parse_amount(string_from(row, ("balance_total", "balance", "total_balance")))

                _, created = hierarchy.ensure_account(
                    name,
                    type_info,
                    description=string_value(row, "description"),
                    balance=balance,
                    account_number=number,
                )
                result.increment("created" if created else "updated")

    def import_customers(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a QuickBooks customer list."""
        return self._run(
            "Customers import complete",
            ("created", "updated", "skipped"),
            self._process_customers,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_customers(self, context: ImportContext, result: ImportResult, reader) -> None:
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                name = string_from(row, ("customer", "name", "display_name", "full_name"))
                if _is_label_row(name, "customer"):
                    result.increment("skipped")
                    continue

                billing = build_address(row, BILLING_PREFIXES) or _normalize_address(
                    string_from(row, ("billing_address", "bill_address", "bill_to", "bill_to_address", "cust_address"))
                )
                shipping = build_address(row, SHIPPING_PREFIXES) or _normalize_address(
                    string_from(row, ("shipping_address", "ship_address", "ship_to", "ship_to_address"))
                )
                billing_city, billing_state, billing_zip = _fill_location(
                    row, billing, BILLING_LINE_2, BILLING_LOCATION_KEYS
                )
                shipping_city, shipping_state, shipping_zip = _fill_location(
                    row, shipping, SHIPPING_LINE_2, SHIPPING_LOCATION_KEYS
                )

                customer, created = upsert_customer(
                    context.session,
                    {
                        "name": name,
                        "email": string_from(row, EMAIL_KEYS),
                        "phone": string_from(row, PHONE_KEYS),
                        "address": shipping or billing,
                        "city": shipping_city or billing_city,
                        "state": shipping_state or billing_state,
                        "zip": shipping_zip or billing_zip,
                        "billing_address": billing,
                        "billing_city": billing_city,
                        "billing_state": billing_state,
                        "billing_zip": billing_zip,
                    },
                )
                customer.notes = append_notes(customer.notes, customer_notes(row), created)
                result.increment("created" if created else "updated")

    def import_vendors(self, csv_file_path: Union[str, Path], dry_run: bool = False) -> dict[str, Any]:
        """Import a QuickBooks vendor list."""
        return self._run(
            "Vendors import complete",
            ("created", "updated", "skipped"),
            self._process_vendors,
            QuickBooksCsvReader(csv_file_path),
            dry_run=dry_run,
        )

    def _process_vendors(self, context: ImportContext, result: ImportResult, reader) -> None:
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                name = string_value(row, "vendor") or string_value(row, "company")
                if _is_label_row(name):
                    result.increment("skipped")
                    continue

                address = build_address(row, ("bill_to_", "bill_addr", "bill_address", "billing_address"))
                city, state, zip_code = parse_city_state_zip(
                    string_from(row, ("bill_to_2", "bill_addr2", "bill_address_2", "billing_address_2"))
                )

                _, created = upsert_vendor(
                    context.session,
                    {
                        "vendor_name": name,
                        "email": string_from(row, EMAIL_KEYS),
                        "company_name": string_value(row, "company"),
                        "contact_person": string_value(row, "primary_contact"),
                        "phone": string_from(row, PHONE_KEYS),
                        "address": address,
                        "city": city or string_from(row, ("bill_to_city", "bill_city", "billing_city")),
                        "state": state or string_from(row, ("bill_to_state", "bill_state", "billing_state")),
                        "zip": zip_code
                        or string_from(row, ("bill_to_zip", "bill_zip", "billing_zip", "bill_postal_code")),
                        "payment_terms": string_value(row, "terms"),
                        "tax_id": string_value(row, "tax_id"),
                        "notes": vendor_notes(row),
                    },
                )
                result.increment("created" if created else "updated")

    def import_items(
        self, csv_file_path: Union[str, Path], import_as: str = "both", dry_run: bool = False
    ) -> dict[str, Any]:
        """Import a QuickBooks item list as parts, services or both.

        Raises:
            ValidationError: If import_as is not parts, services or both
        """
        if import_as not in IMPORT_AS_CHOICES:
            raise ValidationError(f"import_as must be one of: {', '.join(IMPORT_AS_CHOICES)}")
        return self._run(
            "Items import complete",
            ("parts_imported", "services_imported", "skipped"),
            self._process_items,
            QuickBooksCsvReader(csv_file_path),
            import_as,
            dry_run=dry_run,
        )

    def _process_items(self, context: ImportContext, result: ImportResult, reader, import_as: str) -> None:
        session = context.session
        for record in reader:
            with self._row(context, result, record.number):
                row = record.values
                sku = string_value(row, "item")
                description = string_value(row, "description")
                if not sku and not description:
                    result.increment("skipped")
                    continue

                category = categorize_item_type(string_value(row, "type"))
                if category == "skip":
                    result.increment("skipped")
                    continue

                cost_raw = string_value(row, "cost")
                price_raw = string_value(row, "price")
                cost = parse_amount(cost_raw) if cost_raw else None
                price = parse_amount(price_raw) if price_raw else None
                sku = sku or placeholder_sku(description or "item")

                if category == "part":
                    if import_as not in ("parts", "both"):
                        result.increment("skipped")
                        continue
                    part = session.query(Part).filter(Part.sku == sku).first()
                    if part is None:
                        part = Part(sku=sku)
                        session.add(part)
                    part.name = description or sku
                    part.description = description or part.description
                    part.cost = cost if cost is not None else (part.cost or Decimal("0.00"))
                    if price is not None:
                        part.price = price
                    elif cost is not None:
                        part.price = cost
                    else:
                        part.price = part.price or Decimal("0.00")
                    part.stock_quantity = int(parse_amount(string_value(row, "quantity_on_hand")).to_integral_value())
                    part.min_stock_level = int(parse_amount(string_value(row, "reorder_pt_min")).to_integral_value())
                    part.vendor_part_numbers = string_value(row, "preferred_vendor") or part.vendor_part_numbers
                    part.active = True
                    session.flush()
                    result.increment("parts_imported")
                    continue

                if import_as not in ("services", "both"):
                    result.increment("skipped")
                    continue
                service_name = description or sku
                service = session.query(Service).filter(Service.name == service_name).first()
                if service is None:
                    service = Service(name=service_name)
                    session.add(service)
                service.description = description or service.description
                if price is not None:
                    service.hourly_rate = price
                elif cost is not None:
                    service.hourly_rate = cost
                else:
                    service.hourly_rate = service.hourly_rate or Decimal("0.00")
                service.active = True
                session.flush()
                result.increment("services_imported")
