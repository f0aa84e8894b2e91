"""Customer and vendor matching and upserts."""

import enum
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from dealerbooks.database.models import Customer, Vendor
from dealerbooks.domain.errors import ValidationError
from dealerbooks.utils.fields import short_hash, string_value

PLACEHOLDER_DOMAIN = "@import.local"

CUSTOMER_FIELDS = (
    "phone",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "billing_address",
    "billing_city",
    "billing_state",
    "billing_zip",
    "billing_country",
)

VENDOR_FIELDS = (
    "company_name",
    "contact_person",
    "phone",
    "address",
    "city",
    "state",
    "zip",
    "country",
    "payment_terms",
    "tax_id",
)


class MatchedOn(enum.Enum):
    NAME = "name"
    EMAIL = "email"


@dataclass(frozen=True)
class MatchResult:
    record: Optional[Any]
    matched_on: Optional[MatchedOn] = None

    @property
    def found(self) -> bool:
        return self.record is not None


# Tried in order; name always beats email.
PARTY_MATCHERS = (MatchedOn.NAME, MatchedOn.EMAIL)


def is_placeholder_email(email: Optional[str]) -> bool:
    return not email or email.lower().endswith(PLACEHOLDER_DOMAIN)


def generate_placeholder_email(session: Session, model, name: str, exclude_id: Optional[int] = None) -> str:
    """Build ``qb-<hash>@import.local``, suffixing a counter until unused."""
    base = f"qb-{short_hash(name.lower())}"
    email = base + PLACEHOLDER_DOMAIN
    suffix = 1
    while True:
        query = session.query(model.id).filter(model.email == email)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is None:
            return email
        email = f"{base}{suffix}{PLACEHOLDER_DOMAIN}"
        suffix += 1


def append_notes(existing: Optional[str], note: str, replace: bool = False) -> str:
    """Append a note block unless it is already present."""
    if replace or not existing:
        return note
    if note in existing:
        return existing
    return f"{existing}\n\n{note}"


def match_party(session: Session, model, name_column, name: str, email: Optional[str]) -> MatchResult:
    """Find an existing customer or vendor by name, then by email."""
    for matcher in PARTY_MATCHERS:
        if matcher is MatchedOn.NAME:
            record = (
                session.query(model)
                .filter(func.lower(name_column) == name.lower())
                .order_by(model.id)
                .first()
            )
        elif email:
            record = (
                session.query(model)
                .filter(func.lower(model.email) == email.lower())
                .order_by(model.id)
                .first()
            )
        else:
            record = None
        if record is not None:
            return MatchResult(record, matcher)
    return MatchResult(None)


def _assign_email(session: Session, model, record, name: str, email: Optional[str]) -> None:
    if email:
        record.email = email
    elif is_placeholder_email(record.email):
        record.email = generate_placeholder_email(session, model, name, exclude_id=record.id)


def upsert_customer(session: Session, payload: Mapping[str, Any]) -> tuple[Customer, bool]:
    """Create or update a customer from an import payload.

    Non-empty payload fields overwrite stored values; empty ones never erase
    them.

    Returns:
        Tuple of (customer, created)

    Raises:
        ValidationError: If the payload has no name
    """
    name = (payload.get("name") or "").strip()
    if not name:
        raise ValidationError("Customer name is required.")

    email = payload.get("email")
    customer = match_party(session, Customer, Customer.name, name, email).record
    created = customer is None
    if created:
        customer = Customer(name=name)

    _assign_email(session, Customer, customer, name, email)
    for field_name in CUSTOMER_FIELDS:
        value = payload.get(field_name)
        if value:
            setattr(customer, field_name, value)

    if created:
        session.add(customer)
    session.flush()
    return customer, created


def upsert_vendor(session: Session, payload: Mapping[str, Any]) -> tuple[Vendor, bool]:
    """Create or update a vendor; vendors touched by an import are reactivated."""
    name = (payload.get("vendor_name") or "").strip()
    if not name:
        raise ValidationError("Vendor name is required.")

    email = payload.get("email")
    vendor = match_party(session, Vendor, Vendor.vendor_name, name, email).record
    created = vendor is None
    if created:
        vendor = Vendor(vendor_name=name)

    _assign_email(session, Vendor, vendor, name, email)
    for field_name in VENDOR_FIELDS:
        value = payload.get(field_name)
        if value:
            setattr(vendor, field_name, value)

    notes = payload.get("notes")
    if notes:
        vendor.notes = append_notes(vendor.notes, notes, created)
    vendor.is_active = True

    if created:
        session.add(vendor)
    session.flush()
    return vendor, created


def _labelled(row: Mapping[str, Optional[str]], key: str, label: str) -> Optional[str]:
    value = string_value(row, key)
    return f"{label}: {value}" if value else None


def customer_notes(row: Mapping[str, Optional[str]]) -> str:
    segments = [
        "Imported from QuickBooks",
        _labelled(row, "company", "Company"),
        _labelled(row, "primary_contact", "Primary contact"),
        _labelled(row, "terms", "Terms"),
        _labelled(row, "customer_type", "Customer type"),
        _labelled(row, "rep", "Rep"),
        _labelled(row, "sales_tax_code", "Sales tax code"),
        _labelled(row, "tax_item", "Tax item"),
        _labelled(row, "resale_num", "Resale #"),
    ]
    return "\n".join(segment for segment in segments if segment)


def vendor_notes(row: Mapping[str, Optional[str]]) -> str:
    segments = [
        "Imported from QuickBooks",
        _labelled(row, "company", "Company"),
        _labelled(row, "primary_contact", "Primary contact"),
        _labelled(row, "terms", "Terms"),
        _labelled(row, "tax_id", "Tax ID"),
    ]
    return "\n".join(segment for segment in segments if segment)
