"""Date parsing utilities."""

import re
from datetime import date, datetime
from typing import Optional

from dateutil import parser as date_parser

# QuickBooks exports use US ordering; ISO dates come from JSON backups.
DATE_FORMATS = ("%m/%d/%Y", "%m/%d/%y", "%Y-%m-%d")


def parse_date(date_str: Optional[str]) -> Optional[date]:
    """Parse a QuickBooks date cell.

    Tries m/d/Y, m/d/y and Y-m-d in that order, then falls back to a free-form
    parse. Never raises: anything unparseable yields None.

    Args:
        date_str: Date string, possibly surrounded by noise

    Returns:
        Date object or None
    """
    if date_str is None:
        return None
    if isinstance(date_str, datetime):
        return date_str.date()
    if isinstance(date_str, date):
        return date_str

    original = str(date_str).strip()
    if not original:
        return None

    cleaned = re.sub(r"[^0-9/\-]", "", original)
    if cleaned:
        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(cleaned, fmt).date()
            except ValueError:
                continue

    try:
        return date_parser.parse(original).date()
    except (ValueError, OverflowError, date_parser.ParserError):
        return None
