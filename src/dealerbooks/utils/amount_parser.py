"""Amount parsing utilities."""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import re
from typing import Any, Optional

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")


def money(value: Any) -> Decimal:
    """Quantize a numeric value to cents (half-up)."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(amount_str: Optional[str]) -> Decimal:
    """Parse a QuickBooks money cell into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-$1,234.56"
    - "(123.45)" (negative in parentheses)
    - "" or None (zero)

    Args:
        amount_str: Amount string

    Returns:
        Decimal amount rounded to cents

    Raises:
        ValueError: If a non-empty amount string cannot be parsed
    """
    if amount_str is None:
        return Decimal("0.00")
    if isinstance(amount_str, (int, float, Decimal)):
        return money(amount_str)

    amount_str = str(amount_str).strip()
    if not amount_str:
        return Decimal("0.00")

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols, thousands separators and inner spaces
    amount_str = re.sub(r"[$€£¥,\s]", "", amount_str)
    if not amount_str:
        return Decimal("0.00")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse amount '{amount_str}'")
    if not amount.is_finite():
        raise ValueError(f"Could not parse amount '{amount_str}'")

    if is_negative:
        amount = -amount
    return money(amount)


def parse_percentage(value: Optional[str]) -> Optional[Decimal]:
    """Parse a percentage cell.

    "8.25%" and "8.25" both yield 8.25, while fractional values such as
    "0.0825" are scaled up to a percent. Empty cells yield None.
    """
    if value is None or str(value).strip() == "":
        return None

    cleaned = str(value).replace("%", "").strip()
    number = parse_amount_exact(cleaned)
    if number == 0:
        return Decimal("0")
    if abs(number) <= 1:
        number = number * 100
    return number.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


def parse_amount_exact(amount_str: str) -> Decimal:
    """Parse like parse_amount but keep every decimal place."""
    amount_str = amount_str.strip()
    is_negative = amount_str.startswith("(") and amount_str.endswith(")")
    if is_negative:
        amount_str = amount_str[1:-1]
    amount_str = re.sub(r"[$€£¥,\s]", "", amount_str)
    if not amount_str:
        return Decimal("0")
    try:
        amount = Decimal(amount_str)
    except InvalidOperation:
        raise ValueError(f"Could not parse number '{amount_str}'")
    return -amount if is_negative else amount
