"""Tests for amount and percentage parsing."""

import pytest
from decimal import Decimal

from dealerbooks.utils.amount_parser import money, parse_amount, parse_percentage


def test_parse_plain_amount():
    """Test parsing a plain decimal amount."""
    assert parse_amount("123.45") == Decimal("123.45")


def test_parse_currency_and_thousands():
    """Test currency symbols and thousands separators are ignored."""
    assert parse_amount("$1,234.56") == Decimal("1234.56")
    assert parse_amount("-$1,234.56") == Decimal("-1234.56")


def test_parse_parentheses_negative():
    """Test accounting-style negative amounts."""
    assert parse_amount("(250.00)") == Decimal("-250.00")


def test_parse_empty_is_zero():
    """Test empty cells parse as zero."""
    assert parse_amount(None) == Decimal("0.00")
    assert parse_amount("") == Decimal("0.00")
    assert parse_amount("   ") == Decimal("0.00")


def test_parse_rounds_to_cents():
    """Test amounts are quantized half-up to cents."""
    assert parse_amount("10.005") == Decimal("10.01")
    assert parse_amount("10.004") == Decimal("10.00")


def test_parse_invalid_amount_raises():
    """Test unparseable text raises ValueError."""
    with pytest.raises(ValueError):
        parse_amount("abc")


def test_money_from_float_has_no_binary_noise():
    """Test money() goes through str so 0.1 + 0.2 style noise never leaks in."""
    assert money(0.1) + money(0.2) == Decimal("0.30")


def test_parse_percentage_forms():
    """Test percent, plain and fractional percentages."""
    assert parse_percentage("8.25%") == Decimal("8.2500")
    assert parse_percentage("8.25") == Decimal("8.2500")
    assert parse_percentage("0.0825") == Decimal("8.2500")
    assert parse_percentage("0") == Decimal("0")
    assert parse_percentage("") is None
    assert parse_percentage(None) is None
