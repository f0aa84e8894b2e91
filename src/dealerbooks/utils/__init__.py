"""Utility functions for dealerbooks."""

from dealerbooks.utils.date_parser import parse_date
from dealerbooks.utils.amount_parser import money, parse_amount, parse_percentage
from dealerbooks.utils.qb_csv import QuickBooksCsvReader

__all__ = ["parse_date", "money", "parse_amount", "parse_percentage", "QuickBooksCsvReader"]
