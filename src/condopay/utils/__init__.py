"""Utility functions for condopay."""

from condopay.utils.date_parser import parse_date
from condopay.utils.amount_parser import parse_amount, to_money

__all__ = ["parse_date", "parse_amount", "to_money"]
