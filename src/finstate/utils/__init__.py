"""Utility functions for finstate."""

from finstate.utils.date_parser import parse_period_end
from finstate.utils.amount_parser import parse_amount, parse_optional_amount

__all__ = ["parse_period_end", "parse_amount", "parse_optional_amount"]
