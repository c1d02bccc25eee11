"""Utility functions for ledgerimport."""

from ledgerimport.utils.date_parser import parse_date, detect_date_format
from ledgerimport.utils.amount_parser import parse_amount, parse_amount_fields

__all__ = ["parse_date", "detect_date_format", "parse_amount", "parse_amount_fields"]
