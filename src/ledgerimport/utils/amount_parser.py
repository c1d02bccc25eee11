"""Amount parsing utilities.

Amounts are parsed into Decimal and converted to integer minor units
(cents) before they reach the ledger.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Mapping, Optional
import re

_NUMBER = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")
_MULTIPLIER = re.compile(r"^\d+(\.\d{0,4})?$")


def _normalize_separators(amount_str: str) -> str:
    """Turn ``,``/``.`` thousands and decimal marks into a plain number.

    The right-most separator is the decimal mark, except for a lone comma
    followed by exactly three digits (``1,234``) and repeated dots
    (``1.234.567``), which are thousands groupings.
    """
    last_comma = amount_str.rfind(",")
    last_dot = amount_str.rfind(".")

    if last_comma >= 0 and last_dot >= 0:
        if last_comma > last_dot:
            return amount_str.replace(".", "").replace(",", ".")
        return amount_str.replace(",", "")

    if last_comma >= 0:
        decimals = amount_str[last_comma + 1:]
        if amount_str.count(",") == 1 and len(decimals) != 3:
            return amount_str.replace(",", ".")
        return amount_str.replace(",", "")

    if amount_str.count(".") > 1:
        return amount_str.replace(".", "")
    return amount_str


def parse_amount(amount_str: Any) -> Decimal:
    """Parse an amount string into a Decimal.

    Handles various formats:
    - "123.45"
    - "$123.45"
    - "-123.45"
    - "-$123.45"
    - "1,234.56"
    - "1.234,56" and "12,5" (comma as decimal mark)
    - "(123.45)" (negative in parentheses)
    - "123.45-" (trailing minus)

    Args:
        amount_str: Amount string (Decimal and int values pass through)

    Returns:
        Decimal amount

    Raises:
        ValueError: If amount string cannot be parsed
    """
    if isinstance(amount_str, Decimal):
        return amount_str
    if isinstance(amount_str, (int, float)) and not isinstance(amount_str, bool):
        return Decimal(str(amount_str))
    if amount_str is None or not str(amount_str).strip():
        raise ValueError("Empty amount string")

    # Remove whitespace
    amount_str = str(amount_str).strip()

    # Handle parentheses notation (negative)
    is_negative = False
    if amount_str.startswith("(") and amount_str.endswith(")"):
        is_negative = True
        amount_str = amount_str[1:-1]

    # Remove currency symbols, spaces and apostrophe groupings
    amount_str = re.sub(r"[$€£¥\s' ]", "", amount_str)

    if amount_str.startswith("+"):
        amount_str = amount_str[1:]
    if amount_str.endswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[:-1]
    if amount_str.startswith("-"):
        is_negative = not is_negative
        amount_str = amount_str[1:]

    amount_str = _normalize_separators(amount_str)

    if not _NUMBER.match(amount_str):
        raise ValueError(f"Could not parse amount '{amount_str}'")

    try:
        amount = Decimal(amount_str)
    except InvalidOperation as e:
        raise ValueError(f"Could not parse amount '{amount_str}': {e}")
    return -amount if is_negative else amount


def parse_amount_or_none(amount_str: Any) -> Optional[Decimal]:
    """Like parse_amount, but returns None for missing or non-numeric values."""
    try:
        return parse_amount(amount_str)
    except ValueError:
        return None


def amount_to_integer(amount: Decimal) -> int:
    """Convert a decimal amount to minor units, rounding half away from zero."""
    return int((amount * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def integer_to_amount(value: int) -> Decimal:
    """Convert minor units back to a two-place Decimal."""
    return (Decimal(value) / 100).quantize(Decimal("0.01"))


def is_valid_multiplier(multiplier: str) -> bool:
    """Return True for an empty (disabled) or well-formed multiplier."""
    return not multiplier or bool(_MULTIPLIER.match(multiplier))


def parse_amount_fields(
    values: Mapping[str, Any],
    split_mode: bool = False,
    in_out_mode: bool = False,
    out_value: str = "",
    flip_amount: bool = False,
    multiplier: str = "",
    resolved: bool = False,
) -> Optional[int]:
    """Resolve the signed amount of a mapped record in minor units.

    Args:
        values: Canonical values (``amount``, ``inflow``, ``outflow``,
            ``in_out``) as produced by apply_field_mapping
        split_mode: Use separate inflow/outflow values
        in_out_mode: Amount is a magnitude, ``in_out`` gives the direction
        out_value: Indicator value that marks an outflow (case-insensitive)
        flip_amount: Invert the sign of the result
        multiplier: Scale factor, empty string when disabled
        resolved: The amount was already typed by a bank-statement adapter;
            no sign handling or scaling is applied

    Returns:
        Amount in minor units, or None if no usable amount was found
    """
    if resolved:
        amount = parse_amount_or_none(values.get("amount"))
        return None if amount is None else amount_to_integer(amount)

    if split_mode:
        outflow = parse_amount_or_none(values.get("outflow"))
        inflow = parse_amount_or_none(values.get("inflow"))
        if outflow is None and inflow is None:
            return None
        amount = (inflow or Decimal(0)) - (outflow or Decimal(0))
    else:
        amount = parse_amount_or_none(values.get("amount"))
        if amount is None:
            return None
        if in_out_mode:
            amount = abs(amount)
            indicator = values.get("in_out")
            indicator = "" if indicator is None else str(indicator).strip().lower()
            marker = (out_value or "").strip().lower()
            # An empty marker matches no row
            if marker and indicator == marker:
                amount = -amount
        if flip_amount:
            amount = -amount

    if multiplier and is_valid_multiplier(multiplier):
        amount = amount * Decimal(multiplier)

    return amount_to_integer(amount)
