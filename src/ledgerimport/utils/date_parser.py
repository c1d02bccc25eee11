"""Date parsing utilities."""

import re
from datetime import date, datetime
from typing import Iterable, Optional

from dateutil import parser as date_parser

# Candidate formats in detection order. Tokens are separated by spaces; the
# separator used in the file itself does not matter.
DATE_FORMATS = [
    "yyyy mm dd",
    "yy mm dd",
    "mm dd yyyy",
    "mm dd yy",
    "dd mm yyyy",
    "dd mm yy",
]

DEFAULT_DATE_FORMAT = "mm dd yyyy"

_SEPARATORS = re.compile(r"[-/.\s']+")
_TOKEN_WIDTHS = {"yyyy": 4, "yy": 2, "mm": 2, "dd": 2}


def _split_compact(text: str, tokens: list[str]) -> Optional[list[str]]:
    """Split an unseparated digit string like ``20240102`` by token widths."""
    widths = [_TOKEN_WIDTHS[t] for t in tokens]
    if len(text) != sum(widths):
        return None
    parts = []
    pos = 0
    for width in widths:
        parts.append(text[pos:pos + width])
        pos += width
    return parts


def parse_date(value, date_format: Optional[str]) -> Optional[date]:
    """Parse a date string strictly against one of DATE_FORMATS.

    Accepts ``-``, ``/``, ``.``, ``'`` or whitespace as separators, or a
    compact digit string whose length matches the format.

    Args:
        value: Raw date value from the file. ``date`` objects pass through.
        date_format: Format token such as ``"dd mm yyyy"``

    Returns:
        Parsed date, or None if the value does not fit the format
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if value is None or date_format not in DATE_FORMATS:
        return None

    text = str(value).strip()
    if not text:
        return None

    tokens = date_format.split()
    if text.isdigit():
        parts = _split_compact(text, tokens)
    else:
        parts = [p for p in _SEPARATORS.split(text) if p]
    if parts is None or len(parts) != 3 or not all(p.isdigit() for p in parts):
        return None

    values = dict(zip(tokens, parts))
    year_token = "yyyy" if "yyyy" in values else "yy"
    year_text = values[year_token]
    if len(year_text) != _TOKEN_WIDTHS[year_token]:
        return None
    if len(values["mm"]) > 2 or len(values["dd"]) > 2:
        return None

    year = int(year_text)
    if year_token == "yy":
        # Same pivot as strptime's %y
        year += 1900 if year >= 69 else 2000

    try:
        return date(year, int(values["mm"]), int(values["dd"]))
    except ValueError:
        return None


def detect_date_format(
    samples: Iterable,
    candidates: Optional[list[str]] = None,
    fallback: Optional[str] = None,
) -> str:
    """Pick the first candidate format under which every sample parses.

    Args:
        samples: Raw date values (None and blank values are ignored)
        candidates: Ordered candidate formats (defaults to DATE_FORMATS)
        fallback: Format to return when no candidate fits, usually the
            hint declared by the file

    Returns:
        Format token
    """
    fallback = fallback or DEFAULT_DATE_FORMAT
    values = [s for s in samples if s is not None and str(s).strip()]
    if not values:
        return fallback

    for candidate in candidates or DATE_FORMATS:
        if all(parse_date(v, candidate) is not None for v in values):
            return candidate
    return fallback


def format_date(value: date, date_format: str) -> str:
    """Render a date back into a format token, using ``/`` as separator."""
    rendered = {
        "yyyy": f"{value.year:04d}",
        "yy": f"{value.year % 100:02d}",
        "mm": f"{value.month:02d}",
        "dd": f"{value.day:02d}",
    }
    return "/".join(rendered[t] for t in date_format.split())


def parse_ofx_date(date_str: str) -> date:
    """Parse an OFX timestamp (``YYYYMMDD[HHMMSS[.XXX][TZ]]``).

    Raises:
        ValueError: If the timestamp is malformed
    """
    date_str = date_str.strip()
    if len(date_str) < 14:
        return datetime.strptime(date_str[:8], "%Y%m%d").date()
    return datetime.strptime(date_str[:14], "%Y%m%d%H%M%S").date()


def parse_iso_date(date_str: str) -> date:
    """Parse an ISO 8601 date or datetime as used by CAMT statements.

    Raises:
        ValueError: If the value is not ISO 8601
    """
    try:
        return date_parser.isoparse(date_str.strip()).date()
    except (ValueError, TypeError) as e:
        raise ValueError(f"Could not parse date '{date_str}': {e}")
