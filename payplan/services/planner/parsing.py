"""Lenient field parsers for user-entered intake values.

Every parser returns `None` (or an empty default) instead of raising: intake
documents are hand-edited and must always remain loadable.
"""

import re
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_US_DATE = re.compile(r"^(\d{1,2})[/-](\d{1,2})[/-](\d{4})$")
_QUARTER = re.compile(r"Q([1-4])")
_CENTS = Decimal("0.01")

# Storage bounds: amounts are NUMERIC(12, 2), tax years a plain INTEGER.
MAX_AMOUNT = Decimal(10) ** 10
MIN_TAX_YEAR = 1900
MAX_TAX_YEAR = 2200


def as_text(value: Any) -> str:
    """Trimmed string form of a scalar; containers and None become `""`."""

    if value is None or isinstance(value, (dict, list, tuple, set)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def parse_date(value: Any) -> date | None:
    """Parse `YYYY-MM-DD`, `M/D/YYYY` / `MM-DD-YYYY`, or an ISO datetime."""

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = as_text(value)
    if not raw:
        return None
    try:
        iso = _ISO_DATE.match(raw)
        if iso:
            return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3)))
        us = _US_DATE.match(raw)
        if us:
            return date(int(us.group(3)), int(us.group(1)), int(us.group(2)))
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def normalize_date_text(value: Any) -> str:
    """Canonical `YYYY-MM-DD` text, or `""` when the value is not a date."""

    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ""


def parse_amount(value: Any) -> Decimal | None:
    """Parse a currency amount such as `"$5,000.00"`; unparsable or out-of-range gives None."""

    if value is None or isinstance(value, bool):
        return None
    cleaned = re.sub(r"[^0-9.\-]", "", str(value))
    if not cleaned:
        return None
    try:
        amount = Decimal(cleaned).quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return amount if abs(amount) < MAX_AMOUNT else None


def parse_quarter(value: Any) -> int | None:
    """Accept `Q1`..`Q4` or bare `1`..`4` in any case/spacing."""

    raw = re.sub(r"[^Q0-9]", "", as_text(value).upper())
    match = _QUARTER.search(raw)
    if match:
        return int(match.group(1))
    if raw.isdigit() and 1 <= int(raw) <= 4:
        return int(raw)
    return None


def parse_tax_year(value: Any) -> int | None:
    digits = re.sub(r"[^0-9]", "", as_text(value))
    if not digits:
        return None
    year = int(digits)
    return year if MIN_TAX_YEAR <= year <= MAX_TAX_YEAR else None
