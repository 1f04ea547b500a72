"""Parsing and serialization helpers for dates and money amounts."""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional

ZERO = Decimal('0')
CENT = Decimal('0.01')

# Accepted date formats, tried in order
DATE_FORMATS = [
    '%Y-%m-%d',
    '%m/%d/%Y',
    '%m/%d/%y',
    '%Y/%m/%d',
    '%m-%d-%Y',
]


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar date from various formats.

    Args:
        value: date, datetime or string (ISO, ISO timestamp, US format)

    Returns:
        date, or None if the value is missing or unparseable
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    # ISO timestamps ("2026-02-13T00:00:00Z", "2026-02-13 00:00:00") keep only the day
    if len(text) > 10 and text[4:5] == '-' and text[10] in 'T ':
        text = text[:10]

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    return None


def parse_money(value: Any) -> Optional[Decimal]:
    """Parse a money amount.

    Handles "$1,234.56", "-12.00", "(12.00)" (accounting negative) and numbers.

    Args:
        value: Raw amount

    Returns:
        Decimal amount, or None if empty or not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, (int, float)):
        return parse_money(str(value))
    if not isinstance(value, str):
        return None

    text = value.strip().replace('$', '').replace(',', '').replace(' ', '')
    if not text:
        return None

    negative = False
    if text.startswith('(') and text.endswith(')'):
        negative = True
        text = text[1:-1]

    try:
        amount = Decimal(text)
    except InvalidOperation:
        return None

    if not amount.is_finite():
        return None
    return -amount if negative else amount


def round_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def json_default(value: Any) -> Any:
    """json.dumps default for Decimal, date and Enum values."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')
