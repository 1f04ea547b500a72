"""Request field validation for the write routes.

Each helper normalizes one raw JSON value into its stored form or raises
ValueError with a message fit for a 400 response.
"""

from typing import Any, Optional

from app.utils.parsing import parse_date, parse_money


def text(value: Any, field_name: str) -> str:
    """Non-empty, stripped text."""
    result = str(value or '').strip()
    if not result:
        raise ValueError(f"{field_name} cannot be empty")
    return result


def money(value: Any, field_name: str, positive: bool = False) -> str:
    """Non-negative amount (strictly positive when asked), stored as a string.

    Args:
        value: Raw amount ("12.50", 12.5, "$1,200")
        field_name: Field name for the error message
        positive: Reject zero as well

    Returns:
        Decimal amount as a string
    """
    amount = parse_money(value)
    if amount is None or amount < 0 or (positive and amount == 0):
        qualifier = 'positive' if positive else 'non-negative'
        raise ValueError(f"{field_name} must be a {qualifier} number")
    return str(amount)


def optional_date(value: Any, field_name: str) -> Optional[str]:
    """ISO date, or None for an empty value."""
    if value in (None, ''):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"{field_name} must be a date")
    return parsed.isoformat()


def day_of_month(value: Any, field_name: str = 'day_of_month') -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        day = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a whole number") from None
    if not 1 <= day <= 31:
        raise ValueError(f"{field_name} must be between 1 and 31")
    return day


def flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', '1', 'yes', 'on')
    return bool(value)
