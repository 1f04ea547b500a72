"""Recurring date arithmetic for obligations, transfers and paychecks.

All functions are pure and work on calendar dates. A datetime argument is
reduced to its date so time of day never matters.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple, Union

from app.models.entities import Frequency, PaycheckConfig, PaycheckFrequency
from app.utils.parsing import parse_date

CYCLE_DAYS = 14
PAY_PERIOD_DAYS = 14
# Upper bound on enumerated occurrences in one call
MAX_OCCURRENCES = 1000

THURSDAY = 3

DateLike = Union[date, datetime, str]


def _as_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_date(value)


def add_months(d: date, months: int) -> date:
    """Shift by whole calendar months, clamping to the target month's last day.

    Args:
        d: Start date
        months: Months to add (may be negative)

    Returns:
        Shifted date
    """
    total = d.year * 12 + (d.month - 1) + months
    year, month_index = divmod(total, 12)
    month = month_index + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def shift(anchor: date, frequency: Frequency, cycles: int) -> date:
    """Return anchor advanced by a number of cycles.

    Computed from the anchor each time, so a month-end anchor is not
    dragged earlier by an intermediate short month.
    """
    if frequency is Frequency.TWO_WEEKS:
        return anchor + timedelta(days=CYCLE_DAYS * cycles)
    if frequency is Frequency.YEARLY:
        return add_months(anchor, 12 * cycles)
    return add_months(anchor, cycles)


def add_cycle(d: date, frequency) -> date:
    """Advance a date by one cycle.

    Args:
        d: Date to advance
        frequency: Frequency or frequency label

    Returns:
        +14 days, +1 month or +1 year (clamped to month length)
    """
    return shift(_as_date(d), Frequency.parse(frequency), 1)


def _first_index_on_or_after(anchor: date, frequency: Frequency, reference: date) -> int:
    """Smallest cycle index k (possibly negative) with shift(anchor, k) >= reference."""
    if frequency is Frequency.TWO_WEEKS:
        days = (reference - anchor).days
        return -(-days // CYCLE_DAYS)

    months_per_cycle = 12 if frequency is Frequency.YEARLY else 1
    month_diff = (reference.year - anchor.year) * 12 + (reference.month - anchor.month)
    k = month_diff // months_per_cycle
    while shift(anchor, frequency, k) < reference:
        k += 1
    while shift(anchor, frequency, k - 1) >= reference:
        k -= 1
    return k


def next_occurrence_on_or_after(anchor, frequency, reference: DateLike):
    """Find the first occurrence of a series on or after a reference date.

    Args:
        anchor: Series anchor date
        frequency: Frequency or frequency label
        reference: Reference date

    Returns:
        Smallest anchor + k cycles (k >= 0) that is >= reference. An anchor
        that is not a valid date is returned unchanged.
    """
    anchor_date = _as_date(anchor)
    if anchor_date is None:
        return anchor
    reference_date = _as_date(reference)
    if anchor_date >= reference_date:
        return anchor_date

    freq = Frequency.parse(frequency)
    k = max(_first_index_on_or_after(anchor_date, freq, reference_date), 0)
    return shift(anchor_date, freq, k)


def occurrences_between(anchor, frequency, start: DateLike, end: DateLike) -> List[date]:
    """List every occurrence of a series inside [start, end].

    The series extends both forward and backward from the anchor.

    Args:
        anchor: Series anchor date (None yields no occurrences)
        frequency: Frequency or frequency label
        start: Window start (inclusive)
        end: Window end (inclusive)

    Returns:
        Sorted occurrence dates
    """
    anchor_date = _as_date(anchor)
    start_date = _as_date(start)
    end_date = _as_date(end)
    if anchor_date is None or start_date is None or end_date is None or end_date < start_date:
        return []

    freq = Frequency.parse(frequency)
    k = _first_index_on_or_after(anchor_date, freq, start_date)
    result = []
    current = shift(anchor_date, freq, k)
    while current <= end_date and len(result) < MAX_OCCURRENCES:
        result.append(current)
        k += 1
        current = shift(anchor_date, freq, k)
    return result


def is_within_window(d, window_start, window_end) -> bool:
    """Inclusive window check by calendar day."""
    day = _as_date(d)
    start = _as_date(window_start)
    end = _as_date(window_end)
    if day is None or start is None or end is None:
        return False
    return start <= day <= end


def pay_period_window(end: DateLike) -> Tuple[date, date]:
    """Return the pay period (start, end) ending on a pay date."""
    end_date = _as_date(end)
    return end_date - timedelta(days=PAY_PERIOD_DAYS), end_date


def month_bounds(year: int, month: int) -> Tuple[date, date]:
    """First and last day of a calendar month."""
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def previous_month(year: int, month: int) -> Tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def next_month(year: int, month: int) -> Tuple[int, int]:
    if month == 12:
        return year + 1, 1
    return year, month + 1


def last_working_day_of_month(year: int, month: int) -> date:
    """Last calendar day of the month, moved back to Friday on weekends."""
    last = date(year, month, calendar.monthrange(year, month)[1])
    weekday = last.weekday()
    if weekday == 5:
        return last - timedelta(days=1)
    if weekday == 6:
        return last - timedelta(days=2)
    return last


def next_thursday_on_or_after(d: DateLike) -> date:
    day = _as_date(d)
    return day + timedelta(days=(THURSDAY - day.weekday()) % 7)


def next_paycheck_biweekly(anchor: DateLike, from_date: DateLike) -> date:
    """Next biweekly pay date: raw anchor stepped in 14-day increments."""
    return next_occurrence_on_or_after(_as_date(anchor), Frequency.TWO_WEEKS, from_date)


def next_paycheck_monthly(day_of_month: int, from_date: DateLike) -> date:
    """Next fixed-day pay date, clamping the day to the month's length.

    Args:
        day_of_month: Pay day (1-31)
        from_date: Reference date

    Returns:
        This month's pay date if not yet passed, else next month's
    """
    start = _as_date(from_date)
    last_day = calendar.monthrange(start.year, start.month)[1]
    this_month = date(start.year, start.month, min(day_of_month, last_day))
    if this_month >= start:
        return this_month

    year, month = next_month(start.year, start.month)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day_of_month, last_day))


def next_paycheck_last_working_day(from_date: DateLike) -> date:
    """Next last-working-day-of-month pay date."""
    start = _as_date(from_date)
    this_month = last_working_day_of_month(start.year, start.month)
    if this_month >= start:
        return this_month
    year, month = next_month(start.year, start.month)
    return last_working_day_of_month(year, month)


def next_pay_date(config: PaycheckConfig, from_date: DateLike) -> Optional[date]:
    """Next pay date for a paycheck config, or None if it cannot be scheduled."""
    start = _as_date(from_date)
    if config.frequency is PaycheckFrequency.BIWEEKLY:
        anchor = config.anchor_date or next_thursday_on_or_after(start)
        return next_paycheck_biweekly(anchor, start)
    if config.frequency is PaycheckFrequency.MONTHLY:
        day = config.day_of_month or (config.anchor_date.day if config.anchor_date else None)
        if day is None:
            return None
        return next_paycheck_monthly(day, start)
    return next_paycheck_last_working_day(start)


def funding_month(pay_date: DateLike, frequency) -> Tuple[int, int]:
    """Calendar month a paycheck occurrence funds.

    A last-working-day paycheck paid at the end of month M funds M+1; every
    other paycheck funds the month it lands in.
    """
    day = _as_date(pay_date)
    if PaycheckFrequency.parse(frequency) is PaycheckFrequency.LAST_WORKING_DAY:
        return next_month(day.year, day.month)
    return day.year, day.month


def days_until(target: DateLike, today: DateLike) -> int:
    return (_as_date(target) - _as_date(today)).days
