"""Tests for recurring date arithmetic."""

from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from app.models.entities import Frequency, PaycheckConfig, PaycheckFrequency
from app.services.schedule import (
    add_cycle,
    add_months,
    funding_month,
    is_within_window,
    last_working_day_of_month,
    next_occurrence_on_or_after,
    next_pay_date,
    next_paycheck_biweekly,
    next_paycheck_last_working_day,
    next_paycheck_monthly,
    occurrences_between,
    pay_period_window,
)


class TestAddCycle:
    """Tests for stepping one cycle."""

    def test_monthly_clamps_to_short_month(self):
        """Jan 31 + 1 month is Feb 28 in a non-leap year."""
        assert add_cycle(date(2026, 1, 31), 'monthly') == date(2026, 2, 28)

    def test_monthly_leap_year(self):
        assert add_cycle(date(2028, 1, 31), Frequency.MONTHLY) == date(2028, 2, 29)

    def test_two_weeks(self):
        assert add_cycle(date(2026, 2, 13), '2 Weeks') == date(2026, 2, 27)

    def test_yearly_from_leap_day(self):
        assert add_cycle(date(2024, 2, 29), 'Yearly') == date(2025, 2, 28)

    def test_december_rolls_year(self):
        assert add_months(date(2026, 12, 15), 1) == date(2027, 1, 15)

    @pytest.mark.parametrize('frequency', list(Frequency))
    def test_always_moves_forward(self, frequency):
        start = date(2025, 1, 1)
        for offset in range(0, 800, 13):
            day = start + timedelta(days=offset)
            assert add_cycle(day, frequency) > day


class TestNextOccurrence:
    """Tests for the first occurrence on or after a reference."""

    def test_anchor_in_future_returned(self):
        assert next_occurrence_on_or_after(date(2026, 3, 1), 'monthly', date(2026, 2, 1)) == date(2026, 3, 1)

    def test_reference_equal_to_occurrence(self):
        assert next_occurrence_on_or_after(date(2026, 1, 2), '2weeks', date(2026, 1, 16)) == date(2026, 1, 16)

    def test_two_weeks_steps(self):
        assert next_occurrence_on_or_after(date(2026, 1, 2), '2weeks', date(2026, 1, 17)) == date(2026, 1, 30)

    def test_month_end_anchor_does_not_drift(self):
        """Jan 31 anchor still lands on Mar 31, not Mar 28."""
        assert next_occurrence_on_or_after(date(2026, 1, 31), 'monthly', date(2026, 3, 1)) == date(2026, 3, 31)

    def test_yearly(self):
        assert next_occurrence_on_or_after(date(2020, 6, 15), 'yearly', date(2026, 7, 1)) == date(2027, 6, 15)

    def test_invalid_anchor_returned_unchanged(self):
        assert next_occurrence_on_or_after('not a date', 'monthly', date(2026, 1, 1)) == 'not a date'
        assert next_occurrence_on_or_after(None, 'monthly', date(2026, 1, 1)) is None

    def test_string_dates(self):
        assert next_occurrence_on_or_after('2026-01-15', 'monthly', '2026-02-16') == date(2026, 3, 15)

    @pytest.mark.parametrize('frequency', list(Frequency))
    def test_lower_bound(self, frequency):
        """Result is never before the reference."""
        anchor = date(2025, 1, 31)
        for offset in range(-40, 900, 17):
            reference = anchor + timedelta(days=offset)
            assert next_occurrence_on_or_after(anchor, frequency, reference) >= reference


class TestOccurrencesBetween:
    """Tests for series enumeration."""

    def test_biweekly_three_hits(self):
        result = occurrences_between(date(2026, 1, 2), '2weeks', date(2026, 1, 1), date(2026, 1, 31))
        assert result == [date(2026, 1, 2), date(2026, 1, 16), date(2026, 1, 30)]

    def test_series_extends_backwards(self):
        result = occurrences_between(date(2026, 3, 13), '2weeks', date(2026, 2, 1), date(2026, 2, 28))
        assert result == [date(2026, 2, 13), date(2026, 2, 27)]

    def test_monthly(self):
        result = occurrences_between(date(2026, 1, 31), 'monthly', date(2026, 2, 1), date(2026, 4, 30))
        assert result == [date(2026, 2, 28), date(2026, 3, 31), date(2026, 4, 30)]

    def test_empty_window(self):
        assert occurrences_between(date(2026, 1, 1), 'monthly', date(2026, 2, 1), date(2026, 1, 1)) == []

    def test_missing_anchor(self):
        assert occurrences_between(None, 'monthly', date(2026, 1, 1), date(2026, 12, 31)) == []


class TestWindows:
    """Tests for window checks."""

    def test_inclusive_bounds(self):
        assert is_within_window(date(2026, 2, 13), date(2026, 2, 13), date(2026, 2, 27))
        assert is_within_window(date(2026, 2, 27), date(2026, 2, 13), date(2026, 2, 27))
        assert not is_within_window(date(2026, 2, 28), date(2026, 2, 13), date(2026, 2, 27))

    def test_datetime_compared_by_day(self):
        assert is_within_window(datetime(2026, 2, 27, 23, 59), date(2026, 2, 13), date(2026, 2, 27))

    def test_unparseable_is_outside(self):
        assert not is_within_window('garbage', date(2026, 2, 13), date(2026, 2, 27))

    def test_pay_period_window(self):
        assert pay_period_window(date(2026, 2, 27)) == (date(2026, 2, 13), date(2026, 2, 27))


class TestPaychecks:
    """Tests for paycheck schedules."""

    def test_last_working_day_weekday(self):
        assert last_working_day_of_month(2026, 3) == date(2026, 3, 31)

    def test_last_working_day_saturday(self):
        """Feb 28 2026 is a Saturday."""
        assert last_working_day_of_month(2026, 2) == date(2026, 2, 27)

    def test_last_working_day_sunday(self):
        """May 31 2026 is a Sunday."""
        assert last_working_day_of_month(2026, 5) == date(2026, 5, 29)

    def test_funding_month_last_working_day(self):
        """A Feb 27 end-of-month paycheck funds March."""
        assert funding_month(date(2026, 2, 27), PaycheckFrequency.LAST_WORKING_DAY) == (2026, 3)

    def test_funding_month_december_rolls_year(self):
        assert funding_month(date(2026, 12, 31), 'monthlyLastWorkingDay') == (2027, 1)

    def test_funding_month_other_frequencies(self):
        assert funding_month(date(2026, 2, 27), 'biweekly') == (2026, 2)

    def test_biweekly(self):
        assert next_paycheck_biweekly(date(2026, 1, 2), date(2026, 2, 10)) == date(2026, 2, 13)

    def test_monthly_clamped(self):
        assert next_paycheck_monthly(31, date(2026, 2, 5)) == date(2026, 2, 28)

    def test_monthly_passed_moves_to_next_month(self):
        assert next_paycheck_monthly(15, date(2026, 2, 16)) == date(2026, 3, 15)

    def test_last_working_day_passed(self):
        assert next_paycheck_last_working_day(date(2026, 2, 28)) == date(2026, 3, 31)

    def test_next_pay_date_biweekly_without_anchor_uses_thursday(self):
        config = PaycheckConfig(None, 'Job', PaycheckFrequency.BIWEEKLY, Decimal('100'))
        # Feb 10 2026 is a Tuesday
        assert next_pay_date(config, date(2026, 2, 10)) == date(2026, 2, 12)

    def test_next_pay_date_monthly_without_day(self):
        config = PaycheckConfig(None, 'Job', PaycheckFrequency.MONTHLY, Decimal('100'))
        assert next_pay_date(config, date(2026, 2, 10)) is None

    def test_next_pay_date_monthly_from_anchor_day(self):
        config = PaycheckConfig(None, 'Job', PaycheckFrequency.MONTHLY, Decimal('100'), anchor_date=date(2025, 1, 20))
        assert next_pay_date(config, date(2026, 2, 10)) == date(2026, 2, 20)
