"""Tests for statement analysis suggestions."""

from datetime import date
from decimal import Decimal

from app.models.entities import Frequency, ListType, PaycheckFrequency, TargetSection
from app.services.statements_analysis import (
    infer_bill_frequency,
    infer_paycheck_frequency,
    infer_paycheck_name,
    is_paycheck_like,
    latest_paycheck_date,
    paycheck_deposits_in_month,
    suggest_auto_transfers,
    suggest_bills,
    suggest_paychecks,
)
from conftest import make_transaction


def statements():
    return [
        make_transaction('GUSTO PAYROLL PPD', 2000, day=date(2026, 1, 16)),
        make_transaction('GUSTO PAYROLL PPD', 2000, day=date(2026, 1, 30)),
        make_transaction('GUSTO PAYROLL PPD', '2100.00', day=date(2026, 2, 13)),
        make_transaction('ACME DIR DEP', 500, day=date(2026, 2, 2)),
        make_transaction('GUSTO PAYROLL REVERSAL', -20, day=date(2026, 2, 14)),
        make_transaction('NETFLIX.COM 866-579-7172 CA', '-15.49', day=date(2026, 1, 15)),
        make_transaction('NETFLIX.COM 866-579-7172 CA', '-15.49', day=date(2026, 2, 15)),
        make_transaction('RECURRING TRANSFER TO WAY2SAVE SAVINGS', -100, day=date(2026, 1, 5)),
        make_transaction('RECURRING TRANSFER TO WAY2SAVE SAVINGS', -100, day=date(2026, 2, 5)),
    ]


class TestPaycheckDetection:
    """Tests for paycheck description matching."""

    def test_is_paycheck_like(self):
        assert is_paycheck_like('GUSTO PAYROLL PPD')
        assert is_paycheck_like('Employer Direct Deposit')
        assert not is_paycheck_like('NETFLIX.COM')
        assert not is_paycheck_like(None)

    def test_infer_paycheck_name(self):
        assert infer_paycheck_name('GUSTO PAYROLL PPD') == 'Gusto Payroll'
        assert infer_paycheck_name('ACME DIR DEP') == 'Direct Deposit'
        assert infer_paycheck_name('ACME PAYROLL 1234') == 'ACME PAYROLL 1234'


class TestFrequencyInference:
    """Tests for inferring schedules from dates."""

    def test_paycheck_biweekly(self):
        dates = [date(2026, 1, 2), date(2026, 1, 16), date(2026, 1, 30)]
        assert infer_paycheck_frequency(dates) is PaycheckFrequency.BIWEEKLY

    def test_paycheck_last_working_day(self):
        # Jan 31 and Feb 28 2026 fall on Saturdays
        dates = [date(2026, 1, 30), date(2026, 2, 27), date(2026, 3, 31)]
        assert infer_paycheck_frequency(dates) is PaycheckFrequency.LAST_WORKING_DAY

    def test_paycheck_monthly(self):
        dates = [date(2026, 1, 15), date(2026, 2, 15), date(2026, 3, 15)]
        assert infer_paycheck_frequency(dates) is PaycheckFrequency.MONTHLY

    def test_paycheck_single_date(self):
        assert infer_paycheck_frequency([date(2026, 1, 15)]) is PaycheckFrequency.BIWEEKLY

    def test_bill_frequencies(self):
        assert infer_bill_frequency([date(2026, 1, 3)]) is Frequency.MONTHLY
        assert infer_bill_frequency([date(2025, 3, 1), date(2026, 3, 1)]) is Frequency.YEARLY
        assert infer_bill_frequency([date(2026, 1, 3), date(2026, 1, 17), date(2026, 1, 31)]) is Frequency.TWO_WEEKS


class TestSuggestions:
    """Tests for suggestions built from imported statements."""

    def test_suggest_paychecks(self):
        gusto, direct = suggest_paychecks(statements())

        assert gusto.name == 'Gusto Payroll'
        assert gusto.count == 3
        assert gusto.frequency is PaycheckFrequency.BIWEEKLY
        assert gusto.anchor_date == date(2026, 2, 13)
        assert gusto.amount == Decimal('2033.33')
        assert direct.name == 'Direct Deposit'

    def test_paycheck_record(self):
        record = suggest_paychecks(statements())[0].to_record()
        assert record['frequency'] == 'biweekly'
        assert record['anchor_date'] == '2026-02-13'
        assert record['amount'] == '2033.33'

    def test_suggest_bills_skips_transfers(self):
        [netflix] = suggest_bills(s for s in statements() if 'GUSTO' not in s.description)

        assert netflix.name == 'Netflix'
        assert netflix.frequency is Frequency.MONTHLY
        assert netflix.amount == Decimal('15.49')
        assert netflix.last_date == date(2026, 2, 15)
        assert netflix.account is TargetSection.CHECKING_ACCOUNT
        assert netflix.list_type is ListType.SUBSCRIPTIONS

    def test_suggest_auto_transfers(self):
        [savings] = suggest_auto_transfers(statements())

        assert savings.what_for == 'Way2Save Savings'
        assert savings.frequency is Frequency.MONTHLY
        assert savings.amount == Decimal('100.00')
        assert savings.date == date(2026, 2, 5)
        assert savings.count == 2


class TestPaycheckDeposits:
    """Tests for observed paycheck deposits."""

    def test_latest_paycheck_date(self):
        assert latest_paycheck_date(statements(), 'Gusto') == date(2026, 2, 13)
        assert latest_paycheck_date(statements(), 'Gusto Payroll Biweekly') == date(2026, 2, 13)
        assert latest_paycheck_date(statements(), 'Integris') is None
        assert latest_paycheck_date(statements(), '') is None

    def test_deposits_in_month(self):
        assert paycheck_deposits_in_month(statements(), 2026, 2) == Decimal('2600.00')
        assert paycheck_deposits_in_month(statements(), 2026, 3) == Decimal('0')
