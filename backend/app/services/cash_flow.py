"""Cash-flow projection service.

Builds the money status for one calendar month: paychecks flow into checking,
auto-transfers move money on to the bills and rental accounts (or out to
personal accounts), and whatever remains after checking's own obligations,
goal contributions and variable spending is left over.

Amounts are summed unrounded and rounded to cents once, when the
MoneyStatus is assembled.
"""

import calendar
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from aws_lambda_powertools import Logger

from app.models.entities import (
    AccountTotals,
    AutoTransfer,
    ClassificationRule,
    ClassificationSuggestion,
    Frequency,
    Goal,
    MoneyStatus,
    PayDate,
    PaycheckConfig,
    PaycheckFrequency,
    PayPeriodStatus,
    RecurringObligation,
    TargetSection,
    TargetType,
    Transaction,
    TransferTotals,
)
from app.services import categorizer
from app.services.patterns import is_transfer_description
from app.services.schedule import (
    is_within_window,
    last_working_day_of_month,
    month_bounds,
    next_occurrence_on_or_after,
    next_pay_date,
    next_thursday_on_or_after,
    occurrences_between,
    pay_period_window,
    previous_month,
)
from app.utils.parsing import ZERO, round_money

logger = Logger(service="budget-cash-flow")


def monthly_equivalent(amount: Decimal, frequency) -> Decimal:
    """Normalize an amount to a per-month figure.

    Args:
        amount: Amount per occurrence
        frequency: Frequency or frequency label

    Returns:
        x2 for every two weeks, /12 for yearly, unchanged for monthly
    """
    freq = Frequency.parse(frequency)
    if freq is Frequency.TWO_WEEKS:
        return amount * 2
    if freq is Frequency.YEARLY:
        return amount / 12
    return amount


def predicted_need_by_account(obligations: Iterable[RecurringObligation]) -> AccountTotals:
    """Monthly-equivalent need per destination account."""
    totals = AccountTotals()
    for obligation in obligations:
        totals.add(obligation.account, monthly_equivalent(obligation.amount, obligation.frequency))
    return totals


def paycheck_dates_in_month(configs: Iterable[PaycheckConfig], year: int, month: int) -> List[PayDate]:
    """Every paycheck that funds a calendar month.

    Biweekly series walk in 14-day steps from the raw anchor (2 or 3 hits a
    month). Fixed-day paychecks clamp to the month's length. A last working
    day paycheck funds the following month, so the one dated at the end of
    the previous month is used.

    Args:
        configs: Paycheck configs
        year: Target year
        month: Target month (1-12)

    Returns:
        Pay dates sorted by date
    """
    first, last = month_bounds(year, month)
    result = []

    for config in configs:
        if config.frequency is PaycheckFrequency.BIWEEKLY:
            anchor = config.anchor_date or next_thursday_on_or_after(first)
            for day in occurrences_between(anchor, Frequency.TWO_WEEKS, first, last):
                result.append(PayDate(day, config.amount, config.name))

        elif config.frequency is PaycheckFrequency.MONTHLY:
            day_of_month = config.day_of_month or (config.anchor_date.day if config.anchor_date else None)
            if day_of_month is None:
                logger.warning("Monthly paycheck has no pay day", extra={"paycheck": config.name})
                continue
            day = min(day_of_month, last.day)
            result.append(PayDate(date(year, month, day), config.amount, config.name))

        else:
            prev_year, prev_month = previous_month(year, month)
            result.append(PayDate(last_working_day_of_month(prev_year, prev_month), config.amount, config.name))

    result.sort(key=lambda p: p.date)
    return result


def expected_income(configs: Iterable[PaycheckConfig], year: int, month: int) -> Tuple[Decimal, List[PayDate]]:
    pay_dates = paycheck_dates_in_month(configs, year, month)
    return sum((p.amount for p in pay_dates), ZERO), pay_dates


def next_paychecks(configs: Iterable[PaycheckConfig], reference: date) -> List[PayDate]:
    """Next pay date of every config, soonest first."""
    upcoming = []
    for config in configs:
        pay_date = next_pay_date(config, reference)
        if pay_date is not None:
            upcoming.append(PayDate(pay_date, config.amount, config.name))
    upcoming.sort(key=lambda p: p.date)
    return upcoming


def transfers_monthly(transfers: Iterable[AutoTransfer]) -> TransferTotals:
    """Monthly-equivalent auto-transfers per destination."""
    totals = TransferTotals()
    for transfer in transfers:
        totals.add(transfer.destination, monthly_equivalent(transfer.amount, transfer.frequency))
    return totals


def transferred_to_date(transfers: Iterable[AutoTransfer], year: int, month: int, today: date) -> TransferTotals:
    """Scheduled transfers from the 1st of the month through min(today, month end).

    Args:
        transfers: Auto-transfers
        year: Target year
        month: Target month
        today: Current date

    Returns:
        TransferTotals per destination
    """
    first, last = month_bounds(year, month)
    end = min(today, last)
    totals = TransferTotals()
    if end < first:
        return totals

    for transfer in transfers:
        if transfer.date is None:
            continue
        count = len(occurrences_between(transfer.date, transfer.frequency, first, end))
        if count:
            totals.add(transfer.destination, transfer.amount * count)
    return totals


def override_bonus(transfers: Iterable[AutoTransfer], year: int, month: int, today: date) -> TransferTotals:
    """One-off credit for transfers already executed ahead of schedule.

    A transfer flagged as done this cycle counts once while its next scheduled
    occurrence is still in the future and inside the target month. Once the
    schedule reaches that date, the regular to-date sum covers it.
    """
    totals = TransferTotals()
    if (today.year, today.month) != (year, month):
        return totals

    for transfer in transfers:
        if not transfer.transferred_this_cycle or transfer.date is None:
            continue
        upcoming = next_occurrence_on_or_after(transfer.date, transfer.frequency, today)
        if upcoming > today and (upcoming.year, upcoming.month) == (year, month):
            totals.add(transfer.destination, transfer.amount)
    return totals


def _in_month(transaction: Transaction, year: int, month: int) -> bool:
    return transaction.date is not None and (transaction.date.year, transaction.date.month) == (year, month)


def _section_for(suggestion: ClassificationSuggestion) -> Optional[TargetSection]:
    if suggestion.target_type is TargetType.SPANISH_FORK:
        return TargetSection.SPANISH_FORK
    return suggestion.target_section


def paid_to_date(suggestions: Iterable[ClassificationSuggestion], year: int, month: int) -> AccountTotals:
    """Rule-backed bill payments in the month per account.

    Heuristic suggestions and transfer descriptions are excluded. Outflows
    count positive; refunds net against them.
    """
    totals = AccountTotals()
    for suggestion in suggestions:
        if not suggestion.rule_backed or not suggestion.target_type.is_bill_like:
            continue
        transaction = suggestion.transaction
        if not _in_month(transaction, year, month) or is_transfer_description(transaction.description):
            continue
        totals.add(_section_for(suggestion), -transaction.amount)
    return totals


def variable_expenses(suggestions: Iterable[ClassificationSuggestion], year: int, month: int) -> Decimal:
    """Recorded variable spending in the month (never projected)."""
    total = ZERO
    for suggestion in suggestions:
        if suggestion.target_type is not TargetType.VARIABLE_EXPENSE or not suggestion.rule_backed:
            continue
        if _in_month(suggestion.transaction, year, month):
            total -= suggestion.transaction.amount
    return total


def goal_contributions(goals: Iterable[Goal]) -> Decimal:
    return sum((g.monthly_contribution for g in goals), ZERO)


def _occurrence_in_period(obligation: RecurringObligation, start: date, end: date) -> Optional[date]:
    if obligation.next_due is None:
        return None
    occurrence = next_occurrence_on_or_after(obligation.next_due, obligation.frequency, start)
    return occurrence if is_within_window(occurrence, start, end) else None


def required_for_pay_period_end(
    obligations: Iterable[RecurringObligation],
    pay_period_end: date
) -> Tuple[Decimal, List[str]]:
    """Single-occurrence amounts due in the pay period ending on a pay date.

    An obligation counts once even when a two-week series has two dates in
    the window.

    Args:
        obligations: Obligations
        pay_period_end: Pay date closing the period

    Returns:
        (total, names of obligations counted)
    """
    start, end = pay_period_window(pay_period_end)
    total = ZERO
    names = []
    for obligation in obligations:
        if _occurrence_in_period(obligation, start, end) is not None:
            total += obligation.amount
            names.append(obligation.name)
    return total, names


def mark_in_this_paycheck(
    obligations: Iterable[RecurringObligation],
    pay_period_end: date
) -> List[RecurringObligation]:
    """Copies of obligations with in_this_paycheck derived for a pay period."""
    start, end = pay_period_window(pay_period_end)
    return [
        replace(o, in_this_paycheck=_occurrence_in_period(o, start, end) is not None)
        for o in obligations
    ]


def pay_periods(obligations: Sequence[RecurringObligation], pay_dates: Sequence[PayDate]) -> List[PayPeriodStatus]:
    """Per-pay-period breakdown, one entry per distinct pay date."""
    income_by_date: Dict[date, Decimal] = {}
    for pay_date in pay_dates:
        income_by_date[pay_date.date] = income_by_date.get(pay_date.date, ZERO) + pay_date.amount

    periods = []
    for end in sorted(income_by_date):
        start, _ = pay_period_window(end)
        required, names = required_for_pay_period_end(obligations, end)
        periods.append(PayPeriodStatus(
            start=start,
            end=end,
            income=round_money(income_by_date[end]),
            required=round_money(required),
            obligations=names
        ))
    return periods


def compute_money_status(
    paychecks: Sequence[PaycheckConfig],
    obligations: Sequence[RecurringObligation],
    transfers: Sequence[AutoTransfer],
    transactions: Iterable[Transaction],
    rules: Sequence[ClassificationRule],
    goals: Iterable[Goal],
    today: date,
    year: Optional[int] = None,
    month: Optional[int] = None
) -> MoneyStatus:
    """Project cash flow for a calendar month.

    left_over = expected income - transfers leaving checking - checking need
    - goal contributions - variable expenses, computed from the rounded terms
    so the reported figures add up exactly.

    Args:
        paychecks: Paycheck configs
        obligations: Bills, subscriptions and rental items
        transfers: Auto-transfers
        transactions: Imported transactions (any month; undated rows ignored)
        rules: Classification rules
        goals: Savings goals
        today: Current date
        year: Target year (defaults to today's)
        month: Target month (defaults to today's)

    Returns:
        MoneyStatus
    """
    year = year or today.year
    month = month or today.month

    in_month = [t for t in transactions if _in_month(t, year, month)]
    suggestions = categorizer.suggest(in_month, rules)

    income, pay_dates = expected_income(paychecks, year, month)
    need = predicted_need_by_account(obligations).rounded()
    monthly = transfers_monthly(transfers).rounded()

    to_date = transferred_to_date(transfers, year, month, today)
    bonus = override_bonus(transfers, year, month, today)
    to_date.add_totals(bonus)

    income = round_money(income)
    goals_total = round_money(goal_contributions(goals))
    variable = round_money(variable_expenses(suggestions, year, month))

    left_over = income - monthly.out_from_checking - need.checking - goals_total - variable
    per_paycheck = round_money(left_over / len(pay_dates)) if pay_dates else None

    status = MoneyStatus(
        year=year,
        month=month,
        month_name=calendar.month_name[month],
        expected_income=income,
        pay_dates=pay_dates,
        predicted_need=need,
        transfers_monthly=monthly,
        transferred_to_date=to_date.rounded(),
        override_bonus=round_money(bonus.out_from_checking),
        paid_to_date=paid_to_date(suggestions, year, month).rounded(),
        goal_contributions=goals_total,
        variable_expenses=variable,
        left_over=left_over,
        left_over_per_paycheck=per_paycheck,
        pay_periods=pay_periods(obligations, pay_dates)
    )

    logger.info(
        "Money status computed",
        extra={
            "month": f"{year}-{month:02d}",
            "expected_income": str(income),
            "pay_dates": len(pay_dates),
            "out_from_checking": str(monthly.out_from_checking),
            "left_over": str(left_over)
        }
    )
    return status


def last_month_actuals(
    transactions: Iterable[Transaction],
    rules: Sequence[ClassificationRule],
    today: date
) -> Tuple[str, List[dict]]:
    """Actual spend per bill for the month before today's.

    Returns:
        (month name, rows of name/section/list_type/actual_amount)
    """
    year, month = previous_month(today.year, today.month)
    in_month = [t for t in transactions if _in_month(t, year, month)]

    rows: Dict[tuple, dict] = {}
    for suggestion in categorizer.suggest(in_month, rules):
        section = _section_for(suggestion)
        if not suggestion.target_type.is_bill_like or section is None:
            continue
        list_type = 'subscriptions' if suggestion.target_type is TargetType.SUBSCRIPTION else 'bills'
        key = (section, suggestion.target_name, list_type)
        row = rows.setdefault(key, {
            'name': suggestion.target_name,
            'section': section.value,
            'list_type': list_type,
            'actual_amount': ZERO
        })
        row['actual_amount'] += abs(suggestion.transaction.amount)

    for row in rows.values():
        row['actual_amount'] = round_money(row['actual_amount'])
    return calendar.month_name[month], list(rows.values())
