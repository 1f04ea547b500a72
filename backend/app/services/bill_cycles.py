"""Paid-cycle detection for recurring obligations.

Obligation state is a view over current data: it is recomputed on every read
from the matched transactions and never stored.
"""

from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence, Tuple

from app.models.entities import (
    ClassificationSuggestion,
    ObligationState,
    ObligationStatus,
    PaidCycleStatus,
    RecurringObligation,
    Transaction,
)
from app.services.schedule import add_cycle

# Unpaid obligations due within this many days are "due" rather than "upcoming"
DUE_SOON_DAYS = 7


def last_paid_date(dates: Iterable[Optional[date]]) -> Optional[date]:
    """Most recent date, ignoring unknown ones."""
    known = [d for d in dates if d is not None]
    return max(known) if known else None


def paid_cycle_status(frequency, paid_dates: Iterable[Optional[date]], today: date) -> Optional[PaidCycleStatus]:
    """Decide whether the current cycle has been paid.

    Args:
        frequency: Obligation frequency
        paid_dates: Dates of matched payments
        today: Current date

    Returns:
        PaidCycleStatus, or None when there are no payments
    """
    last_paid = last_paid_date(paid_dates)
    if last_paid is None:
        return None
    next_cycle = add_cycle(last_paid, frequency)
    return PaidCycleStatus(last_paid=last_paid, next_cycle=next_cycle, is_paid=next_cycle > today)


def matched_transactions(
    obligation: RecurringObligation,
    suggestions: Iterable[ClassificationSuggestion]
) -> List[Transaction]:
    """Rule-backed, dated transactions classified onto this obligation."""
    name = obligation.name.strip().lower()
    matched = []
    for suggestion in suggestions:
        if not suggestion.rule_backed or not suggestion.target_type.is_bill_like:
            continue
        if suggestion.target_section is not obligation.account:
            continue
        if (suggestion.target_name or '').strip().lower() != name:
            continue
        if suggestion.transaction.date is None:
            continue
        matched.append(suggestion.transaction)
    return matched


def _state_for_due(next_due: date, today: date) -> ObligationState:
    if next_due < today:
        return ObligationState.OVERDUE
    if next_due <= today + timedelta(days=DUE_SOON_DAYS):
        return ObligationState.DUE
    return ObligationState.UPCOMING


def obligation_status(
    obligation: RecurringObligation,
    matched: Sequence[Transaction],
    today: date
) -> ObligationStatus:
    """Derive payment state for an obligation.

    Matched payments decide the state through paid-cycle detection. With no
    matched payment the stored due date is compared with today, and an
    obligation without a due date is untracked.

    Args:
        obligation: Obligation
        matched: Transactions classified onto the obligation
        today: Current date

    Returns:
        ObligationStatus
    """
    cycle = paid_cycle_status(obligation.frequency, [t.date for t in matched], today)
    if cycle is not None:
        state = ObligationState.PAID if cycle.is_paid else _state_for_due(cycle.next_cycle, today)
        return ObligationStatus(obligation, state, cycle.next_cycle, cycle.last_paid)

    if obligation.next_due is None:
        return ObligationStatus(obligation, ObligationState.UNTRACKED, None)
    return ObligationStatus(obligation, _state_for_due(obligation.next_due, today), obligation.next_due)


def statuses_for(
    obligations: Iterable[RecurringObligation],
    suggestions: Sequence[ClassificationSuggestion],
    today: date
) -> List[ObligationStatus]:
    return [obligation_status(o, matched_transactions(o, suggestions), today) for o in obligations]


def due_date_updates(
    obligations: Iterable[RecurringObligation],
    suggestions: Sequence[ClassificationSuggestion],
    today: date
) -> List[Tuple[RecurringObligation, date]]:
    """Obligations whose due date should advance after a detected payment.

    Untracked obligations (no due date) are never given one.

    Returns:
        List of (obligation, new next_due)
    """
    updates = []
    for status in statuses_for(obligations, suggestions, today):
        obligation = status.obligation
        if obligation.next_due is None or status.state is not ObligationState.PAID:
            continue
        if status.next_due > obligation.next_due:
            updates.append((obligation, status.next_due))
    return updates
