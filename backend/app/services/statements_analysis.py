"""Statement analysis: suggest paychecks, bills and auto-transfers from imports.

Groups imported transactions by payee and infers amount and frequency so the
user can seed their configuration from real statements.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.models.entities import Frequency, ListType, PaycheckFrequency, TargetSection, Transaction
from app.services.patterns import canonicalize, merchant_name, suggest_bill_group
from app.services.schedule import last_working_day_of_month
from app.utils.parsing import ZERO, round_money

# Deposit descriptions treated as paychecks
PAYCHECK_DESCRIPTIONS = [
    re.compile(r'gusto\s*payroll', re.IGNORECASE),
    re.compile(r'direct\s*deposit', re.IGNORECASE),
    re.compile(r'dir\s*dep', re.IGNORECASE),
    re.compile(r'pershing\s*brokerage', re.IGNORECASE),
    re.compile(r'payroll', re.IGNORECASE),
    re.compile(r'pay\s*con', re.IGNORECASE),
    re.compile(r'integris\s*health', re.IGNORECASE),
    re.compile(r'quest\s*diagnos', re.IGNORECASE),
    re.compile(r'nwosu', re.IGNORECASE),
]

PAYCHECK_NAMES = [
    (re.compile(r'gusto', re.IGNORECASE), 'Gusto Payroll'),
    (re.compile(r'integris\s*health', re.IGNORECASE), 'Integris Health'),
    (re.compile(r'pershing', re.IGNORECASE), 'Pershing (Brokerage)'),
    (re.compile(r'quest\s*diagnos', re.IGNORECASE), 'Quest Diagnostic (Deposit)'),
    (re.compile(r'direct\s*dep|dir\s*dep', re.IGNORECASE), 'Direct Deposit'),
]

_SCHEDULED_TRANSFER = re.compile(
    r'(?:recurring|online)\s*transfer\s*(?:ref\s*#?\s*\S+\s+)?to\b',
    re.IGNORECASE
)


@dataclass
class SuggestedPaycheck:
    """Paycheck inferred from deposits."""
    name: str
    frequency: PaycheckFrequency
    anchor_date: date
    amount: Decimal
    count: int

    def to_record(self) -> dict:
        return {
            'name': self.name,
            'frequency': self.frequency.value,
            'anchor_date': self.anchor_date.isoformat(),
            'day_of_month': None,
            'amount': str(self.amount),
            'count': self.count
        }


@dataclass
class SuggestedBill:
    """Bill inferred from withdrawals."""
    name: str
    frequency: Frequency
    amount: Decimal
    count: int
    last_date: date
    account: TargetSection
    list_type: ListType

    def to_record(self) -> dict:
        return {
            'name': self.name,
            'frequency': self.frequency.value,
            'next_due': self.last_date.isoformat(),
            'in_this_paycheck': False,
            'amount': str(self.amount),
            'account': self.account.value,
            'list_type': self.list_type.value,
            'count': self.count
        }


@dataclass
class SuggestedTransfer:
    """Auto-transfer inferred from recurring outgoing transfers."""
    what_for: str
    frequency: Frequency
    account: str
    date: date
    amount: Decimal
    count: int

    def to_record(self) -> dict:
        return {
            'what_for': self.what_for,
            'frequency': self.frequency.value,
            'account': self.account,
            'date': self.date.isoformat(),
            'amount': str(self.amount),
            'transferred_this_cycle': False,
            'count': self.count
        }


def is_paycheck_like(description: str) -> bool:
    return any(p.search(description or '') for p in PAYCHECK_DESCRIPTIONS)


def infer_paycheck_name(description: str) -> str:
    for pattern, name in PAYCHECK_NAMES:
        if pattern.search(description):
            return name
    return description[:40].strip() or 'Paycheck'


def _average_gap(dates: List[date]) -> Optional[float]:
    ordered = sorted(dates)
    if len(ordered) < 2:
        return None
    gaps = [(b - a).days for a, b in zip(ordered, ordered[1:])]
    return sum(gaps) / len(gaps)


def _average_amount(amounts: List[Decimal]) -> Decimal:
    return round_money(sum(amounts, ZERO) / len(amounts))


def infer_paycheck_frequency(dates: List[date]) -> PaycheckFrequency:
    """Monthly for ~monthly gaps (last working day when every date is one), else biweekly."""
    gap = _average_gap(dates)
    if gap is None or not 25 <= gap <= 32:
        return PaycheckFrequency.BIWEEKLY
    if all(d == last_working_day_of_month(d.year, d.month) for d in dates):
        return PaycheckFrequency.LAST_WORKING_DAY
    return PaycheckFrequency.MONTHLY


def infer_bill_frequency(dates: List[date]) -> Frequency:
    """Yearly for gaps of 300+ days, monthly for 25-35, else every two weeks."""
    gap = _average_gap(dates)
    if gap is None:
        return Frequency.MONTHLY
    if gap >= 300:
        return Frequency.YEARLY
    if 25 <= gap <= 35:
        return Frequency.MONTHLY
    return Frequency.TWO_WEEKS


def _group(transactions: Iterable[Transaction], key_fn) -> Dict[str, List[Transaction]]:
    groups: Dict[str, List[Transaction]] = {}
    for transaction in transactions:
        if transaction.date is None:
            continue
        key = key_fn(transaction)
        if key:
            groups.setdefault(key, []).append(transaction)
    return groups


def suggest_paychecks(transactions: Iterable[Transaction]) -> List[SuggestedPaycheck]:
    """Paychecks inferred from payroll-like deposits, most frequent first."""
    deposits = [t for t in transactions if t.amount > 0 and is_paycheck_like(t.description)]
    groups = _group(deposits, lambda t: infer_paycheck_name(t.description).lower())

    suggested = []
    for rows in groups.values():
        dates = [t.date for t in rows]
        suggested.append(SuggestedPaycheck(
            name=infer_paycheck_name(rows[0].description),
            frequency=infer_paycheck_frequency(dates),
            anchor_date=max(dates),
            amount=_average_amount([t.amount for t in rows]),
            count=len(rows)
        ))
    return sorted(suggested, key=lambda s: -s.count)


def latest_paycheck_date(transactions: Iterable[Transaction], paycheck_name: str) -> Optional[date]:
    """Latest deposit date for a paycheck name (fuzzy: either name contains the other)."""
    wanted = ' '.join((paycheck_name or '').lower().split())
    if not wanted:
        return None
    dates = []
    for t in transactions:
        if t.amount <= 0 or t.date is None or not is_paycheck_like(t.description):
            continue
        inferred = ' '.join(infer_paycheck_name(t.description).lower().split())
        if inferred and (inferred in wanted or wanted in inferred):
            dates.append(t.date)
    return max(dates) if dates else None


def paycheck_deposits_in_month(transactions: Iterable[Transaction], year: int, month: int) -> Decimal:
    """Sum of payroll-like deposits received in a calendar month."""
    total = ZERO
    for t in transactions:
        if t.amount <= 0 or t.date is None or (t.date.year, t.date.month) != (year, month):
            continue
        if is_paycheck_like(t.description):
            total += t.amount
    return total


def suggest_bills(transactions: Iterable[Transaction]) -> List[SuggestedBill]:
    """Bills inferred from withdrawals grouped by merchant name."""
    withdrawals = [t for t in transactions if t.amount < 0 and not _SCHEDULED_TRANSFER.search(t.description)]
    groups = _group(withdrawals, lambda t: merchant_name(t.description).lower())

    suggested = []
    for rows in groups.values():
        name = merchant_name(rows[0].description)
        dates = [t.date for t in rows]
        account, list_type = suggest_bill_group(name)
        suggested.append(SuggestedBill(
            name=name,
            frequency=infer_bill_frequency(dates),
            amount=_average_amount([abs(t.amount) for t in rows]),
            count=len(rows),
            last_date=max(dates),
            account=account,
            list_type=list_type
        ))
    return sorted(suggested, key=lambda s: -s.count)


def suggest_auto_transfers(transactions: Iterable[Transaction]) -> List[SuggestedTransfer]:
    """Auto-transfers inferred from scheduled outgoing transfers."""
    outgoing = [t for t in transactions if t.amount < 0 and _SCHEDULED_TRANSFER.search(t.description)]
    groups = _group(outgoing, lambda t: canonicalize(t.description))

    suggested = []
    for pattern, rows in groups.items():
        dates = [t.date for t in rows]
        gap = _average_gap(dates)
        counterparty = pattern.split(' ', 2)[2] if pattern.count(' ') >= 2 else pattern
        suggested.append(SuggestedTransfer(
            what_for=counterparty.title(),
            frequency=Frequency.MONTHLY if gap is not None and gap >= 25 else Frequency.TWO_WEEKS,
            account=counterparty.title(),
            date=max(dates),
            amount=_average_amount([abs(t.amount) for t in rows]),
            count=len(rows)
        ))
    return sorted(suggested, key=lambda s: -s.count)
