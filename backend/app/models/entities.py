"""Data model entities."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from aws_lambda_powertools import Logger

from app.utils.parsing import ZERO, parse_date, parse_money, round_money

logger = Logger(service="budget-entities")


class TargetType(Enum):
    """Classification target types."""
    BILL = "bill"
    SUBSCRIPTION = "subscription"
    SPANISH_FORK = "spanish_fork"  # rental-property bill group
    AUTO_TRANSFER = "auto_transfer"
    VARIABLE_EXPENSE = "variable_expense"
    IGNORE = "ignore"

    @property
    def is_bill_like(self) -> bool:
        """True for targets that map onto a recurring obligation."""
        return self in (TargetType.BILL, TargetType.SUBSCRIPTION, TargetType.SPANISH_FORK)

    @classmethod
    def parse(cls, value) -> 'TargetType':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or '').strip().lower())
        except ValueError:
            logger.warning("Unknown target type, treating as ignore", extra={"target_type": value})
            return cls.IGNORE


class TargetSection(Enum):
    """Destination account grouping."""
    BILLS_ACCOUNT = "bills_account"
    CHECKING_ACCOUNT = "checking_account"
    SPANISH_FORK = "spanish_fork"

    @classmethod
    def parse(cls, value) -> Optional['TargetSection']:
        if value is None or isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ListType(Enum):
    """Obligation list type."""
    BILLS = "bills"
    SUBSCRIPTIONS = "subscriptions"

    @classmethod
    def parse(cls, value) -> 'ListType':
        if isinstance(value, cls):
            return value
        if str(value or '').strip().lower().startswith('sub'):
            return cls.SUBSCRIPTIONS
        return cls.BILLS


class Confidence(Enum):
    """Suggestion confidence."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return {'HIGH': 3, 'MEDIUM': 2, 'LOW': 1}[self.value]


class MatchType(Enum):
    """How a suggestion was produced."""
    EXACT_PATTERN = "exact_pattern"
    NORMALIZED_DESCRIPTION = "normalized_description"
    HEURISTIC = "heuristic"


class Frequency(Enum):
    """Obligation and transfer frequencies."""
    TWO_WEEKS = "2weeks"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @classmethod
    def parse(cls, value) -> 'Frequency':
        """Parse human spellings ("2 Weeks", "biweekly", "Yearly"). Unknown values are monthly."""
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower()
        if 'biweek' in text or 'fortnight' in text:
            return cls.TWO_WEEKS
        if '2' in text and ('week' in text or 'wk' in text):
            return cls.TWO_WEEKS
        if 'year' in text or 'annual' in text:
            return cls.YEARLY
        return cls.MONTHLY


class PaycheckFrequency(Enum):
    """Paycheck schedules."""
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    LAST_WORKING_DAY = "monthlyLastWorkingDay"

    @classmethod
    def parse(cls, value) -> 'PaycheckFrequency':
        if isinstance(value, cls):
            return value
        text = str(value or '').strip().lower().replace('_', '').replace(' ', '')
        if 'lastworking' in text:
            return cls.LAST_WORKING_DAY
        if text.startswith('month'):
            return cls.MONTHLY
        return cls.BIWEEKLY


class TransferDestination(Enum):
    """Where an auto-transfer sends money."""
    BILLS = "bills"
    SPANISH_FORK = "spanish_fork"
    PERSONAL = "personal"

    @classmethod
    def from_label(cls, label: Optional[str]) -> 'TransferDestination':
        """Classify a free-form account label."""
        text = (label or '').strip().lower()
        if 'bills' in text:
            return cls.BILLS
        if 'spanish' in text or 'rental' in text:
            return cls.SPANISH_FORK
        return cls.PERSONAL


class ObligationState(Enum):
    """Derived obligation state."""
    PAID = "paid"
    DUE = "due"
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    UNTRACKED = "untracked"


def _money(value, field_name: str, record_id=None) -> Decimal:
    amount = parse_money(value)
    if amount is None:
        if value not in (None, ''):
            logger.warning(
                "Invalid amount, using zero",
                extra={"field": field_name, "value": str(value)[:40], "record_id": record_id}
            )
        return ZERO
    return amount


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Transaction:
    """One bank-statement line."""
    id: Optional[str]
    date: Optional[date]
    description: str
    amount: Decimal
    balance: Optional[Decimal] = None
    category: Optional[str] = None
    account: Optional[str] = None
    goal_id: Optional[str] = None
    source_file: Optional[str] = None

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0

    @classmethod
    def from_dict(cls, d: dict) -> 'Transaction':
        """Create from a stored record. Invalid dates become None."""
        return cls(
            id=d.get('id'),
            date=parse_date(d.get('date')),
            description=str(d.get('description') or ''),
            amount=_money(d.get('amount'), 'amount', d.get('id')),
            balance=parse_money(d.get('balance')),
            category=d.get('category') or None,
            account=d.get('account') or None,
            goal_id=d.get('goal_id') or None,
            source_file=d.get('source_file') or None
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'date': _iso(self.date),
            'description': self.description,
            'amount': str(self.amount),
            'balance': str(self.balance) if self.balance is not None else None,
            'category': self.category,
            'account': self.account,
            'goal_id': self.goal_id,
            'source_file': self.source_file
        }


@dataclass
class ClassificationRule:
    """Learned mapping from a canonical pattern to a target classification."""
    id: Optional[str]
    pattern: str
    target_type: TargetType
    normalized_description: Optional[str] = None
    target_section: Optional[TargetSection] = None
    target_name: Optional[str] = None
    goal_id: Optional[str] = None
    use_count: int = 0
    override_count: int = 0

    @classmethod
    def from_dict(cls, d: dict) -> 'ClassificationRule':
        """Create from a stored record."""
        return cls(
            id=d.get('id'),
            pattern=str(d.get('pattern') or ''),
            target_type=TargetType.parse(d.get('target_type')),
            normalized_description=d.get('normalized_description') or None,
            target_section=TargetSection.parse(d.get('target_section')),
            target_name=d.get('target_name') or None,
            goal_id=d.get('goal_id') or None,
            use_count=max(int(d.get('use_count') or 0), 0),
            override_count=max(int(d.get('override_count') or 0), 0)
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'pattern': self.pattern,
            'normalized_description': self.normalized_description,
            'target_type': self.target_type.value,
            'target_section': self.target_section.value if self.target_section else None,
            'target_name': self.target_name,
            'goal_id': self.goal_id,
            'use_count': self.use_count,
            'override_count': self.override_count
        }


@dataclass
class MatchResult:
    """Best rule for a transaction."""
    rule: ClassificationRule
    confidence: Confidence
    match_type: MatchType


@dataclass
class ClassificationSuggestion:
    """One suggested classification per transaction. Not persisted."""
    transaction: Transaction
    target_type: TargetType
    target_section: Optional[TargetSection]
    target_name: str
    confidence: Confidence
    match_type: MatchType
    goal_id: Optional[str] = None
    rule_id: Optional[str] = None
    from_session: bool = False

    @property
    def rule_backed(self) -> bool:
        """True when a persisted rule produced this suggestion."""
        return self.match_type is not MatchType.HEURISTIC and not self.from_session

    def to_dict(self) -> dict:
        return {
            'transaction': self.transaction.to_dict(),
            'target_type': self.target_type.value,
            'target_section': self.target_section.value if self.target_section else None,
            'target_name': self.target_name,
            'goal_id': self.goal_id,
            'confidence': self.confidence.value,
            'match_type': self.match_type.value,
            'rule_id': self.rule_id,
            'from_session': self.from_session
        }


@dataclass
class ClassificationEdit:
    """A user's classification of one transaction."""
    transaction_id: str
    target_type: TargetType
    target_section: Optional[TargetSection] = None
    target_name: Optional[str] = None
    goal_id: Optional[str] = None
    pattern: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'ClassificationEdit':
        """Create from a request item."""
        return cls(
            transaction_id=str(d.get('transaction_id') or ''),
            target_type=TargetType.parse(d.get('target_type')),
            target_section=TargetSection.parse(d.get('target_section')),
            target_name=(d.get('target_name') or '').strip() or None,
            goal_id=d.get('goal_id') or None,
            pattern=(d.get('pattern') or '').strip() or None
        )

    def same_target(self, rule: ClassificationRule) -> bool:
        """True if this edit keeps the outcome the rule would have suggested."""
        return (
            self.target_type == rule.target_type
            and self.target_section == rule.target_section
            and (self.target_name or '').lower() == (rule.target_name or '').lower()
            and self.goal_id == rule.goal_id
        )


@dataclass
class RecurringObligation:
    """Bill, subscription or rental-property line item."""
    id: Optional[str]
    name: str
    frequency: Frequency
    amount: Decimal
    account: TargetSection
    list_type: ListType = ListType.BILLS
    next_due: Optional[date] = None
    in_this_paycheck: bool = False
    tenant_paid: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> 'RecurringObligation':
        """Create from a stored record."""
        return cls(
            id=d.get('id'),
            name=str(d.get('name') or ''),
            frequency=Frequency.parse(d.get('frequency')),
            amount=_money(d.get('amount'), 'amount', d.get('id')),
            account=TargetSection.parse(d.get('account')) or TargetSection.CHECKING_ACCOUNT,
            list_type=ListType.parse(d.get('list_type')),
            next_due=parse_date(d.get('next_due')),
            in_this_paycheck=bool(d.get('in_this_paycheck', False)),
            tenant_paid=bool(d.get('tenant_paid', False))
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'frequency': self.frequency.value,
            'amount': str(self.amount),
            'account': self.account.value,
            'list_type': self.list_type.value,
            'next_due': _iso(self.next_due),
            'in_this_paycheck': self.in_this_paycheck,
            'tenant_paid': self.tenant_paid
        }


@dataclass
class AutoTransfer:
    """Scheduled movement of money out of checking."""
    id: Optional[str]
    what_for: str
    frequency: Frequency
    account: str
    date: Optional[date]
    amount: Decimal
    transferred_this_cycle: bool = False

    @property
    def destination(self) -> TransferDestination:
        return TransferDestination.from_label(self.account)

    @classmethod
    def from_dict(cls, d: dict) -> 'AutoTransfer':
        """Create from a stored record."""
        return cls(
            id=d.get('id'),
            what_for=str(d.get('what_for') or ''),
            frequency=Frequency.parse(d.get('frequency')),
            account=str(d.get('account') or ''),
            date=parse_date(d.get('date')),
            amount=_money(d.get('amount'), 'amount', d.get('id')),
            transferred_this_cycle=bool(d.get('transferred_this_cycle', False))
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'what_for': self.what_for,
            'frequency': self.frequency.value,
            'account': self.account,
            'destination': self.destination.value,
            'date': _iso(self.date),
            'amount': str(self.amount),
            'transferred_this_cycle': self.transferred_this_cycle
        }


@dataclass
class PaycheckConfig:
    """Paycheck schedule."""
    id: Optional[str]
    name: str
    frequency: PaycheckFrequency
    amount: Decimal
    anchor_date: Optional[date] = None
    day_of_month: Optional[int] = None

    @classmethod
    def from_dict(cls, d: dict) -> 'PaycheckConfig':
        """Create from a stored record."""
        day = d.get('day_of_month')
        try:
            day_of_month = int(day) if day not in (None, '') else None
        except (TypeError, ValueError):
            day_of_month = None
        return cls(
            id=d.get('id'),
            name=str(d.get('name') or ''),
            frequency=PaycheckFrequency.parse(d.get('frequency')),
            amount=_money(d.get('amount'), 'amount', d.get('id')),
            anchor_date=parse_date(d.get('anchor_date')),
            day_of_month=day_of_month
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'frequency': self.frequency.value,
            'amount': str(self.amount),
            'anchor_date': _iso(self.anchor_date),
            'day_of_month': self.day_of_month
        }


@dataclass
class Goal:
    """Savings goal."""
    id: Optional[str]
    name: str
    target_amount: Decimal = ZERO
    current_amount: Decimal = ZERO
    monthly_contribution: Decimal = ZERO

    @classmethod
    def from_dict(cls, d: dict) -> 'Goal':
        return cls(
            id=d.get('id'),
            name=str(d.get('name') or ''),
            target_amount=_money(d.get('target_amount'), 'target_amount', d.get('id')),
            current_amount=_money(d.get('current_amount'), 'current_amount', d.get('id')),
            monthly_contribution=_money(d.get('monthly_contribution'), 'monthly_contribution', d.get('id'))
        )

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'target_amount': str(self.target_amount),
            'current_amount': str(self.current_amount),
            'monthly_contribution': str(self.monthly_contribution)
        }


@dataclass
class PayDate:
    """One paycheck occurrence."""
    date: date
    amount: Decimal
    name: str = ''

    def to_dict(self) -> dict:
        return {'date': self.date.isoformat(), 'amount': str(round_money(self.amount)), 'name': self.name}


@dataclass
class AccountTotals:
    """Money per destination account."""
    checking: Decimal = ZERO
    bills: Decimal = ZERO
    spanish_fork: Decimal = ZERO

    def add(self, section: Optional[TargetSection], amount: Decimal) -> None:
        if section is TargetSection.BILLS_ACCOUNT:
            self.bills += amount
        elif section is TargetSection.SPANISH_FORK:
            self.spanish_fork += amount
        else:
            self.checking += amount

    def rounded(self) -> 'AccountTotals':
        return AccountTotals(round_money(self.checking), round_money(self.bills), round_money(self.spanish_fork))

    def to_dict(self) -> dict:
        return {'checking': str(self.checking), 'bills': str(self.bills), 'spanish_fork': str(self.spanish_fork)}


@dataclass
class TransferTotals:
    """Auto-transfer money per destination."""
    bills: Decimal = ZERO
    spanish_fork: Decimal = ZERO
    personal: Decimal = ZERO

    def add(self, destination: TransferDestination, amount: Decimal) -> None:
        if destination is TransferDestination.BILLS:
            self.bills += amount
        elif destination is TransferDestination.SPANISH_FORK:
            self.spanish_fork += amount
        else:
            self.personal += amount

    def add_totals(self, other: 'TransferTotals') -> None:
        self.bills += other.bills
        self.spanish_fork += other.spanish_fork
        self.personal += other.personal

    @property
    def inbound(self) -> Decimal:
        """Money funding the bills and rental accounts."""
        return self.bills + self.spanish_fork

    @property
    def out_from_checking(self) -> Decimal:
        """Everything that leaves checking, inbound and personal."""
        return self.bills + self.spanish_fork + self.personal

    def rounded(self) -> 'TransferTotals':
        return TransferTotals(round_money(self.bills), round_money(self.spanish_fork), round_money(self.personal))

    def to_dict(self) -> dict:
        return {
            'bills': str(self.bills),
            'spanish_fork': str(self.spanish_fork),
            'personal': str(self.personal),
            'inbound': str(self.inbound),
            'out_from_checking': str(self.out_from_checking)
        }


@dataclass
class PayPeriodStatus:
    """Required amount for the pay period ending on a pay date."""
    start: date
    end: date
    income: Decimal
    required: Decimal
    obligations: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'income': str(self.income),
            'required': str(self.required),
            'obligations': self.obligations
        }


@dataclass
class MoneyStatus:
    """Cash-flow projection for one calendar month."""
    year: int
    month: int
    month_name: str
    expected_income: Decimal
    pay_dates: List[PayDate]
    predicted_need: AccountTotals
    transfers_monthly: TransferTotals
    transferred_to_date: TransferTotals
    override_bonus: Decimal
    paid_to_date: AccountTotals
    goal_contributions: Decimal
    variable_expenses: Decimal
    left_over: Decimal
    left_over_per_paycheck: Optional[Decimal] = None
    pay_periods: List[PayPeriodStatus] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'year': self.year,
            'month': self.month,
            'month_name': self.month_name,
            'expected_income': str(self.expected_income),
            'pay_dates': [p.to_dict() for p in self.pay_dates],
            'predicted_need': self.predicted_need.to_dict(),
            'transfers_monthly': self.transfers_monthly.to_dict(),
            'transferred_to_date': self.transferred_to_date.to_dict(),
            'override_bonus': str(self.override_bonus),
            'paid_to_date': self.paid_to_date.to_dict(),
            'goal_contributions': str(self.goal_contributions),
            'variable_expenses': str(self.variable_expenses),
            'left_over': str(self.left_over),
            'left_over_per_paycheck': (
                str(self.left_over_per_paycheck) if self.left_over_per_paycheck is not None else None
            ),
            'pay_periods': [p.to_dict() for p in self.pay_periods]
        }


@dataclass
class PaidCycleStatus:
    """Whether the current cycle of an obligation has been paid."""
    last_paid: date
    next_cycle: date
    is_paid: bool


@dataclass
class ObligationStatus:
    """Obligation with derived payment state."""
    obligation: RecurringObligation
    state: ObligationState
    next_due: Optional[date]
    last_paid: Optional[date] = None

    def to_dict(self) -> dict:
        d = self.obligation.to_dict()
        d.update({
            'state': self.state.value,
            'effective_next_due': _iso(self.next_due),
            'last_paid': _iso(self.last_paid)
        })
        return d


@dataclass
class BatchFailure:
    """One failed item of a batch classification."""
    index: Optional[int]
    transaction_id: str
    operation: str
    collection: str
    record_id: Optional[str]
    message: str

    def to_dict(self) -> dict:
        return {
            'index': self.index,
            'transaction_id': self.transaction_id,
            'operation': self.operation,
            'collection': self.collection,
            'record_id': self.record_id,
            'message': self.message
        }


@dataclass
class BatchResult:
    """Outcome of a batch classification."""
    succeeded: int = 0
    failed: int = 0
    rules_created: int = 0
    rules_updated: int = 0
    obligations_created: int = 0
    goals_updated: int = 0
    failures: List[BatchFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'succeeded': self.succeeded,
            'failed': self.failed,
            'rules_created': self.rules_created,
            'rules_updated': self.rules_updated,
            'obligations_created': self.obligations_created,
            'goals_updated': self.goals_updated,
            'failures': [f.to_dict() for f in self.failures]
        }
