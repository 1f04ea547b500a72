"""Pytest configuration and fixtures."""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

# Add backend directory to path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from app.models.entities import ClassificationRule, TargetSection, TargetType, Transaction  # noqa: E402
from app.services import record_store  # noqa: E402
from app.services.record_store import RecordStore  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """Local SQLite record store (no S3 sync), installed as the shared store."""
    test_store = RecordStore(str(tmp_path / 'budget.db'))
    record_store.set_store(test_store)
    yield test_store
    record_store.set_store(None)


def make_transaction(description, amount, day=date(2026, 2, 10), txn_id=None, goal_id=None):
    """Build a Transaction with a Decimal amount."""
    return Transaction(
        id=txn_id,
        date=day,
        description=description,
        amount=Decimal(str(amount)),
        goal_id=goal_id
    )


def make_rule(pattern, target_type=TargetType.BILL, section=TargetSection.CHECKING_ACCOUNT,
              name=None, use_count=1, override_count=0, rule_id=None, normalized=None):
    """Build a ClassificationRule."""
    return ClassificationRule(
        id=rule_id or pattern.lower().replace(' ', '-'),
        pattern=pattern,
        target_type=target_type,
        normalized_description=normalized,
        target_section=section,
        target_name=name or pattern.title(),
        use_count=use_count,
        override_count=override_count
    )
