"""Persisted classification workflow.

Saving a user's classifications touches several collections per item: the
statement's goal link, the rule for the statement's pattern, a missing bill
line item, and finally the affected goals' current amounts. Writes are
independent; a failed item is reported and the batch carries on.
"""

import re
from dataclasses import replace
from datetime import date
from typing import List, Sequence, Set, Tuple

from aws_lambda_powertools import Logger

from app.models.entities import (
    BatchFailure,
    BatchResult,
    ClassificationEdit,
    ClassificationRule,
    ListType,
    RecurringObligation,
    TargetSection,
    TargetType,
    Transaction,
)
from app.services import record_store
from app.services.patterns import canonicalize, merchant_name
from app.services.record_store import RecordStore, StoreError
from app.utils.parsing import ZERO, round_money

logger = Logger(service="budget-tagging")


class ItemRejected(Exception):
    """An item cannot be classified as submitted."""


def normalize_key(name: str) -> str:
    return re.sub(r'\s+', ' ', (name or '').lower()).strip()


def obligation_key(section: TargetSection, list_type: ListType, name: str) -> str:
    return f"{section.value}|{list_type.value}|{normalize_key(name)}"


def _list_type_for(target_type: TargetType) -> ListType:
    return ListType.SUBSCRIPTIONS if target_type is TargetType.SUBSCRIPTION else ListType.BILLS


def resolve_edit(edit: ClassificationEdit, transaction: Transaction) -> ClassificationEdit:
    """Fill in pattern, name and section defaults for an edit."""
    section = edit.target_section
    if edit.target_type is TargetType.SPANISH_FORK:
        section = TargetSection.SPANISH_FORK
    return replace(
        edit,
        pattern=(edit.pattern or canonicalize(transaction.description)).upper(),
        target_name=edit.target_name or merchant_name(transaction.description),
        target_section=section
    )


def upsert_rule(store: RecordStore, edit: ClassificationEdit, description: str) -> Tuple[ClassificationRule, bool]:
    """Create or update the rule for an edit's pattern.

    Read-modify-write without locking: a concurrent writer can lose an
    update. Keeping the rule's outcome counts as a use; changing it counts
    as an override and retargets the rule.

    Args:
        store: Record store
        edit: Resolved edit
        description: Description of the classified statement

    Returns:
        (rule, created)
    """
    existing = store.fetch(record_store.CLASSIFICATION_RULES, {'pattern': edit.pattern}, page_size=1)

    fields = {
        'pattern': edit.pattern,
        'normalized_description': merchant_name(description),
        'target_type': edit.target_type.value,
        'target_section': edit.target_section.value if edit.target_section else None,
        'target_name': edit.target_name,
        'goal_id': edit.goal_id,
    }

    if not existing:
        fields.update(use_count=1, override_count=0)
        record = store.create(record_store.CLASSIFICATION_RULES, fields)
        logger.info("Rule created", extra={"pattern": edit.pattern, "target_type": edit.target_type.value})
        return ClassificationRule.from_dict(record), True

    rule = ClassificationRule.from_dict(existing[0])
    if edit.same_target(rule):
        fields.update(use_count=rule.use_count + 1, override_count=rule.override_count)
    else:
        fields.update(use_count=rule.use_count, override_count=rule.override_count + 1)
        logger.info(
            "Rule overridden",
            extra={
                "pattern": edit.pattern,
                "from_target": rule.target_type.value,
                "to_target": edit.target_type.value
            }
        )

    record = store.update(record_store.CLASSIFICATION_RULES, rule.id, fields)
    return ClassificationRule.from_dict(record), False


def ensure_obligation(
    store: RecordStore,
    edit: ClassificationEdit,
    transaction: Transaction,
    known_keys: Set[str],
    today: date
) -> bool:
    """Create a bill line item for a bill-like edit if none exists yet.

    Returns:
        True if an obligation was created
    """
    if not edit.target_type.is_bill_like or edit.target_section is None:
        return False

    list_type = _list_type_for(edit.target_type)
    key = obligation_key(edit.target_section, list_type, edit.target_name)
    if key in known_keys:
        return False

    store.create(record_store.BILLS, {
        'name': edit.target_name,
        'frequency': 'monthly',
        'next_due': today.isoformat(),
        'amount': str(abs(transaction.amount)),
        'account': edit.target_section.value,
        'list_type': list_type.value,
        'in_this_paycheck': False,
        'tenant_paid': False,
    })
    known_keys.add(key)
    logger.info("Obligation created from classification", extra={"name": edit.target_name, "key": key})
    return True


def classify_one(
    store: RecordStore,
    edit: ClassificationEdit,
    known_keys: Set[str],
    today: date
) -> Tuple[bool, bool, Set[str]]:
    """Persist one classification.

    Returns:
        (rule created, obligation created, affected goal ids)
    """
    if not edit.transaction_id:
        raise ItemRejected("transaction_id is required")

    record = store.get(record_store.STATEMENTS, edit.transaction_id)
    if record is None:
        raise StoreError('get', record_store.STATEMENTS, edit.transaction_id, 'record not found')
    transaction = Transaction.from_dict(record)

    if not transaction.description.strip() and not edit.pattern:
        raise ItemRejected("statement has no description or pattern")

    resolved = resolve_edit(edit, transaction)

    affected = {g for g in (transaction.goal_id, resolved.goal_id) if g}

    # Always written so choosing "no goal" clears the link
    store.update(record_store.STATEMENTS, transaction.id, {'goal_id': resolved.goal_id})

    _, rule_created = upsert_rule(store, resolved, transaction.description)
    obligation_created = ensure_obligation(store, resolved, transaction, known_keys, today)
    return rule_created, obligation_created, affected


def recalculate_goal(store: RecordStore, goal_id: str) -> str:
    """Set a goal's current amount to the sum of its statements' absolute amounts."""
    total = ZERO
    for record in store.fetch_all(record_store.STATEMENTS, {'goal_id': goal_id}):
        total += abs(Transaction.from_dict(record).amount)
    amount = str(round_money(total))
    store.update(record_store.GOALS, goal_id, {'current_amount': amount})
    return amount


def classify_batch(store: RecordStore, edits: Sequence[ClassificationEdit], today: date) -> BatchResult:
    """Persist a batch of user classifications with partial success.

    Args:
        store: Record store
        edits: User classifications
        today: Current date (due date of created obligations)

    Returns:
        BatchResult with succeeded/failed counts and failure details
    """
    result = BatchResult()

    try:
        known_keys = {
            obligation_key(o.account, o.list_type, o.name)
            for o in (RecurringObligation.from_dict(r) for r in store.fetch_all(record_store.BILLS))
        }
    except StoreError as e:
        logger.error("Cannot load obligations, batch not applied", extra={"error": str(e)})
        result.failed = len(edits)
        result.failures = [
            BatchFailure(i, edit.transaction_id, e.operation, e.collection, e.record_id, str(e))
            for i, edit in enumerate(edits)
        ]
        return result

    affected_goals: List[str] = []
    for index, edit in enumerate(edits):
        try:
            rule_created, obligation_created, affected = classify_one(store, edit, known_keys, today)
        except StoreError as e:
            result.failed += 1
            result.failures.append(
                BatchFailure(index, edit.transaction_id, e.operation, e.collection, e.record_id, str(e))
            )
            continue
        except ItemRejected as e:
            result.failed += 1
            result.failures.append(
                BatchFailure(index, edit.transaction_id, 'validate', record_store.STATEMENTS, edit.transaction_id, str(e))
            )
            logger.warning("Classification item rejected", extra={"index": index, "reason": str(e)})
            continue

        result.succeeded += 1
        if rule_created:
            result.rules_created += 1
        else:
            result.rules_updated += 1
        if obligation_created:
            result.obligations_created += 1
        for goal_id in sorted(affected):
            if goal_id not in affected_goals:
                affected_goals.append(goal_id)

    for goal_id in affected_goals:
        try:
            recalculate_goal(store, goal_id)
            result.goals_updated += 1
        except StoreError as e:
            result.failures.append(BatchFailure(None, '', e.operation, e.collection, e.record_id, str(e)))

    logger.info(
        "Classification batch saved",
        extra={
            "succeeded": result.succeeded,
            "failed": result.failed,
            "rules_created": result.rules_created,
            "obligations_created": result.obligations_created,
            "goals_updated": result.goals_updated
        }
    )
    return result


def reset_rules(store: RecordStore) -> int:
    """Delete every classification rule."""
    deleted = store.delete_all(record_store.CLASSIFICATION_RULES)
    logger.info("Classification rules reset", extra={"deleted": deleted})
    return deleted
