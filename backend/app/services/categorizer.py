"""Statement classification using learned pattern rules and keyword heuristics."""

from typing import Dict, Iterable, List, Optional, Sequence

from aws_lambda_powertools import Logger

from app.models.entities import (
    ClassificationEdit,
    ClassificationRule,
    ClassificationSuggestion,
    Confidence,
    ListType,
    MatchResult,
    MatchType,
    TargetSection,
    TargetType,
    Transaction,
)
from app.services.patterns import (
    canonicalize,
    is_transfer_description,
    merchant_name,
    suggest_bill_group,
)


# Initialize structured logger
logger = Logger(service="budget-categorizer")


def calculate_confidence(rule: ClassificationRule) -> Confidence:
    """Confidence of a rule from its usage counters.

    Args:
        rule: Classification rule

    Returns:
        HIGH, MEDIUM or LOW
    """
    use_count = rule.use_count
    override_count = rule.override_count
    total = use_count + override_count
    override_ratio = override_count / total if total else 0.0

    if use_count >= 3 and override_count == 0:
        return Confidence.HIGH
    if use_count >= 5 and override_ratio < 0.2:
        return Confidence.HIGH
    if use_count >= 2 and override_count == 0:
        return Confidence.MEDIUM
    if use_count > 0 and override_count > 0 and override_ratio < 0.5:
        return Confidence.MEDIUM
    return Confidence.LOW


def _rank(result: MatchResult) -> tuple:
    return (
        result.rule.override_count > 0,
        result.match_type is MatchType.EXACT_PATTERN,
        result.confidence.rank,
    )


def match_rule(rules: Sequence[ClassificationRule], transaction: Transaction) -> Optional[MatchResult]:
    """Find the best rule for a transaction.

    Candidates are rules whose pattern equals the canonical pattern, or whose
    normalized description equals the merchant name. Ranking prefers rules the
    user has overridden into, then exact pattern matches, then confidence.

    Args:
        rules: All classification rules
        transaction: Transaction to classify

    Returns:
        MatchResult, or None if no rule applies
    """
    pattern = canonicalize(transaction.description)
    secondary = merchant_name(transaction.description).lower()

    candidates: Dict[object, MatchResult] = {}
    for rule in rules:
        key = rule.id if rule.id is not None else id(rule)
        if key in candidates:
            continue
        if pattern and rule.pattern.upper() == pattern:
            match_type = MatchType.EXACT_PATTERN
        elif rule.normalized_description and rule.normalized_description.lower() == secondary:
            match_type = MatchType.NORMALIZED_DESCRIPTION
        else:
            continue
        candidates[key] = MatchResult(rule=rule, confidence=calculate_confidence(rule), match_type=match_type)

    if not candidates:
        return None

    # max() keeps the first of equally ranked candidates
    return max(candidates.values(), key=_rank)


def heuristic_suggestion(transaction: Transaction) -> ClassificationSuggestion:
    """LOW confidence suggestion from merchant keywords and the sign of the amount."""
    name = merchant_name(transaction.description)

    if not transaction.is_outflow:
        return ClassificationSuggestion(
            transaction=transaction,
            target_type=TargetType.IGNORE,
            target_section=None,
            target_name=name,
            confidence=Confidence.LOW,
            match_type=MatchType.HEURISTIC,
            goal_id=transaction.goal_id
        )

    section, list_type = suggest_bill_group(name)
    if section is TargetSection.SPANISH_FORK:
        target_type = TargetType.SPANISH_FORK
    elif list_type is ListType.SUBSCRIPTIONS:
        target_type = TargetType.SUBSCRIPTION
    else:
        target_type = TargetType.BILL

    return ClassificationSuggestion(
        transaction=transaction,
        target_type=target_type,
        target_section=section,
        target_name=name,
        confidence=Confidence.LOW,
        match_type=MatchType.HEURISTIC,
        goal_id=transaction.goal_id
    )


def suggest(
    transactions: Iterable[Transaction],
    rules: Sequence[ClassificationRule]
) -> List[ClassificationSuggestion]:
    """Produce one suggestion per transaction, in input order.

    Args:
        transactions: Transactions to classify
        rules: All classification rules

    Returns:
        List of ClassificationSuggestion
    """
    suggestions = []
    matched = 0

    for transaction in transactions:
        match = match_rule(rules, transaction)
        if match is None:
            suggestions.append(heuristic_suggestion(transaction))
            continue

        matched += 1
        rule = match.rule
        suggestions.append(ClassificationSuggestion(
            transaction=transaction,
            target_type=rule.target_type,
            target_section=rule.target_section,
            target_name=(
                rule.target_name
                or rule.normalized_description
                or merchant_name(transaction.description)
            ),
            confidence=match.confidence,
            match_type=match.match_type,
            goal_id=rule.goal_id or transaction.goal_id,
            rule_id=rule.id
        ))

    logger.info(
        "Suggestions generated",
        extra={
            "transaction_count": len(suggestions),
            "rule_matches": matched,
            "heuristic": len(suggestions) - matched,
            "rule_count": len(rules)
        }
    )
    return suggestions


def needs_review(transaction: Transaction, rules: Sequence[ClassificationRule]) -> bool:
    """True if a transaction should appear in the review queue.

    Transfers never need review. Goal-linked rows always do, so the goal can be
    changed. Otherwise a row is handled once a non-ignore rule matches it.
    """
    if is_transfer_description(transaction.description):
        return False
    if transaction.goal_id:
        return True
    match = match_rule(rules, transaction)
    return match is None or match.rule.target_type is TargetType.IGNORE


def review_queue(
    transactions: Iterable[Transaction],
    rules: Sequence[ClassificationRule]
) -> List[ClassificationSuggestion]:
    """Suggestions for the transactions that still need a user decision."""
    pending = [t for t in transactions if needs_review(t, rules)]
    return suggest(pending, rules)


def resuggest_from_session(
    suggestions: Sequence[ClassificationSuggestion],
    edits: Dict[str, ClassificationEdit]
) -> List[ClassificationSuggestion]:
    """Propagate unsaved session edits to rows sharing a canonical pattern.

    Only rows the user edited act as sources, and only rows without an edit are
    changed, so re-applying the result to itself changes nothing.

    Args:
        suggestions: Current suggestions for the batch
        edits: User edits so far, keyed by transaction id

    Returns:
        New list of suggestions
    """
    by_pattern: Dict[str, ClassificationEdit] = {}
    for suggestion in suggestions:
        edit = edits.get(suggestion.transaction.id)
        if edit is None:
            continue
        pattern = canonicalize(suggestion.transaction.description)
        # First edit in batch order wins for a pattern
        if pattern and pattern not in by_pattern:
            by_pattern[pattern] = edit

    result = []
    changed = 0
    for suggestion in suggestions:
        if suggestion.transaction.id in edits:
            result.append(suggestion)
            continue

        source = by_pattern.get(canonicalize(suggestion.transaction.description))
        if source is None:
            result.append(suggestion)
            continue

        changed += 1
        result.append(ClassificationSuggestion(
            transaction=suggestion.transaction,
            target_type=source.target_type,
            target_section=source.target_section,
            target_name=source.target_name or merchant_name(suggestion.transaction.description),
            confidence=Confidence.MEDIUM,
            match_type=MatchType.EXACT_PATTERN,
            goal_id=source.goal_id,
            from_session=True
        ))

    if changed:
        logger.info("Session edits propagated", extra={"changed": changed, "patterns": len(by_pattern)})
    return result
