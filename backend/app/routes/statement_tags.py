"""Statement tagging routes: review queue, saving classifications, session re-suggestion."""

from datetime import date

from aws_lambda_powertools import Logger

from app.models.entities import ClassificationEdit
from app.services import categorizer, record_store, tagging
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")


def _today() -> date:
    return date.today()


def _month_filter(month: str):
    """Parse an optional YYYY-MM filter. Raises ValueError when malformed."""
    if not month:
        return None
    year_str, _, month_str = month.partition('-')
    year, month_num = int(year_str), int(month_str)
    if not 1 <= month_num <= 12:
        raise ValueError(f"Invalid month: {month}")
    return year, month_num


def handle_get_queue(query: dict) -> dict:
    """Review queue with suggestions plus the goals and bills to pick from.

    Args:
        query: Query parameters (month=YYYY-MM optional)

    Returns:
        Response with suggestions, goals and bill names
    """
    try:
        month = _month_filter(query.get('month', ''))
    except ValueError:
        return error_response(400, 'bad_request', 'month must be YYYY-MM')

    store = record_store.get_store()
    transactions = record_store.load_transactions(store)
    if month is not None:
        transactions = [t for t in transactions if t.date and (t.date.year, t.date.month) == month]
    rules = record_store.load_rules(store)

    suggestions = categorizer.review_queue(transactions, rules)
    obligations = record_store.load_obligations(store)

    return make_response(200, {
        'suggestions': [s.to_dict() for s in suggestions],
        'count': len(suggestions),
        'goals': [g.to_dict() for g in record_store.load_goals(store)],
        'bills': sorted({o.name for o in obligations if o.name})
    })


def _parse_edits(body: dict, key: str):
    items = body.get(key)
    if not isinstance(items, list):
        raise ValueError(f"'{key}' must be a list")
    edits = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValueError(f"{key}[{index}] must be an object")
        edits.append(ClassificationEdit.from_dict(item))
    return edits


def handle_save(body: dict) -> dict:
    """Persist a batch of classifications (partial success allowed)."""
    try:
        edits = _parse_edits(body, 'items')
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    result = tagging.classify_batch(record_store.get_store(), edits, _today())
    return make_response(200, result.to_dict())


def handle_resuggest(body: dict) -> dict:
    """Re-suggest the review queue from unsaved session edits.

    Args:
        body: {'edits': [classification edit, ...]}

    Returns:
        Response with updated suggestions
    """
    try:
        edits = _parse_edits(body, 'edits')
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    store = record_store.get_store()
    rules = record_store.load_rules(store)
    current = categorizer.review_queue(record_store.load_transactions(store), rules)
    by_id = {e.transaction_id: e for e in edits if e.transaction_id}
    updated = categorizer.resuggest_from_session(current, by_id)

    changed = sum(1 for s in updated if s.from_session)
    logger.info("Session re-suggestion applied", extra={"edits": len(by_id), "changed": changed})
    return make_response(200, {
        'suggestions': [s.to_dict() for s in updated],
        'changed': changed
    })


def handle_reset() -> dict:
    """Delete every classification rule."""
    deleted = tagging.reset_rules(record_store.get_store())
    return make_response(200, {'deleted': deleted})
