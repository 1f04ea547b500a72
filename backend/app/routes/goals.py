"""Goal routes."""

from aws_lambda_powertools import Logger

from app.models.entities import Goal
from app.services import record_store
from app.services.record_store import StoreError
from app.utils import validation
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")

EDITABLE_FIELDS = ('name', 'target_amount', 'current_amount', 'monthly_contribution')


def _validated_fields(body: dict) -> dict:
    """Normalize editable fields. Raises ValueError on invalid values."""
    fields = {}
    for key in EDITABLE_FIELDS:
        if key not in body:
            continue
        if key == 'name':
            fields[key] = validation.text(body[key], 'name')
        else:
            fields[key] = validation.money(body[key], key, positive=(key == 'target_amount'))
    return fields


def handle_list() -> dict:
    goals = record_store.load_goals(record_store.get_store())
    return make_response(200, {'goals': [g.to_dict() for g in goals]})


def handle_create(body: dict) -> dict:
    """Create a goal. Name and a positive target amount are required."""
    try:
        fields = _validated_fields(body)
        for required in ('name', 'target_amount'):
            if required not in fields:
                raise ValueError(f"{required} is required")
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    fields.setdefault('current_amount', '0')
    fields.setdefault('monthly_contribution', '0')

    record = record_store.get_store().create(record_store.GOALS, fields)
    logger.info("Goal created", extra={"goal_id": record['id']})
    return make_response(201, Goal.from_dict(record).to_dict())


def handle_update(goal_id: str, body: dict) -> dict:
    try:
        fields = _validated_fields(body)
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))
    if not fields:
        return error_response(400, 'bad_request', 'No editable fields provided')

    store = record_store.get_store()
    if store.get(record_store.GOALS, goal_id) is None:
        return error_response(404, 'not_found', f'Goal not found: {goal_id}')

    record = store.update(record_store.GOALS, goal_id, fields)
    logger.info("Goal updated", extra={"goal_id": goal_id, "fields": sorted(fields)})
    return make_response(200, Goal.from_dict(record).to_dict())


def handle_delete(goal_id: str) -> dict:
    """Delete a goal and unlink the statements that pointed at it.

    Returns:
        Response with the number of statements unlinked, and any unlink failures
    """
    store = record_store.get_store()
    if not store.delete(record_store.GOALS, goal_id):
        return error_response(404, 'not_found', f'Goal not found: {goal_id}')

    unlinked = 0
    failures = []
    for record in store.fetch_all(record_store.STATEMENTS, {'goal_id': goal_id}):
        try:
            store.update(record_store.STATEMENTS, record['id'], {'goal_id': None})
        except StoreError as e:
            failures.append({'id': record['id'], 'message': str(e)})
            continue
        unlinked += 1

    logger.info("Goal deleted", extra={"goal_id": goal_id, "unlinked": unlinked, "failed": len(failures)})
    return make_response(200, {'deleted': True, 'unlinked': unlinked, 'failures': failures})
