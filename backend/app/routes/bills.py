"""Bill routes: obligation status, create/edit/delete and due-date refresh."""

from datetime import date

from aws_lambda_powertools import Logger

from app.models.entities import Frequency, ListType, RecurringObligation, TargetSection
from app.services import bill_cycles, cash_flow, categorizer, record_store
from app.services.record_store import StoreError
from app.utils import validation
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")

# Fields the user may edit
EDITABLE_FIELDS = ('name', 'frequency', 'amount', 'next_due', 'account', 'list_type', 'tenant_paid')


def _today() -> date:
    return date.today()


def _suggestions(store):
    return categorizer.suggest(record_store.load_transactions(store), record_store.load_rules(store))


def handle_list() -> dict:
    """Obligations with derived state, flagged when due in the upcoming pay period."""
    today = _today()
    store = record_store.get_store()
    obligations = record_store.load_obligations(store)

    upcoming = cash_flow.next_paychecks(record_store.load_paychecks(store), today)
    pay_period_end = upcoming[0].date if upcoming else None
    if pay_period_end is not None:
        obligations = cash_flow.mark_in_this_paycheck(obligations, pay_period_end)

    statuses = bill_cycles.statuses_for(obligations, _suggestions(store), today)
    return make_response(200, {
        'bills': [s.to_dict() for s in statuses],
        'pay_period_end': pay_period_end,
        'predicted_need': cash_flow.predicted_need_by_account(obligations).rounded().to_dict()
    })


def _validated_fields(body: dict) -> dict:
    """Normalize editable fields. Raises ValueError on invalid values."""
    fields = {}
    for key in EDITABLE_FIELDS:
        if key not in body:
            continue
        value = body[key]
        if key == 'name':
            value = validation.text(value, 'name')
        elif key == 'amount':
            value = validation.money(value, 'amount')
        elif key == 'frequency':
            value = Frequency.parse(value).value
        elif key == 'next_due':
            value = validation.optional_date(value, 'next_due')
        elif key == 'account':
            section = TargetSection.parse(value)
            if section is None:
                raise ValueError(f"Unknown account: {value}")
            value = section.value
        elif key == 'list_type':
            value = ListType.parse(value).value
        elif key == 'tenant_paid':
            value = validation.flag(value)
        fields[key] = value
    return fields


def handle_create(body: dict) -> dict:
    """Create an obligation. Name and account are required."""
    try:
        fields = _validated_fields(body)
        for required in ('name', 'account'):
            if required not in fields:
                raise ValueError(f"{required} is required")
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    fields.setdefault('frequency', Frequency.MONTHLY.value)
    fields.setdefault('amount', '0')
    fields.setdefault('list_type', ListType.BILLS.value)
    fields.setdefault('next_due', None)

    record = record_store.get_store().create(record_store.BILLS, fields)
    logger.info("Bill created", extra={"bill_id": record['id'], "bill_name": record['name']})
    return make_response(201, RecurringObligation.from_dict(record).to_dict())


def handle_update(bill_id: str, body: dict) -> dict:
    """Update an obligation's editable fields."""
    try:
        fields = _validated_fields(body)
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))
    if not fields:
        return error_response(400, 'bad_request', 'No editable fields provided')

    store = record_store.get_store()
    if store.get(record_store.BILLS, bill_id) is None:
        return error_response(404, 'not_found', f'Bill not found: {bill_id}')

    record = store.update(record_store.BILLS, bill_id, fields)
    logger.info("Bill updated", extra={"bill_id": bill_id, "fields": sorted(fields)})
    return make_response(200, RecurringObligation.from_dict(record).to_dict())


def handle_refresh_due() -> dict:
    """Advance due dates of obligations whose current cycle is paid."""
    today = _today()
    store = record_store.get_store()
    updates = bill_cycles.due_date_updates(record_store.load_obligations(store), _suggestions(store), today)

    updated = []
    failures = []
    for obligation, next_due in updates:
        try:
            store.update(record_store.BILLS, obligation.id, {'next_due': next_due.isoformat()})
        except StoreError as e:
            failures.append({'id': obligation.id, 'message': str(e)})
            continue
        updated.append({'id': obligation.id, 'name': obligation.name, 'next_due': next_due})

    logger.info("Due dates refreshed", extra={"updated": len(updated), "failed": len(failures)})
    return make_response(200, {'updated': updated, 'failures': failures})


def handle_delete(bill_id: str) -> dict:
    if not record_store.get_store().delete(record_store.BILLS, bill_id):
        return error_response(404, 'not_found', f'Bill not found: {bill_id}')
    logger.info("Bill deleted", extra={"bill_id": bill_id})
    return make_response(200, {'deleted': True})


def handle_clear_due(query: dict) -> dict:
    """Stop date-tracking every obligation with the given name.

    Args:
        query: Query parameters (name required)

    Returns:
        Response with the number of obligations cleared
    """
    name = (query.get('name') or '').strip()
    if not name:
        return error_response(400, 'bad_request', 'name query parameter required')

    store = record_store.get_store()
    matching = [o for o in record_store.load_obligations(store) if o.name.lower() == name.lower()]
    if not matching:
        return error_response(404, 'not_found', f'No bills found with name "{name}"')

    for obligation in matching:
        store.update(record_store.BILLS, obligation.id, {'next_due': None})
    logger.info("Due dates cleared", extra={"bill_name": name, "updated": len(matching)})
    return make_response(200, {'updated': len(matching)})
