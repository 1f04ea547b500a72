"""Paycheck routes: upcoming pay dates and paycheck config CRUD."""

from datetime import date

from aws_lambda_powertools import Logger

from app.models.entities import PaycheckConfig, PaycheckFrequency
from app.services import cash_flow, record_store, statements_analysis
from app.services.schedule import days_until
from app.utils import validation
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")

EDITABLE_FIELDS = ('name', 'frequency', 'amount', 'anchor_date', 'day_of_month')

FREQUENCIES = [f.value for f in PaycheckFrequency]


def _today() -> date:
    return date.today()


def _validated_fields(body: dict) -> dict:
    """Normalize editable fields. Raises ValueError on invalid values."""
    fields = {}
    for key in EDITABLE_FIELDS:
        if key not in body:
            continue
        value = body[key]
        if key == 'name':
            value = validation.text(value, 'name')
        elif key == 'frequency':
            if value not in FREQUENCIES:
                raise ValueError(f"frequency must be one of: {', '.join(FREQUENCIES)}")
        elif key == 'amount':
            value = validation.money(value, 'amount')
        elif key == 'anchor_date':
            value = validation.optional_date(value, 'anchor_date')
        elif key == 'day_of_month':
            value = validation.day_of_month(value)
        fields[key] = value
    return fields


def handle_next_paychecks() -> dict:
    """Next pay date per paycheck config, with the last matching deposit seen."""
    today = _today()
    store = record_store.get_store()
    transactions = record_store.load_transactions(store)

    upcoming = []
    for pay_date in cash_flow.next_paychecks(record_store.load_paychecks(store), today):
        entry = pay_date.to_dict()
        entry['days_until'] = days_until(pay_date.date, today)
        entry['last_deposit'] = statements_analysis.latest_paycheck_date(transactions, pay_date.name)
        upcoming.append(entry)

    return make_response(200, {'today': today, 'paychecks': upcoming})


def handle_list() -> dict:
    configs = record_store.load_paychecks(record_store.get_store())
    return make_response(200, {'paychecks': [c.to_dict() for c in configs]})


def handle_create(body: dict) -> dict:
    """Create a paycheck config.

    Args:
        body: name (required), frequency (biweekly, monthly or
            monthlyLastWorkingDay; default biweekly), amount, anchor_date
            (biweekly), day_of_month (monthly)

    Returns:
        201 response with the created config
    """
    try:
        fields = _validated_fields(body)
        if 'name' not in fields:
            raise ValueError("name is required")
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    fields.setdefault('frequency', PaycheckFrequency.BIWEEKLY.value)
    fields.setdefault('amount', '0')
    fields.setdefault('anchor_date', None)
    fields.setdefault('day_of_month', None)

    record = record_store.get_store().create(record_store.PAYCHECKS, fields)
    logger.info("Paycheck config created", extra={"paycheck_id": record['id'], "frequency": fields['frequency']})
    return make_response(201, PaycheckConfig.from_dict(record).to_dict())


def handle_update(paycheck_id: str, body: dict) -> dict:
    try:
        fields = _validated_fields(body)
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))
    if not fields:
        return error_response(400, 'bad_request', 'No editable fields provided')

    store = record_store.get_store()
    if store.get(record_store.PAYCHECKS, paycheck_id) is None:
        return error_response(404, 'not_found', f'Paycheck config not found: {paycheck_id}')

    record = store.update(record_store.PAYCHECKS, paycheck_id, fields)
    logger.info("Paycheck config updated", extra={"paycheck_id": paycheck_id, "fields": sorted(fields)})
    return make_response(200, PaycheckConfig.from_dict(record).to_dict())


def handle_delete(paycheck_id: str) -> dict:
    if not record_store.get_store().delete(record_store.PAYCHECKS, paycheck_id):
        return error_response(404, 'not_found', f'Paycheck config not found: {paycheck_id}')
    logger.info("Paycheck config deleted", extra={"paycheck_id": paycheck_id})
    return make_response(200, {'deleted': True})
