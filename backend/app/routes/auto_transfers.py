"""Auto-transfer routes: list, create, edit (including the transferred flag) and delete."""

from aws_lambda_powertools import Logger

from app.models.entities import AutoTransfer, Frequency
from app.services import record_store
from app.utils import validation
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")

# Fields the user may edit
EDITABLE_FIELDS = ('what_for', 'frequency', 'account', 'date', 'amount', 'transferred_this_cycle')


def _validated_fields(body: dict) -> dict:
    """Normalize editable fields. Raises ValueError on invalid values."""
    fields = {}
    for key in EDITABLE_FIELDS:
        if key not in body:
            continue
        value = body[key]
        if key == 'what_for':
            value = validation.text(value, 'what_for')
        elif key == 'account':
            value = validation.text(value, 'account')
        elif key == 'frequency':
            value = Frequency.parse(value).value
        elif key == 'date':
            value = validation.optional_date(value, 'date')
        elif key == 'amount':
            value = validation.money(value, 'amount')
        elif key == 'transferred_this_cycle':
            value = validation.flag(value)
        fields[key] = value
    return fields


def handle_list() -> dict:
    transfers = record_store.load_transfers(record_store.get_store())
    return make_response(200, {'auto_transfers': [t.to_dict() for t in transfers]})


def handle_create(body: dict) -> dict:
    """Create an auto-transfer.

    Args:
        body: what_for (required), frequency, account (destination label,
            default "Bills"), date (anchor), amount

    Returns:
        201 response with the created transfer
    """
    try:
        fields = _validated_fields(body)
        if 'what_for' not in fields:
            raise ValueError("what_for is required")
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))

    fields.setdefault('frequency', Frequency.MONTHLY.value)
    fields.setdefault('account', 'Bills')
    fields.setdefault('date', None)
    fields.setdefault('amount', '0')
    fields.setdefault('transferred_this_cycle', False)

    record = record_store.get_store().create(record_store.AUTO_TRANSFERS, fields)
    logger.info("Auto-transfer created", extra={"transfer_id": record['id']})
    return make_response(201, AutoTransfer.from_dict(record).to_dict())


def handle_update(transfer_id: str, body: dict) -> dict:
    """Update an auto-transfer's editable fields."""
    try:
        fields = _validated_fields(body)
    except ValueError as e:
        return error_response(400, 'bad_request', str(e))
    if not fields:
        return error_response(400, 'bad_request', 'No editable fields provided')

    store = record_store.get_store()
    if store.get(record_store.AUTO_TRANSFERS, transfer_id) is None:
        return error_response(404, 'not_found', f'Auto-transfer not found: {transfer_id}')

    record = store.update(record_store.AUTO_TRANSFERS, transfer_id, fields)
    logger.info("Auto-transfer updated", extra={"transfer_id": transfer_id, "fields": sorted(fields)})
    return make_response(200, AutoTransfer.from_dict(record).to_dict())


def handle_delete(transfer_id: str) -> dict:
    if not record_store.get_store().delete(record_store.AUTO_TRANSFERS, transfer_id):
        return error_response(404, 'not_found', f'Auto-transfer not found: {transfer_id}')
    logger.info("Auto-transfer deleted", extra={"transfer_id": transfer_id})
    return make_response(200, {'deleted': True})
