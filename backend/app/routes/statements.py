"""Statement routes: CSV import, clearing and analysis."""

import base64
import binascii
from collections import Counter
from datetime import date

from aws_lambda_powertools import Logger

from app.services import csv_processor, record_store, statements_analysis
from app.utils.http import error_response, make_response

logger = Logger(service="budget-routes")


def _today() -> date:
    return date.today()


def _csv_content(body: dict) -> str:
    """Get CSV text from a request body ('file' as text or 'body' as base64)."""
    if body.get('file'):
        return str(body['file'])
    if body.get('body'):
        try:
            return base64.b64decode(body['body'], validate=True).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            return str(body['body'])
    return ''


def handle_import(body: dict) -> dict:
    """Import statement rows from CSV.

    Args:
        body: {'file' or 'body', 'account', 'filename', 'replace_all'}

    Returns:
        Response with import stats
    """
    content = _csv_content(body)
    if not content:
        return error_response(400, 'bad_request', 'No file content provided')

    result = csv_processor.parse_statement_csv(content, account=body.get('account'), source_file=body.get('filename'))
    if result.errors and not result.transactions:
        return error_response(400, 'bad_request', 'CSV parsing errors', errors=result.errors)

    store = record_store.get_store()
    if body.get('replace_all', False):
        store.delete_all(record_store.STATEMENTS)
        existing = Counter()
    else:
        # Skip only as many identical rows as are already stored
        existing = Counter((t.date, t.amount, t.description) for t in record_store.load_transactions(store))

    stats = {'added': 0, 'skipped': 0}
    for transaction in result.transactions:
        key = (transaction.date, transaction.amount, transaction.description)
        if existing[key] > 0:
            existing[key] -= 1
            stats['skipped'] += 1
            continue
        fields = transaction.to_dict()
        fields.pop('id')
        store.create(record_store.STATEMENTS, fields)
        stats['added'] += 1

    logger.info("Statements imported", extra={"source_file": body.get('filename'), **stats})
    return make_response(200, {
        'stats': stats,
        'errors': result.errors,
        'warnings': result.warnings
    })


def handle_clear() -> dict:
    """Delete every imported statement row."""
    deleted = record_store.get_store().delete_all(record_store.STATEMENTS)
    return make_response(200, {'deleted': deleted})


def handle_analysis() -> dict:
    """Suggested paychecks, bills and auto-transfers from imported statements."""
    today = _today()
    transactions = record_store.load_transactions(record_store.get_store())
    return make_response(200, {
        'paychecks': [p.to_record() for p in statements_analysis.suggest_paychecks(transactions)],
        'bills': [b.to_record() for b in statements_analysis.suggest_bills(transactions)],
        'auto_transfers': [t.to_record() for t in statements_analysis.suggest_auto_transfers(transactions)],
        'paycheck_deposits_this_month': statements_analysis.paycheck_deposits_in_month(
            transactions, today.year, today.month
        )
    })
