"""Main Lambda handler for the household budget API."""

import json
from typing import Any

from aws_lambda_powertools import Logger

from app.routes import auth
from app.services.record_store import StoreError
from app.utils.auth import require_auth, require_owner
from app.utils.http import error_response, make_response

logger = Logger(service="budget-api")


def handler(event: dict, context: Any) -> dict:
    """Lambda handler for API Gateway events.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    try:
        # Parse request
        http_method = event.get('requestContext', {}).get('http', {}).get('method', 'GET')
        path = event.get('rawPath', event.get('path', '/'))
        headers = event.get('headers', {}) or {}
        body_str = event.get('body', '{}')

        # Handle CORS preflight
        if http_method == 'OPTIONS':
            return make_response(200, '')

        # Parse body
        try:
            body = json.loads(body_str) if body_str else {}
        except json.JSONDecodeError:
            return error_response(400, 'bad_request', 'Body must be JSON')
        if not isinstance(body, dict):
            return error_response(400, 'bad_request', 'Body must be a JSON object')

        # Query parameters
        query_params = event.get('queryStringParameters', {}) or {}

        return route_request(http_method, path, headers, body, query_params)

    except StoreError as e:
        return error_response(
            502, 'store_unavailable', str(e),
            operation=e.operation, collection=e.collection, record_id=e.record_id
        )
    except Exception as e:
        logger.exception("Unhandled error")
        return error_response(500, 'internal_error', str(e))


def route_request(method: str, path: str, headers: dict, body: dict, query: dict) -> dict:
    """Route request to appropriate handler.

    Args:
        method: HTTP method
        path: Request path
        headers: Request headers
        body: Request body
        query: Query parameters

    Returns:
        API Gateway response
    """
    # Remove /prod prefix if present (API Gateway stage)
    if path.startswith('/prod'):
        path = path[5:]

    # Auth routes (no authentication required)
    if path == '/api/auth/login' and method == 'POST':
        return auth.handle_login(body)

    if path == '/api/auth/verify' and method == 'GET':
        return auth.handle_verify(headers)

    # All other routes require authentication
    auth_payload = require_auth(headers)
    if auth_payload is None:
        return error_response(401, 'unauthorized', 'Authentication required')

    # Viewers may only read
    if method != 'GET' and not require_owner(headers):
        return error_response(403, 'forbidden', 'Owner access required')

    # Import route handlers (lazy to avoid circular imports)
    from app.routes import auto_transfers, bills, goals, money_status, paychecks, statement_tags, statements

    # Statement tags
    if path == '/api/statement-tags' and method == 'GET':
        return statement_tags.handle_get_queue(query)

    if path == '/api/statement-tags' and method == 'POST':
        return statement_tags.handle_save(body)

    if path == '/api/statement-tags/resuggest' and method == 'POST':
        return statement_tags.handle_resuggest(body)

    if path == '/api/statement-tags/reset' and method == 'POST':
        return statement_tags.handle_reset()

    # Money status
    if path == '/api/money-status' and method == 'GET':
        return money_status.handle_get_money_status(query)

    # Bills
    if path == '/api/bills' and method == 'GET':
        return bills.handle_list()

    if path == '/api/bills' and method == 'POST':
        return bills.handle_create(body)

    if path == '/api/bills/refresh-due' and method == 'POST':
        return bills.handle_refresh_due()

    if path == '/api/bills/clear-due' and method == 'PATCH':
        return bills.handle_clear_due(query)

    if path.startswith('/api/bills/') and method == 'PATCH':
        bill_id = path.split('/')[-1]
        return bills.handle_update(bill_id, body)

    if path.startswith('/api/bills/') and method == 'DELETE':
        bill_id = path.split('/')[-1]
        return bills.handle_delete(bill_id)

    # Auto-transfers
    if path == '/api/auto-transfers' and method == 'GET':
        return auto_transfers.handle_list()

    if path == '/api/auto-transfers' and method == 'POST':
        return auto_transfers.handle_create(body)

    if path.startswith('/api/auto-transfers/') and method == 'PATCH':
        transfer_id = path.split('/')[-1]
        return auto_transfers.handle_update(transfer_id, body)

    if path.startswith('/api/auto-transfers/') and method == 'DELETE':
        transfer_id = path.split('/')[-1]
        return auto_transfers.handle_delete(transfer_id)

    # Paychecks
    if path == '/api/paychecks/next' and method == 'GET':
        return paychecks.handle_next_paychecks()

    if path == '/api/paychecks' and method == 'GET':
        return paychecks.handle_list()

    if path == '/api/paychecks' and method == 'POST':
        return paychecks.handle_create(body)

    if path.startswith('/api/paychecks/') and method == 'PATCH':
        paycheck_id = path.split('/')[-1]
        return paychecks.handle_update(paycheck_id, body)

    if path.startswith('/api/paychecks/') and method == 'DELETE':
        paycheck_id = path.split('/')[-1]
        return paychecks.handle_delete(paycheck_id)

    # Goals
    if path == '/api/goals' and method == 'GET':
        return goals.handle_list()

    if path == '/api/goals' and method == 'POST':
        return goals.handle_create(body)

    if path.startswith('/api/goals/') and method == 'PATCH':
        goal_id = path.split('/')[-1]
        return goals.handle_update(goal_id, body)

    if path.startswith('/api/goals/') and method == 'DELETE':
        goal_id = path.split('/')[-1]
        return goals.handle_delete(goal_id)

    # Statements
    if path == '/api/statements/import' and method == 'POST':
        return statements.handle_import(body)

    if path == '/api/statements' and method == 'DELETE':
        return statements.handle_clear()

    if path == '/api/statements/analysis' and method == 'GET':
        return statements.handle_analysis()

    # Not found
    return error_response(404, 'not_found', f'Route not found: {method} {path}')
