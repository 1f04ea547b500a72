"""API Gateway response helpers."""

import json
from typing import Any

from app.utils.parsing import json_default

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type,Authorization',
    'Access-Control-Allow-Methods': 'GET,POST,PUT,PATCH,DELETE,OPTIONS'
}


def make_response(status_code: int, body: Any, content_type: str = 'application/json') -> dict:
    """Create API Gateway response.

    Args:
        status_code: HTTP status code
        body: Response body (JSON-encoded if dict/list)
        content_type: Content-Type header

    Returns:
        API Gateway response dict
    """
    headers = {'Content-Type': content_type}
    headers.update(CORS_HEADERS)

    if isinstance(body, (dict, list)):
        body = json.dumps(body, default=json_default)

    return {
        'statusCode': status_code,
        'headers': headers,
        'body': body
    }


def error_response(status_code: int, error: str, message: str, **extra: Any) -> dict:
    """Create error response with {error, message} plus any extra fields."""
    body = {'error': error, 'message': message}
    body.update(extra)
    return make_response(status_code, body)
