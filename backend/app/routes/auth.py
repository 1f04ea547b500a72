"""Authentication routes."""

from app.utils.auth import authenticate, require_auth
from app.utils.http import error_response, make_response


def handle_login(body: dict) -> dict:
    """Handle login request.

    Args:
        body: Request body with 'password' field

    Returns:
        Response dict with token or error
    """
    password = body.get('password', '')

    if not password:
        return error_response(400, 'bad_request', 'Password required')

    result = authenticate(password)

    if result is None:
        return error_response(401, 'unauthorized', 'Invalid password')

    token, role, expires_at = result

    return make_response(200, {
        'token': token,
        'role': role,
        'expires_at': expires_at.isoformat()
    })


def handle_verify(headers: dict) -> dict:
    """Handle token verification request."""
    payload = require_auth(headers)

    if payload is None:
        return error_response(401, 'unauthorized', 'Invalid or expired token')

    return make_response(200, {
        'valid': True,
        'role': payload.get('role'),
        'expires_at': payload.get('exp')
    })
