"""Authentication utilities."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import bcrypt
import jwt
from aws_lambda_powertools import Logger

from app.utils.settings import Settings

logger = Logger(service="budget-auth")

# Token expiration time
TOKEN_EXPIRY_HOURS = 24

OWNER = 'owner'
VIEWER = 'viewer'


def hash_password(password: str) -> str:
    """Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        Bcrypt hash string
    """
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash.

    A malformed hash never matches.
    """
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Configured password hash is malformed")
        return False


def get_jwt_secret(settings: Optional[Settings] = None) -> str:
    """Get the JWT signing secret."""
    settings = settings or Settings.from_env()
    if not settings.jwt_secret:
        # Fallback for local development
        return 'dev-secret-do-not-use-in-production'
    return settings.jwt_secret


def create_token(role: str, settings: Optional[Settings] = None) -> Tuple[str, datetime]:
    """Create a JWT token.

    Args:
        role: User role ('owner' or 'viewer')
        settings: Settings holding the signing secret

    Returns:
        Tuple of (token string, expiration datetime)
    """
    expires_at = datetime.now(timezone.utc) + timedelta(hours=TOKEN_EXPIRY_HOURS)
    payload = {
        'role': role,
        'exp': expires_at,
        'iat': datetime.now(timezone.utc)
    }
    token = jwt.encode(payload, get_jwt_secret(settings), algorithm='HS256')
    return token, expires_at


def verify_token(token: str, settings: Optional[Settings] = None) -> Optional[dict]:
    """Decode a JWT token, or None if invalid/expired."""
    try:
        return jwt.decode(token, get_jwt_secret(settings), algorithms=['HS256'])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def authenticate(password: str, settings: Optional[Settings] = None) -> Optional[Tuple[str, str, datetime]]:
    """Authenticate with a password and return token.

    Args:
        password: Plain text password
        settings: Settings holding the password hashes

    Returns:
        Tuple of (token, role, expires_at), or None if invalid
    """
    settings = settings or Settings.from_env()

    if verify_password(password, settings.owner_password_hash):
        token, expires_at = create_token(OWNER, settings)
        return token, OWNER, expires_at

    # Viewer password is read-only access
    if verify_password(password, settings.viewer_password_hash):
        token, expires_at = create_token(VIEWER, settings)
        return token, VIEWER, expires_at

    logger.info("Login rejected")
    return None


def require_auth(headers: dict, settings: Optional[Settings] = None) -> Optional[dict]:
    """Check the authorization header and return the token payload, or None."""
    headers = headers or {}
    auth_header = headers.get('authorization', headers.get('Authorization', ''))
    if not auth_header.startswith('Bearer '):
        return None

    token = auth_header[7:]  # Remove 'Bearer ' prefix
    return verify_token(token, settings)


def require_owner(headers: dict, settings: Optional[Settings] = None) -> bool:
    """True if the request carries an owner token."""
    payload = require_auth(headers, settings)
    return payload is not None and payload.get('role') == OWNER
