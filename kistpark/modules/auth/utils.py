import logging
from functools import wraps

from flask import g, jsonify, request

from ...core.config import get_config_value
from ...core.logging_service import LoggingService
from . import tokens
from .database import UserDatabase

logger = logging.getLogger(__name__)


def _unauthorized(message):
    # tokenExpired tells the admin client to drop its session
    return jsonify({'message': message, 'tokenExpired': True}), 401


def get_bearer_token():
    scheme, _, token = request.headers.get('Authorization', '').partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def authenticate():
    """Verify the bearer token and load the caller's account.

    Sets g.current_user (token claims) and g.current_account (users row).
    Returns an error response, or None when the caller may proceed.
    """
    token = get_bearer_token()
    if not token:
        return _unauthorized('Access denied. No token provided.')

    try:
        claims = tokens.verify_id_token(token)
    except tokens.TokenExpiredError:
        return _unauthorized('Token expired')
    except tokens.TokenError as e:
        logger.info(f"Rejected bearer token: {e}")
        LoggingService.log_security_event('Invalid bearer token', {'reason': str(e)})
        return _unauthorized('Invalid token')

    g.current_user = claims
    email = claims.get('email')
    g.current_account = UserDatabase.get_user_by_email(email) if email else None

    if get_config_value('ENFORCE_ALLOW_LIST'):
        account = g.current_account
        if not account or not account['is_allowed']:
            LoggingService.log_security_event('Blocked user outside the allow-list', {'email': email})
            return jsonify({'message': 'User is not allowed to access the system'}), 403

    return None


def require_auth(f):
    """Decorator to require a valid Google ID token from an allowed user"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        error = authenticate()
        if error:
            return error
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Decorator for allow-list management routes"""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        error = authenticate()
        if error:
            return error
        account = g.get('current_account')
        if not account or not account['is_admin']:
            return jsonify({'message': 'Admin access required'}), 403
        return f(*args, **kwargs)

    return decorated_function
