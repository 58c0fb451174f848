"""
Google ID token verification.

Tokens are RS256 JWTs signed with one of Google's rotating keys; the key
set is fetched from GOOGLE_CERTS_URL and cached for
GOOGLE_CERTS_CACHE_SECONDS.
"""

import logging
import threading
import time

import requests
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import ExpiredTokenError, JoseError

from ...core.config import get_config_value

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = ['accounts.google.com', 'https://accounts.google.com']

jwt = JsonWebToken(['RS256'])

_certs_cache = {'keys': None, 'fetched_at': 0.0}
_certs_lock = threading.Lock()


class TokenError(Exception):
    """Token is missing, malformed, or fails verification"""


class TokenExpiredError(TokenError):
    """Token signature is fine but exp has passed"""


def fetch_google_certs(force=False):
    """Google's public JWKS, cached between calls"""
    ttl = int(get_config_value('GOOGLE_CERTS_CACHE_SECONDS', 3600))
    with _certs_lock:
        fresh = _certs_cache['keys'] and time.time() - _certs_cache['fetched_at'] < ttl
        if fresh and not force:
            return _certs_cache['keys']

        response = requests.get(get_config_value('GOOGLE_CERTS_URL'), timeout=10)
        response.raise_for_status()
        _certs_cache['keys'] = response.json()
        _certs_cache['fetched_at'] = time.time()
        return _certs_cache['keys']


def clear_certs_cache():
    with _certs_lock:
        _certs_cache['keys'] = None
        _certs_cache['fetched_at'] = 0.0


def verify_id_token(token, audience=None):
    """Verify a Google ID token and return its claims as a dict.

    Raises:
        TokenExpiredError: exp is in the past.
        TokenError: anything else (bad signature, issuer, audience, format).
    """
    audience = audience or get_config_value('GOOGLE_CLIENT_ID')
    if not audience:
        logger.error("GOOGLE_CLIENT_ID is not configured, rejecting token")
        raise TokenError('Google client ID is not configured')

    try:
        key_set = JsonWebKey.import_key_set(fetch_google_certs())
    except (requests.RequestException, ValueError, JoseError) as e:
        logger.error(f"Could not load Google signing keys: {e}")
        raise TokenError('Signing keys unavailable') from e

    claims_options = {
        'iss': {'essential': True, 'values': GOOGLE_ISSUERS},
        'aud': {'essential': True, 'value': audience},
        'exp': {'essential': True},
    }

    try:
        claims = jwt.decode(token, key_set, claims_options=claims_options)
        claims.validate()
    except ExpiredTokenError as e:
        raise TokenExpiredError('Token expired') from e
    except (JoseError, ValueError, TypeError) as e:
        raise TokenError(f'Invalid token: {e}') from e

    return dict(claims)
