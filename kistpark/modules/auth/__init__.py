"""
Auth Module
===========

Google sign-in for the admin console.

Provides:
- Bearer ID-token verification against Google's signing keys
- require_auth / require_admin decorators (allow-list + admin flag)
- /api/v1/users: first-login registration and user lookup
- /api/v1/user-management: admin control of the allow-list
- /api/v1/test-auth: token smoke test
"""

from flask import Blueprint

auth_bp = Blueprint('auth', __name__, url_prefix='/api/v1')

users_bp = Blueprint('users', __name__, url_prefix='/api/v1/users')

user_management_bp = Blueprint('user_management', __name__, url_prefix='/api/v1/user-management')

from . import routes

__all__ = ['auth_bp', 'users_bp', 'user_management_bp']
