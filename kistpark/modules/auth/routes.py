"""
Auth Routes
===========

- GET    /api/v1/test-auth                  token smoke test (auth)
- POST   /api/v1/users                      register or fetch the signed-in user
- GET    /api/v1/users/<id>                 access flags for one user
- GET    /api/v1/user-management            list users (admin)
- PATCH  /api/v1/user-management/<id>       change isAllowed / isAdmin (admin)
- DELETE /api/v1/user-management/<id>       remove a user (admin)
"""

import logging
import sqlite3

from flask import g, jsonify, request

from ...core.logging_service import db_log
from ...core.query import paginated_response, parse_list_params
from ...core.validators import ValidationError, parse_bool, parse_id, validate_email
from . import auth_bp, users_bp, user_management_bp
from .database import UserDatabase
from .utils import require_admin, require_auth

logger = logging.getLogger(__name__)


@auth_bp.route('/test-auth', methods=['GET'])
@require_auth
def test_auth():
    return jsonify({'message': 'Authentication working', 'user': g.current_user})


# ===== Users =====

@users_bp.route('', methods=['POST'])
@users_bp.route('/', methods=['POST'])
def create_user():
    """Called by the admin client right after Google sign-in"""
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    if isinstance(email, str):
        email = email.strip()

    if email is None or email == '':
        return jsonify({'message': 'Email is required'}), 400
    if not isinstance(email, str) or not validate_email(email):
        return jsonify({'message': 'Invalid email format'}), 400

    try:
        user, created = UserDatabase.find_or_create(email, name=data.get('name'), avatar=data.get('avatar'))
        if created:
            logger.info(f"Registered new user {user['email']}")
            db_log('INFO', 'auth', 'New user registered', {'email': user['email'], 'isAllowed': bool(user['is_allowed'])})
        return jsonify(UserDatabase.to_json(user)), 200
    except sqlite3.Error as e:
        logger.error(f"Database error in create_user: {e}")
        return jsonify({'message': 'Error creating user', 'error': str(e)}), 500


@users_bp.route('/<user_id>', methods=['GET'])
def get_user(user_id):
    try:
        user = UserDatabase.get_user_by_id(parse_id(user_id, 'user'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except sqlite3.Error as e:
        logger.error(f"Database error in get_user: {e}")
        return jsonify({'message': 'Error fetching user', 'error': str(e)}), 500

    if not user:
        return jsonify({'message': 'User not found'}), 404

    return jsonify({
        '_id': user['id'],
        'isAllowed': bool(user['is_allowed']),
        'isAdmin': bool(user['is_admin']),
        'email': user['email'],
        'name': user['name'],
    })


# ===== User Management =====

@user_management_bp.route('', methods=['GET'])
@user_management_bp.route('/', methods=['GET'])
@require_admin
def list_users():
    try:
        list_params = parse_list_params(request.args, UserDatabase.SORTABLE)
        users, total = UserDatabase.list_users(
            list_params,
            name_like=request.args.get('name_like'),
            email_like=request.args.get('email_like'),
        )
        return paginated_response([UserDatabase.to_json(user) for user in users], total)
    except sqlite3.Error as e:
        logger.error(f"Database error in list_users: {e}")
        return jsonify({'message': 'Error fetching users', 'error': str(e)}), 500


@user_management_bp.route('/<user_id>', methods=['PATCH'])
@require_admin
def update_user(user_id):
    data = request.get_json(silent=True) or {}
    try:
        user_id = parse_id(user_id, 'user')
        is_allowed = parse_bool(data['isAllowed'], 'isAllowed') if 'isAllowed' in data else None
        is_admin = parse_bool(data['isAdmin'], 'isAdmin') if 'isAdmin' in data else None
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400

    if is_allowed is None and is_admin is None:
        return jsonify({'message': 'Nothing to update, send isAllowed or isAdmin'}), 400

    try:
        user = UserDatabase.update_user(user_id, is_allowed=is_allowed, is_admin=is_admin)
    except sqlite3.Error as e:
        logger.error(f"Database error in update_user: {e}")
        return jsonify({'message': 'Error updating user', 'error': str(e)}), 500

    if not user:
        return jsonify({'message': 'User not found'}), 404

    db_log('INFO', 'auth', 'User access updated', {
        'user': user['email'], 'isAllowed': bool(user['is_allowed']), 'isAdmin': bool(user['is_admin'])
    })
    return jsonify(UserDatabase.to_json(user))


@user_management_bp.route('/<user_id>', methods=['DELETE'])
@require_admin
def delete_user(user_id):
    try:
        deleted = UserDatabase.delete_user(parse_id(user_id, 'user'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except sqlite3.Error as e:
        logger.error(f"Database error in delete_user: {e}")
        return jsonify({'message': 'Error deleting user', 'error': str(e)}), 500

    if not deleted:
        return jsonify({'message': 'User not found'}), 404

    db_log('INFO', 'auth', 'User deleted', {'user_id': user_id})
    return jsonify({'message': 'User deleted successfully'})
