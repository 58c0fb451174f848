"""
Categories Routes
=================

- GET    /api/v1/categories          all categories, by name
- GET    /api/v1/categories/<id>
- POST   /api/v1/categories          {category}
- PATCH  /api/v1/categories/<id>     {category}  (PUT accepted)
- DELETE /api/v1/categories/<id>

All routes require a signed-in, allowed user.
"""

import logging
import sqlite3

from flask import jsonify, request

from ...core.database import Database, get_db_path, now_iso
from ...core.logging_service import db_log
from ...core.query import paginated_response
from ...core.validators import ValidationError, clean_text, parse_id
from ..auth.utils import require_auth
from . import categories_bp

logger = logging.getLogger(__name__)


class DuplicateCategoryError(Exception):
    pass


# ===== Database Helper Functions =====

def get_db_config():
    return get_db_path('CONTENT_DB')


def init_categories_db():
    """Initialize the categories table"""
    content_db = get_db_config()
    Database.ensure_parent_dir(content_db)
    with Database.connection(content_db) as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                category TEXT NOT NULL UNIQUE COLLATE NOCASE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')


def category_to_json(row):
    return {
        '_id': row['id'],
        'category': row['category'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


def get_all_categories_db():
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute('SELECT * FROM categories ORDER BY category COLLATE NOCASE ASC, id ASC').fetchall()
        return [category_to_json(row) for row in rows]


def get_category_db(category_id):
    with Database.connection(get_db_config()) as conn:
        row = conn.execute('SELECT * FROM categories WHERE id = ?', (category_id,)).fetchone()
        return category_to_json(row) if row else None


def create_category_db(name):
    timestamp = now_iso()
    try:
        with Database.connection(get_db_config()) as conn:
            cursor = conn.execute(
                'INSERT INTO categories (category, created_at, updated_at) VALUES (?, ?, ?)',
                (name, timestamp, timestamp)
            )
            category_id = cursor.lastrowid
    except sqlite3.IntegrityError as e:
        raise DuplicateCategoryError(name) from e
    return get_category_db(category_id)


def update_category_db(category_id, name):
    try:
        with Database.connection(get_db_config()) as conn:
            cursor = conn.execute(
                'UPDATE categories SET category = ?, updated_at = ? WHERE id = ?',
                (name, now_iso(), category_id)
            )
            if cursor.rowcount == 0:
                return None
    except sqlite3.IntegrityError as e:
        raise DuplicateCategoryError(name) from e
    return get_category_db(category_id)


def delete_category_db(category_id):
    """Delete a category; highlights pointing at it fall back to no category"""
    with Database.connection(get_db_config()) as conn:
        cursor = conn.execute('DELETE FROM categories WHERE id = ?', (category_id,))
        return cursor.rowcount > 0


# ===== Routes =====

@categories_bp.route('', methods=['GET'])
@categories_bp.route('/', methods=['GET'])
@require_auth
def get_categories():
    try:
        categories = get_all_categories_db()
        return paginated_response(categories, len(categories))
    except Exception as e:
        logger.error(f"Error fetching categories: {e}")
        return jsonify({'message': 'Error fetching categories', 'error': str(e)}), 500


@categories_bp.route('/<category_id>', methods=['GET'])
@require_auth
def get_category(category_id):
    try:
        category = get_category_db(parse_id(category_id, 'category'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching category: {e}")
        return jsonify({'message': 'Error fetching category', 'error': str(e)}), 500

    if not category:
        return jsonify({'message': 'Category not found'}), 404
    return jsonify(category)


@categories_bp.route('', methods=['POST'])
@categories_bp.route('/', methods=['POST'])
@require_auth
def create_category():
    data = request.get_json(silent=True) or {}
    name = clean_text(data.get('category'))
    if not name:
        return jsonify({'message': 'Category name is required'}), 400

    try:
        category = create_category_db(name)
    except DuplicateCategoryError:
        return jsonify({'message': 'Category already exists'}), 400
    except Exception as e:
        logger.error(f"Error creating category: {e}")
        return jsonify({'message': 'Error creating category', 'error': str(e)}), 500

    db_log('INFO', 'categories', 'Category created', {'category': name})
    return jsonify(category), 201


@categories_bp.route('/<category_id>', methods=['PATCH', 'PUT'])
@require_auth
def update_category(category_id):
    data = request.get_json(silent=True) or {}
    name = clean_text(data.get('category'))
    try:
        category_id = parse_id(category_id, 'category')
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    if not name:
        return jsonify({'message': 'Category name is required'}), 400

    try:
        category = update_category_db(category_id, name)
    except DuplicateCategoryError:
        return jsonify({'message': 'Category already exists'}), 400
    except Exception as e:
        logger.error(f"Error updating category: {e}")
        return jsonify({'message': 'Error updating category', 'error': str(e)}), 500

    if not category:
        return jsonify({'message': 'Category not found'}), 404
    return jsonify(category)


@categories_bp.route('/<category_id>', methods=['DELETE'])
@require_auth
def delete_category(category_id):
    try:
        deleted = delete_category_db(parse_id(category_id, 'category'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error deleting category: {e}")
        return jsonify({'message': 'Error deleting category', 'error': str(e)}), 500

    if not deleted:
        return jsonify({'message': 'Category not found'}), 404

    db_log('INFO', 'categories', 'Category deleted', {'category_id': category_id})
    return jsonify({'message': 'Category deleted successfully'})
