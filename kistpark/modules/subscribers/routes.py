"""
Subscribers Routes
==================

- POST   /api/v1/subscribers              subscribe (public)
- GET    /api/v1/subscribers              list, newest sequence first (auth)
- GET    /api/v1/subscribers/export       CSV download (auth)
- DELETE /api/v1/subscribers/<id>[,<id>]  delete with per-id results (auth)
"""

import logging
import sqlite3
from datetime import datetime

import pandas as pd
from flask import Response, jsonify, request

from ...core.database import Database, get_db_path, now_iso
from ...core.logging_service import db_log
from ...core.query import paginated_response
from ...core.validators import ValidationError, parse_id, validate_email
from ..auth.utils import require_auth
from . import subscribers_bp

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ['Sequence', 'Email', 'Subscription Date']


class SubscriberExistsError(Exception):
    pass


def _db_log(level, message, details=None):
    """Log to the persistent app_logs table under the subscribers source"""
    db_log(level, 'subscribers', message, details)


# ===== Database Helper Functions =====

def get_db_config():
    """Subscribers live next to users in USER_DB"""
    return get_db_path('USER_DB')


def init_subscribers_db():
    """Initialize the subscribers table in the database"""
    db_path = get_db_config()
    Database.ensure_parent_dir(db_path)
    with Database.connection(db_path) as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS subscribers (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seq INTEGER NOT NULL UNIQUE,
                email TEXT UNIQUE NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_subscribers_email ON subscribers(email)')
    logger.info("Subscribers database table created/verified successfully")


def subscriber_to_json(row):
    return {
        '_id': row['id'],
        'seq': row['seq'],
        'email': row['email'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


def get_all_subscribers_db():
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute('SELECT * FROM subscribers ORDER BY seq DESC').fetchall()
        return [subscriber_to_json(row) for row in rows]


def create_subscriber_db(email):
    timestamp = now_iso()
    with Database.lock:
        with Database.connection(get_db_config()) as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT 1 FROM subscribers WHERE email = ?', (email,))
            if cursor.fetchone():
                raise SubscriberExistsError(email)
            seq = Database.next_seq(cursor, 'subscribers')
            cursor.execute(
                'INSERT INTO subscribers (seq, email, created_at, updated_at) VALUES (?, ?, ?, ?)',
                (seq, email, timestamp, timestamp)
            )
            row = conn.execute('SELECT * FROM subscribers WHERE id = ?', (cursor.lastrowid,)).fetchone()
            return subscriber_to_json(row)


def delete_subscriber_db(subscriber_id):
    with Database.connection(get_db_config()) as conn:
        cursor = conn.execute('DELETE FROM subscribers WHERE id = ?', (subscriber_id,))
        return cursor.rowcount > 0


def _subscription_date(created_at):
    try:
        return datetime.fromisoformat(created_at.replace('Z', '+00:00')).strftime('%m/%d/%Y')
    except (AttributeError, ValueError):
        return created_at or ''


# ===== Routes =====

@subscribers_bp.route('', methods=['POST'])
@subscribers_bp.route('/', methods=['POST'])
def subscribe():
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    if isinstance(email, str):
        email = email.strip().lower()

    if email is None or email == '':
        return jsonify({'success': False, 'message': 'Email is required'}), 400
    if not isinstance(email, str) or not validate_email(email):
        return jsonify({'success': False, 'message': 'Invalid email format'}), 400

    try:
        subscriber = create_subscriber_db(email)
    except SubscriberExistsError:
        return jsonify({'success': False, 'message': 'Subscriber already exists'}), 400
    except sqlite3.IntegrityError:
        # Lost a race with a concurrent request for the same email
        return jsonify({'success': False, 'message': 'Subscriber already exists'}), 400
    except sqlite3.Error as e:
        logger.error(f"Database error in subscribe: {e}")
        return jsonify({'success': False, 'message': 'Error creating subscriber', 'error': str(e)}), 500

    logger.info(f"New subscriber #{subscriber['seq']}: {email}")
    _db_log('INFO', 'New subscriber', {'email': email, 'seq': subscriber['seq']})
    return jsonify({'success': True, 'message': 'Successfully subscribed', 'data': subscriber}), 201


@subscribers_bp.route('', methods=['GET'])
@subscribers_bp.route('/', methods=['GET'])
@require_auth
def get_subscribers():
    try:
        subscribers = get_all_subscribers_db()
        return paginated_response(subscribers, len(subscribers))
    except sqlite3.Error as e:
        logger.error(f"Database error in get_subscribers: {e}")
        return jsonify({'message': 'Error fetching subscribers', 'error': str(e)}), 500


@subscribers_bp.route('/export', methods=['GET'])
@require_auth
def export_subscribers():
    """Download all subscribers as CSV"""
    try:
        subscribers = get_all_subscribers_db()
    except sqlite3.Error as e:
        logger.error(f"Database error in export_subscribers: {e}")
        return jsonify({'message': 'Error exporting subscribers', 'error': str(e)}), 500

    df = pd.DataFrame(
        [
            {
                'Sequence': subscriber['seq'],
                'Email': subscriber['email'],
                'Subscription Date': _subscription_date(subscriber['createdAt']),
            }
            for subscriber in subscribers
        ],
        columns=EXPORT_COLUMNS,
    )

    _db_log('INFO', 'Subscribers exported', {'count': len(subscribers)})
    return Response(
        df.to_csv(index=False),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=subscribers.csv'},
    )


@subscribers_bp.route('/<ids>', methods=['DELETE'])
@require_auth
def delete_subscribers(ids):
    parts = [part.strip() for part in ids.split(',') if part.strip()]
    results = []

    for part in parts:
        try:
            deleted = delete_subscriber_db(parse_id(part, 'subscriber'))
            results.append({
                'id': part,
                'success': deleted,
                'message': 'Deleted successfully' if deleted else 'Subscriber not found',
            })
        except ValidationError as e:
            results.append({'id': part, 'success': False, 'message': str(e)})
        except sqlite3.Error as e:
            logger.error(f"Database error deleting subscriber {part}: {e}")
            results.append({'id': part, 'success': False, 'message': 'Failed to delete'})

    deleted_count = sum(1 for result in results if result['success'])
    if deleted_count == 0:
        return jsonify({'message': 'No subscribers were deleted', 'results': results}), 404

    _db_log('INFO', f'Deleted {deleted_count} subscriber(s)', {'ids': [r['id'] for r in results if r['success']]})
    return jsonify({'message': f'Successfully deleted {deleted_count} subscriber(s)', 'results': results})
