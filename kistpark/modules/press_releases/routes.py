"""
Press Release Routes
====================

Admin (auth):
- GET    /api/v1/press-release            list (_start/_end/_sort/_order, publisher, title_like)
- GET    /api/v1/press-release/<id>
- POST   /api/v1/press-release
- PATCH  /api/v1/press-release/<id>
- DELETE /api/v1/press-release/<id>[,<id>...]

Public:
- GET    /api/v1/press-release-web
- GET    /api/v1/press-release-web/<id>
"""

import logging
import sqlite3

from flask import jsonify, request

from ...core.assets import schedule_asset_cleanup, upload_data_uri
from ...core.database import Database, get_db_path, now_iso
from ...core.images import is_data_uri
from ...core.logging_service import db_log
from ...core.query import like_pattern, paginated_response, parse_list_params, window_sql
from ...core.validators import ValidationError, clean_text, normalize_date, parse_id, parse_ids, parse_seq
from ..auth.utils import require_auth
from . import press_releases_bp, press_releases_web_bp

logger = logging.getLogger(__name__)

IMAGE_FOLDER = 'press-releases'

REQUIRED_FIELDS = ('title', 'publisher', 'date', 'link', 'image')

SORTABLE = {
    'seq': 'seq',
    'title': 'title',
    'publisher': 'publisher',
    'date': 'date',
    'createdAt': 'created_at',
}


class DuplicateSequenceError(Exception):
    pass


# ===== Database Helper Functions =====

def get_db_config():
    return get_db_path('CONTENT_DB')


def init_press_releases_db():
    """Initialize the press_releases table"""
    content_db = get_db_config()
    Database.ensure_parent_dir(content_db)
    with Database.connection(content_db) as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS press_releases (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seq INTEGER NOT NULL UNIQUE,
                title TEXT NOT NULL,
                publisher TEXT NOT NULL,
                date TEXT NOT NULL,
                image TEXT NOT NULL,
                link TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        conn.execute('CREATE INDEX IF NOT EXISTS idx_press_releases_publisher ON press_releases(publisher)')


def press_release_to_json(row):
    return {
        '_id': row['id'],
        'seq': row['seq'],
        'title': row['title'],
        'publisher': row['publisher'],
        'date': row['date'],
        'image': row['image'],
        'link': row['link'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }


def get_press_releases_db(list_params, publisher=None, title_like=None):
    """Return (press_releases, total)"""
    clauses, params = [], []
    if publisher:
        clauses.append('publisher = ?')
        params.append(publisher)
    if title_like:
        clauses.append("title LIKE ? ESCAPE '\\'")
        params.append(like_pattern(title_like))
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

    tail, tail_params = window_sql(list_params)
    with Database.connection(get_db_config()) as conn:
        total = conn.execute(f'SELECT COUNT(*) FROM press_releases{where}', params).fetchone()[0]
        rows = conn.execute(f'SELECT * FROM press_releases{where}{tail}', params + tail_params).fetchall()
        return [press_release_to_json(row) for row in rows], total


def get_press_release_db(press_release_id):
    with Database.connection(get_db_config()) as conn:
        row = conn.execute('SELECT * FROM press_releases WHERE id = ?', (press_release_id,)).fetchone()
        return press_release_to_json(row) if row else None


def get_press_releases_by_ids_db(press_release_ids):
    placeholders = ','.join('?' for _ in press_release_ids)
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute(
            f'SELECT * FROM press_releases WHERE id IN ({placeholders})', press_release_ids
        ).fetchall()
        return [press_release_to_json(row) for row in rows]


def create_press_release_db(fields):
    timestamp = now_iso()
    with Database.lock:
        try:
            with Database.connection(get_db_config()) as conn:
                cursor = conn.cursor()
                seq = fields.get('seq')
                if seq is None:
                    seq = Database.next_seq(cursor, 'press_releases')
                cursor.execute('''
                    INSERT INTO press_releases (seq, title, publisher, date, image, link, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ''', (seq, fields['title'], fields['publisher'], fields['date'],
                      fields['image'], fields['link'], timestamp, timestamp))
                return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise DuplicateSequenceError(str(e)) from e


def update_press_release_db(press_release_id, fields):
    set_clauses, values = [], []
    for column in ('seq', 'title', 'publisher', 'date', 'image', 'link'):
        if column in fields:
            set_clauses.append(f'{column} = ?')
            values.append(fields[column])
    set_clauses.append('updated_at = ?')
    values.extend([now_iso(), press_release_id])

    try:
        with Database.connection(get_db_config()) as conn:
            cursor = conn.execute(f"UPDATE press_releases SET {', '.join(set_clauses)} WHERE id = ?", values)
            return cursor.rowcount > 0
    except sqlite3.IntegrityError as e:
        raise DuplicateSequenceError(str(e)) from e


def delete_press_releases_db(press_release_ids):
    placeholders = ','.join('?' for _ in press_release_ids)
    with Database.connection(get_db_config()) as conn:
        cursor = conn.execute(f'DELETE FROM press_releases WHERE id IN ({placeholders})', press_release_ids)
        return cursor.rowcount


# ===== Request Parsing =====

def _first_image(value):
    # Older clients send the cover image as a one-element list
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _store_image(value):
    """Stored URL for an image value, or None when it could not be stored"""
    if is_data_uri(value):
        return upload_data_uri(value, IMAGE_FOLDER)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _press_release_fields(data, partial=False):
    fields = {}
    for name in ('title', 'publisher', 'link'):
        if name in data or not partial:
            value = clean_text(data.get(name))
            if not value:
                raise ValidationError(f'{name.capitalize()} cannot be empty')
            fields[name] = value

    if 'date' in data or not partial:
        date = normalize_date(data.get('date'))
        if not date:
            raise ValidationError('Date cannot be empty')
        fields['date'] = date

    if 'seq' in data:
        seq = parse_seq(data['seq'])
        if seq is not None:
            fields['seq'] = seq

    return fields


# ===== Admin Routes =====

@press_releases_bp.route('', methods=['GET'])
@press_releases_bp.route('/', methods=['GET'])
@require_auth
def get_press_releases():
    return _list_press_releases()


def _list_press_releases():
    try:
        press_releases, total = get_press_releases_db(
            parse_list_params(request.args, SORTABLE),
            publisher=request.args.get('publisher'),
            title_like=request.args.get('title_like'),
        )
        return paginated_response(press_releases, total)
    except Exception as e:
        logger.error(f"Error fetching press releases: {e}")
        return jsonify({'message': 'Error fetching press releases', 'error': str(e)}), 500


@press_releases_bp.route('/<press_release_id>', methods=['GET'])
@require_auth
def get_press_release(press_release_id):
    return _get_press_release(press_release_id)


def _get_press_release(press_release_id):
    try:
        press_release = get_press_release_db(parse_id(press_release_id, 'press release'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching press release: {e}")
        return jsonify({'message': 'Error fetching press release', 'error': str(e)}), 500

    if not press_release:
        return jsonify({'message': 'Press release not found'}), 404
    return jsonify(press_release)


@press_releases_bp.route('', methods=['POST'])
@press_releases_bp.route('/', methods=['POST'])
@require_auth
def create_press_release():
    data = request.get_json(silent=True) or {}
    data['image'] = _first_image(data.get('image'))

    missing = [name for name in REQUIRED_FIELDS if not data.get(name)]
    if missing:
        return jsonify({'message': f"Missing required fields: {', '.join(missing)}"}), 400

    try:
        fields = _press_release_fields(data)
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400

    # Upload before writing so a failed upload leaves nothing behind
    image_url = _store_image(data['image'])
    if not image_url:
        db_log('ERROR', 'press_releases', 'Press release image upload failed', {'title': fields['title']})
        return jsonify({'message': 'Failed to create press release', 'error': 'Image processing failed'}), 500
    fields['image'] = image_url

    try:
        press_release_id = create_press_release_db(fields)
    except DuplicateSequenceError:
        if is_data_uri(data['image']):
            schedule_asset_cleanup([image_url])
        return jsonify({'message': 'Sequence already in use'}), 400
    except Exception as e:
        if is_data_uri(data['image']):
            schedule_asset_cleanup([image_url])
        logger.error(f"Error creating press release: {e}")
        return jsonify({'message': 'Failed to create press release', 'error': str(e)}), 500

    db_log('INFO', 'press_releases', 'Press release created', {'id': press_release_id, 'title': fields['title']})
    return jsonify({
        'message': 'Press release created successfully',
        'pressRelease': get_press_release_db(press_release_id),
    }), 201


@press_releases_bp.route('/<press_release_id>', methods=['PATCH', 'PUT'])
@require_auth
def update_press_release(press_release_id):
    data = request.get_json(silent=True) or {}
    try:
        press_release_id = parse_id(press_release_id, 'press release')
        existing = get_press_release_db(press_release_id)
        if not existing:
            return jsonify({'message': 'Press release not found'}), 404
        fields = _press_release_fields(data, partial=True)
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error loading press release {press_release_id}: {e}")
        return jsonify({'message': 'Error updating press release', 'error': str(e)}), 500

    warning = None
    stale, uploaded = [], []
    new_image = _first_image(data.get('image'))
    if new_image and new_image != existing['image']:
        image_url = _store_image(new_image)
        if image_url:
            # The old image goes only once its replacement is stored
            fields['image'] = image_url
            stale = [existing['image']]
            if is_data_uri(new_image):
                uploaded = [image_url]
        else:
            warning = 'Image could not be processed, the previous image was kept'

    try:
        update_press_release_db(press_release_id, fields)
    except DuplicateSequenceError:
        schedule_asset_cleanup(uploaded)
        return jsonify({'message': 'Sequence already in use'}), 400
    except Exception as e:
        schedule_asset_cleanup(uploaded)
        logger.error(f"Error updating press release {press_release_id}: {e}")
        return jsonify({'message': 'Error updating press release', 'error': str(e)}), 500

    schedule_asset_cleanup(stale)
    db_log('INFO', 'press_releases', 'Press release updated', {'id': press_release_id})

    body = {'message': 'Press release updated successfully', 'pressRelease': get_press_release_db(press_release_id)}
    if warning:
        body['warning'] = warning
    return jsonify(body)


@press_releases_bp.route('/<ids>', methods=['DELETE'])
@require_auth
def delete_press_releases(ids):
    try:
        press_release_ids = parse_ids(ids, 'press release')
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400

    try:
        found = get_press_releases_by_ids_db(press_release_ids)
        if not found:
            message = 'Press release not found' if len(press_release_ids) == 1 else 'No press releases found to delete'
            return jsonify({'message': message}), 404

        deleted = delete_press_releases_db([item['_id'] for item in found])
    except Exception as e:
        logger.error(f"Error deleting press releases {ids}: {e}")
        return jsonify({'message': 'Error deleting press release', 'error': str(e)}), 500

    schedule_asset_cleanup([item['image'] for item in found])
    db_log('INFO', 'press_releases', f'Deleted {deleted} press release(s)', {'ids': [item['_id'] for item in found]})

    if len(press_release_ids) == 1:
        return jsonify({'message': 'Press release deleted successfully'})
    return jsonify({'message': f'{deleted} press releases deleted successfully'})


# ===== Public Routes =====

@press_releases_web_bp.route('', methods=['GET'])
@press_releases_web_bp.route('/', methods=['GET'])
def get_web_press_releases():
    return _list_press_releases()


@press_releases_web_bp.route('/<press_release_id>', methods=['GET'])
def get_web_press_release(press_release_id):
    return _get_press_release(press_release_id)
