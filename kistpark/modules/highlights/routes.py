"""
Highlights Routes
=================

Admin (auth):
- GET    /api/v1/highlights                        list (_start/_end/_sort/_order, status, title_like, category)
- GET    /api/v1/highlights/dashboard-highlights   latest published, with featuredImage
- GET    /api/v1/highlights/<id>
- POST   /api/v1/highlights
- PATCH  /api/v1/highlights/<id>
- DELETE /api/v1/highlights/<id>[,<id>...]

Public:
- GET    /api/v1/highlights-web
- GET    /api/v1/highlights-web/<id>
"""

import logging
import sqlite3

from flask import jsonify, request

from ...core.assets import max_images_for, process_images, schedule_asset_cleanup
from ...core.database import Database, dump_list, get_db_path, load_list, now_iso, today
from ...core.logging_service import db_log
from ...core.query import like_pattern, paginated_response, parse_list_params, window_sql
from ...core.validators import (
    ValidationError, clean_text, normalize_date, parse_id, parse_ids,
    parse_seq, parse_status, string_list,
)
from ..auth.utils import require_auth
from . import highlights_bp, highlights_web_bp

logger = logging.getLogger(__name__)

IMAGE_FOLDER = 'highlights'

SORTABLE = {
    'seq': 'h.seq',
    'title': 'h.title',
    'date': 'h.date',
    'location': 'h.location',
    'status': 'h.status',
    'createdAt': 'h.created_at',
}

UPDATABLE_COLUMNS = ('seq', 'title', 'sdg', 'category_id', 'date', 'location',
                     'images', 'content', 'status', 'email')

HIGHLIGHT_SELECT = '''
    SELECT h.*, c.category AS category_name,
           c.created_at AS category_created_at, c.updated_at AS category_updated_at
    FROM highlights h
    LEFT JOIN categories c ON c.id = h.category_id
'''


class DuplicateSequenceError(Exception):
    pass


# ===== Database Helper Functions =====

def get_db_config():
    return get_db_path('CONTENT_DB')


def init_highlights_db():
    """Initialize the highlights table"""
    content_db = get_db_config()
    Database.ensure_parent_dir(content_db)
    with Database.connection(content_db) as conn:
        cursor = conn.cursor()
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS highlights (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seq INTEGER NOT NULL UNIQUE,
                title TEXT NOT NULL,
                sdg TEXT DEFAULT '[]',
                category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
                date TEXT,
                location TEXT,
                images TEXT DEFAULT '[]',
                content TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'draft'
                    CHECK (status IN ('draft', 'published', 'rejected')),
                email TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        ''')
        Database.add_missing_columns(cursor, 'highlights', [('email', 'TEXT')])
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_highlights_status ON highlights(status)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_highlights_date ON highlights(date)')


def highlight_to_json(row, include_content=True, full_category=False):
    category = None
    if row['category_id'] is not None and row['category_name'] is not None:
        category = {'_id': row['category_id'], 'category': row['category_name']}
        if full_category:
            category['createdAt'] = row['category_created_at']
            category['updatedAt'] = row['category_updated_at']

    highlight = {
        '_id': row['id'],
        'seq': row['seq'],
        'title': row['title'],
        'sdg': load_list(row['sdg']),
        'category': category,
        'date': row['date'],
        'location': row['location'],
        'images': load_list(row['images']),
        'status': row['status'],
        'email': row['email'],
        'createdAt': row['created_at'],
        'updatedAt': row['updated_at'],
    }
    if include_content:
        highlight['content'] = row['content']
    return highlight


def category_exists_db(category_id):
    with Database.connection(get_db_config()) as conn:
        return conn.execute('SELECT 1 FROM categories WHERE id = ?', (category_id,)).fetchone() is not None


def get_highlights_db(list_params, status=None, title_like=None, category_id=None):
    """Return (highlights, total) for the admin table"""
    clauses, params = [], []
    if status:
        clauses.append('h.status = ?')
        params.append(status)
    if title_like:
        clauses.append("h.title LIKE ? ESCAPE '\\'")
        params.append(like_pattern(title_like))
    if category_id is not None:
        clauses.append('h.category_id = ?')
        params.append(category_id)
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

    tail, tail_params = window_sql(list_params)
    with Database.connection(get_db_config()) as conn:
        total = conn.execute(f'SELECT COUNT(*) FROM highlights h{where}', params).fetchone()[0]
        rows = conn.execute(f'{HIGHLIGHT_SELECT}{where}{tail}', params + tail_params).fetchall()
        return [highlight_to_json(row, include_content=False) for row in rows], total


def get_dashboard_highlights_db(limit):
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute(f'''
            {HIGHLIGHT_SELECT}
            WHERE h.status = 'published'
            ORDER BY h.date DESC, h.id DESC
            LIMIT ?
        ''', (limit,)).fetchall()

    highlights = []
    for row in rows:
        highlight = highlight_to_json(row, include_content=False)
        highlight['featuredImage'] = highlight['images'][0] if highlight['images'] else None
        highlights.append(highlight)
    return highlights


def get_all_highlights_db():
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute(f'{HIGHLIGHT_SELECT} ORDER BY h.created_at DESC, h.id DESC').fetchall()
        return [highlight_to_json(row) for row in rows]


def get_highlight_db(highlight_id, full_category=True):
    with Database.connection(get_db_config()) as conn:
        row = conn.execute(f'{HIGHLIGHT_SELECT} WHERE h.id = ?', (highlight_id,)).fetchone()
        return highlight_to_json(row, full_category=full_category) if row else None


def get_highlights_by_ids_db(highlight_ids):
    placeholders = ','.join('?' for _ in highlight_ids)
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute(f'{HIGHLIGHT_SELECT} WHERE h.id IN ({placeholders})', highlight_ids).fetchall()
        return [highlight_to_json(row) for row in rows]


def _raise_for_integrity(error):
    if 'seq' in str(error):
        raise DuplicateSequenceError(str(error)) from error
    raise error


def create_highlight_db(fields):
    """Insert a highlight and return its id; seq is allocated when missing"""
    timestamp = now_iso()
    with Database.lock:
        try:
            with Database.connection(get_db_config()) as conn:
                cursor = conn.cursor()
                seq = fields.get('seq')
                if seq is None:
                    seq = Database.next_seq(cursor, 'highlights')
                cursor.execute('''
                    INSERT INTO highlights (seq, title, sdg, category_id, date, location,
                        images, content, status, email, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ''', (seq, fields['title'], fields.get('sdg', '[]'), fields.get('category_id'),
                      fields.get('date'), fields.get('location'), dump_list([]), fields['content'],
                      fields.get('status', 'draft'), fields.get('email'), today(), timestamp))
                return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            _raise_for_integrity(e)


def update_highlight_db(highlight_id, fields):
    set_clauses, values = [], []
    for column in UPDATABLE_COLUMNS:
        if column in fields:
            set_clauses.append(f'{column} = ?')
            values.append(fields[column])
    set_clauses.append('updated_at = ?')
    values.extend([now_iso(), highlight_id])

    try:
        with Database.connection(get_db_config()) as conn:
            cursor = conn.execute(f"UPDATE highlights SET {', '.join(set_clauses)} WHERE id = ?", values)
            return cursor.rowcount > 0
    except sqlite3.IntegrityError as e:
        _raise_for_integrity(e)


def delete_highlights_db(highlight_ids):
    placeholders = ','.join('?' for _ in highlight_ids)
    with Database.connection(get_db_config()) as conn:
        cursor = conn.execute(f'DELETE FROM highlights WHERE id IN ({placeholders})', highlight_ids)
        return cursor.rowcount


# ===== Request Parsing =====

def _resolve_category(value):
    if isinstance(value, dict):
        value = value.get('_id')
    if value is None or value == '':
        return None
    category_id = parse_id(value, 'category')
    if not category_exists_db(category_id):
        raise ValidationError('Category not found')
    return category_id


def _highlight_fields(data, partial=False):
    """Column values for the keys present in a request body"""
    fields = {}

    if 'title' in data or not partial:
        title = clean_text(data.get('title'))
        if not title:
            raise ValidationError('Title cannot be empty')
        fields['title'] = title

    if 'content' in data or not partial:
        content = data.get('content')
        if not isinstance(content, str) or not content.strip():
            raise ValidationError('Content cannot be empty')
        fields['content'] = content

    if data.get('status') is not None or not partial:
        fields['status'] = parse_status(data.get('status'))

    if 'sdg' in data:
        fields['sdg'] = dump_list(string_list(data['sdg'], 'sdg'))
    if 'date' in data:
        fields['date'] = normalize_date(data['date'])
    if 'location' in data:
        fields['location'] = clean_text(data['location']) or None
    if 'email' in data:
        fields['email'] = clean_text(data['email']) or None
    if 'seq' in data:
        seq = parse_seq(data['seq'])
        if seq is not None:
            fields['seq'] = seq
    if 'category' in data:
        fields['category_id'] = _resolve_category(data['category'])

    return fields


def _image_list(data):
    images = data.get('images') or []
    if not isinstance(images, list):
        raise ValidationError('images must be a list')
    return images


# ===== Admin Routes =====

@highlights_bp.route('', methods=['GET'])
@highlights_bp.route('/', methods=['GET'])
@require_auth
def get_highlights():
    try:
        category_id = request.args.get('category')
        highlights, total = get_highlights_db(
            parse_list_params(request.args, SORTABLE, default_sort=('h.created_at', 'DESC'), id_column='h.id'),
            status=request.args.get('status'),
            title_like=request.args.get('title_like'),
            category_id=parse_id(category_id, 'category') if category_id else None,
        )
        return paginated_response(highlights, total)
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching highlights: {e}")
        return jsonify({'message': 'Error fetching highlights', 'error': str(e)}), 500


@highlights_bp.route('/dashboard-highlights', methods=['GET'])
@require_auth
def get_dashboard_highlights():
    try:
        limit = int(request.args.get('limit', 6))
    except (TypeError, ValueError):
        limit = 6
    limit = min(max(limit, 1), 50)

    try:
        return jsonify(get_dashboard_highlights_db(limit))
    except Exception as e:
        logger.error(f"Error fetching dashboard highlights: {e}")
        return jsonify({'message': 'Error fetching dashboard highlights', 'error': str(e)}), 500


@highlights_bp.route('/<highlight_id>', methods=['GET'])
@require_auth
def get_highlight(highlight_id):
    try:
        highlight = get_highlight_db(parse_id(highlight_id, 'highlight'))
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching highlight: {e}")
        return jsonify({'message': 'Error fetching highlight', 'error': str(e)}), 500

    if not highlight:
        return jsonify({'message': 'Highlight not found'}), 404
    return jsonify(highlight)


@highlights_bp.route('', methods=['POST'])
@highlights_bp.route('/', methods=['POST'])
@require_auth
def create_highlight():
    data = request.get_json(silent=True) or {}

    title = clean_text(data.get('title'))
    content = data.get('content')
    if not title or not isinstance(content, str) or not content.strip():
        return jsonify({'message': 'Missing required fields: title and content are required'}), 400

    try:
        fields = _highlight_fields(data)
        images = _image_list(data)
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400

    try:
        highlight_id = create_highlight_db(fields)
    except DuplicateSequenceError:
        return jsonify({'message': 'Sequence already in use'}), 400
    except Exception as e:
        logger.error(f"Error creating highlight: {e}")
        return jsonify({'message': 'Error creating highlight', 'error': str(e)}), 500

    # The record exists from here on; image problems only produce a warning
    warning = None
    try:
        urls, dropped = process_images(images, IMAGE_FOLDER)
        if urls:
            update_highlight_db(highlight_id, {'images': dump_list(urls)})
        if dropped:
            warning = f'{dropped} image(s) could not be processed'
    except Exception as e:
        logger.error(f"Image processing failed for highlight {highlight_id}: {e}")
        db_log('ERROR', 'highlights', 'Image processing failed', {'highlight_id': highlight_id, 'error': str(e)})
        warning = 'Highlight created but images could not be processed'

    db_log('INFO', 'highlights', 'Highlight created', {'highlight_id': highlight_id, 'title': fields['title']})

    body = {'message': 'Highlight created successfully', 'highlight': get_highlight_db(highlight_id)}
    if warning:
        body['warning'] = warning
    return jsonify(body), 201


@highlights_bp.route('/<highlight_id>', methods=['PATCH', 'PUT'])
@require_auth
def update_highlight(highlight_id):
    data = request.get_json(silent=True) or {}
    try:
        highlight_id = parse_id(highlight_id, 'highlight')
        existing = get_highlight_db(highlight_id)
        if not existing:
            return jsonify({'message': 'Highlight not found'}), 404
        fields = _highlight_fields(data, partial=True)
        images = _image_list(data) if 'images' in data else None
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error loading highlight {highlight_id}: {e}")
        return jsonify({'message': 'Error updating highlight', 'error': str(e)}), 500

    stale, uploaded = [], []
    if images is not None:
        old_images = existing['images']
        # Kept images follow the client's order (first is featured); new ones are appended
        remaining = []
        for image in images:
            if image in old_images and image not in remaining:
                remaining.append(image)
        new_entries = [image for image in images if image not in old_images]
        stale = [url for url in old_images if url not in images]

        slots = max(max_images_for(IMAGE_FOLDER) - len(remaining), 0)
        added, _dropped = process_images(new_entries, IMAGE_FOLDER, max_images=slots)
        uploaded = [url for url in added if url not in old_images]
        fields['images'] = dump_list(remaining + added)

    try:
        update_highlight_db(highlight_id, fields)
    except DuplicateSequenceError:
        schedule_asset_cleanup(uploaded)
        return jsonify({'message': 'Sequence already in use'}), 400
    except Exception as e:
        schedule_asset_cleanup(uploaded)
        logger.error(f"Error updating highlight {highlight_id}: {e}")
        return jsonify({'message': 'Error updating highlight', 'error': str(e)}), 500

    schedule_asset_cleanup(stale)
    db_log('INFO', 'highlights', 'Highlight updated', {'highlight_id': highlight_id, 'removed_images': len(stale)})
    return jsonify({'message': 'Highlight updated successfully', 'highlight': get_highlight_db(highlight_id)})


@highlights_bp.route('/<ids>', methods=['DELETE'])
@require_auth
def delete_highlights(ids):
    try:
        highlight_ids = parse_ids(ids, 'highlight')
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400

    try:
        found = get_highlights_by_ids_db(highlight_ids)
        if not found:
            return jsonify({'message': 'No highlights found to delete'}), 404

        deleted = delete_highlights_db([highlight['_id'] for highlight in found])
    except Exception as e:
        logger.error(f"Error deleting highlights {ids}: {e}")
        return jsonify({'message': 'Error deleting highlights', 'error': str(e)}), 500

    schedule_asset_cleanup([url for highlight in found for url in highlight['images']])
    db_log('INFO', 'highlights', f'Deleted {deleted} highlight(s)', {'ids': [h['_id'] for h in found]})
    return jsonify({'message': f'Successfully deleted {deleted} highlight(s)'})


# ===== Public Routes =====

@highlights_web_bp.route('', methods=['GET'])
@highlights_web_bp.route('/', methods=['GET'])
def get_web_highlights():
    try:
        return jsonify(get_all_highlights_db())
    except Exception as e:
        logger.error(f"Error fetching public highlights: {e}")
        return jsonify({'message': 'Error fetching highlights', 'error': str(e)}), 500


@highlights_web_bp.route('/<highlight_id>', methods=['GET'])
def get_web_highlight(highlight_id):
    try:
        highlight = get_highlight_db(parse_id(highlight_id, 'highlight'), full_category=False)
    except ValidationError as e:
        return jsonify({'message': str(e)}), 400
    except Exception as e:
        logger.error(f"Error fetching public highlight: {e}")
        return jsonify({'message': 'Error fetching highlight', 'error': str(e)}), 500

    if not highlight:
        return jsonify({'message': 'Highlight not found'}), 404
    return jsonify(highlight)
