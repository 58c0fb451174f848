import logging

from flask import jsonify

from ...core.database import Database, get_db_path
from . import sdg_bp

logger = logging.getLogger(__name__)

SDGS = [
    'SDG-1 No Poverty',
    'SDG-2 Zero Hunger',
    'SDG-3 Good Health and Well-being',
    'SDG-4 Quality Education',
    'SDG-5 Gender Equality',
    'SDG-6 Clean Water and Sanitation',
    'SDG-7 Affordable and Clean Energy',
    'SDG-8 Decent Work and Economic Growth',
    'SDG-9 Industry, Innovation and Infrastructure',
    'SDG-10 Reduced Inequalities',
    'SDG-11 Sustainable Cities and Communities',
    'SDG-12 Responsible Consumption and Production',
    'SDG-13 Climate Action',
    'SDG-14 Life Below Water',
    'SDG-15 Life on Land',
    'SDG-16 Peace, Justice and Strong Institutions',
    'SDG-17 Partnerships for the Goals',
]


def get_db_config():
    return get_db_path('CONTENT_DB')


def init_sdg_db():
    """Create the sdgs table and seed it on first run"""
    content_db = get_db_config()
    Database.ensure_parent_dir(content_db)
    with Database.connection(content_db) as conn:
        conn.execute('''
            CREATE TABLE IF NOT EXISTS sdgs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sdg TEXT NOT NULL UNIQUE
            )
        ''')
        empty = conn.execute('SELECT COUNT(*) FROM sdgs').fetchone()[0] == 0
    if empty:
        seed_sdgs()


def seed_sdgs():
    """Replace the table contents with the 17 goals, returns the count"""
    with Database.connection(get_db_config()) as conn:
        conn.execute('DELETE FROM sdgs')
        conn.executemany('INSERT INTO sdgs (sdg) VALUES (?)', [(sdg,) for sdg in SDGS])
    logger.info(f"Seeded {len(SDGS)} SDGs")
    return len(SDGS)


def get_all_sdgs_db():
    with Database.connection(get_db_config()) as conn:
        rows = conn.execute('SELECT id, sdg FROM sdgs ORDER BY id ASC').fetchall()
        return [{'_id': row['id'], 'sdg': row['sdg']} for row in rows]


@sdg_bp.route('', methods=['GET'])
@sdg_bp.route('/', methods=['GET'])
def get_sdgs():
    try:
        return jsonify(get_all_sdgs_db())
    except Exception as e:
        logger.error(f"Error fetching SDGs: {e}")
        return jsonify({'message': 'Error fetching SDGs', 'error': str(e)}), 500
