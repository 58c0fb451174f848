import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

from .config import get_config_value


class Database:
    # Serializes sequence allocation so concurrent creates never share a seq
    lock = threading.Lock()

    @staticmethod
    def connect(path):
        conn = sqlite3.connect(path)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        return conn

    @staticmethod
    @contextmanager
    def connection(path):
        """Yield a connection that is committed on success and always closed."""
        conn = Database.connect(path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @staticmethod
    def ensure_parent_dir(path):
        db_dir = os.path.dirname(path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @staticmethod
    def next_seq(cursor, table):
        """Next free sequence number for a table with a `seq` column.

        Callers hold Database.lock around this and the insert that uses it.
        """
        cursor.execute(f"SELECT MAX(seq) FROM {table}")
        last_seq = cursor.fetchone()[0]
        return (last_seq or 0) + 1

    @staticmethod
    def add_missing_columns(cursor, table, columns):
        """Add (name, type) columns that an older schema lacks."""
        cursor.execute(f"PRAGMA table_info({table})")
        existing = [column[1] for column in cursor.fetchall()]
        for col_name, col_type in columns:
            if col_name not in existing:
                cursor.execute(f'ALTER TABLE {table} ADD COLUMN {col_name} {col_type}')


def get_db_path(key):
    """Database path for CONTENT_DB, USER_DB or LOG_DB."""
    return get_config_value(key)


def dump_list(values):
    return json.dumps(list(values or []))


def load_list(text):
    if not text:
        return []
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


def now_iso():
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def today():
    return datetime.now(timezone.utc).strftime('%Y-%m-%d')
