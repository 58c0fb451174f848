from ...core.config import get_config_value
from ...core.database import Database, get_db_path, now_iso
from ...core.query import like_pattern, window_sql


def _user_db():
    return get_db_path('USER_DB')


class UserDatabase:
    SORTABLE = {'name': 'name', 'email': 'email', 'createdAt': 'created_at'}

    @staticmethod
    def init_users_table():
        """Initialize the users table with proper schema"""
        user_db = _user_db()
        Database.ensure_parent_dir(user_db)
        with Database.connection(user_db) as conn:
            cursor = conn.cursor()
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT,
                    email TEXT UNIQUE NOT NULL,
                    avatar TEXT,
                    is_allowed BOOLEAN DEFAULT 1,
                    is_admin BOOLEAN DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_users_email ON users(email)")

    @staticmethod
    def to_json(user):
        return {
            '_id': user['id'],
            'name': user['name'],
            'email': user['email'],
            'avatar': user['avatar'],
            'isAllowed': bool(user['is_allowed']),
            'isAdmin': bool(user['is_admin']),
            'createdAt': user['created_at'],
            'updatedAt': user['updated_at'],
        }

    @staticmethod
    def get_user_by_id(user_id):
        with Database.connection(_user_db()) as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return dict(row) if row else None

    @staticmethod
    def get_user_by_email(email):
        with Database.connection(_user_db()) as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (email.lower().strip(),)).fetchone()
            return dict(row) if row else None

    @staticmethod
    def find_or_create(email, name=None, avatar=None):
        """Return (user, created) for a signed-in Google account"""
        email = email.lower().strip()
        existing = UserDatabase.get_user_by_email(email)
        if existing:
            return existing, False

        admin_emails = get_config_value('ADMIN_EMAILS') or []
        if isinstance(admin_emails, str):
            admin_emails = admin_emails.split(',')
        is_admin = email in [item.strip().lower() for item in admin_emails]
        is_allowed = bool(get_config_value('NEW_USERS_ALLOWED')) or is_admin
        timestamp = now_iso()

        with Database.connection(_user_db()) as conn:
            # OR IGNORE: two first logins racing for the same email
            conn.execute("""
                INSERT OR IGNORE INTO users (name, email, avatar, is_allowed, is_admin, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (name, email, avatar, int(is_allowed), int(is_admin), timestamp, timestamp))

        return UserDatabase.get_user_by_email(email), True

    @staticmethod
    def list_users(list_params, name_like=None, email_like=None):
        """Return (users, total) for the user-management table"""
        clauses, params = [], []
        if name_like:
            clauses.append("name LIKE ? ESCAPE '\\'")
            params.append(like_pattern(name_like))
        if email_like:
            clauses.append("email LIKE ? ESCAPE '\\'")
            params.append(like_pattern(email_like))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ''

        tail, tail_params = window_sql(list_params)
        with Database.connection(_user_db()) as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM users{where}", params).fetchone()[0]
            rows = conn.execute(f"SELECT * FROM users{where}{tail}", params + tail_params).fetchall()
            return [dict(row) for row in rows], total

    @staticmethod
    def update_user(user_id, is_allowed=None, is_admin=None):
        """Update access flags, returns the updated user or None if missing"""
        set_clauses, values = [], []
        if is_allowed is not None:
            set_clauses.append("is_allowed = ?")
            values.append(int(is_allowed))
        if is_admin is not None:
            set_clauses.append("is_admin = ?")
            values.append(int(is_admin))
        set_clauses.append("updated_at = ?")
        values.extend([now_iso(), user_id])

        with Database.connection(_user_db()) as conn:
            cursor = conn.execute(f"UPDATE users SET {', '.join(set_clauses)} WHERE id = ?", values)
            if cursor.rowcount == 0:
                return None
        return UserDatabase.get_user_by_id(user_id)

    @staticmethod
    def delete_user(user_id):
        with Database.connection(_user_db()) as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    @staticmethod
    def grant_admin(email):
        """Promote an existing user, returns False when no such user"""
        with Database.connection(_user_db()) as conn:
            cursor = conn.execute(
                "UPDATE users SET is_admin = 1, is_allowed = 1, updated_at = ? WHERE email = ?",
                (now_iso(), email.lower().strip())
            )
            return cursor.rowcount > 0
