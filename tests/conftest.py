"""
Shared fixtures for the KIST Park test suite.

Run with: pytest -v
Install test dependencies with: pip install -e ".[dev]"
"""

import base64
import io
import os
import shutil
import tempfile

import pytest
from flask import Flask
from PIL import Image

from kistpark import KistPark
from kistpark.core import assets
from kistpark.modules.auth import tokens
from kistpark.modules.auth.database import UserDatabase

CLIENT_ID = 'test-client-id.apps.googleusercontent.com'
ADMIN_EMAIL = 'admin@kistpark.test'
STAFF_EMAIL = 'staff@kistpark.test'
BLOCKED_EMAIL = 'blocked@kistpark.test'

FAKE_TOKENS = {
    'admin-token': {'email': ADMIN_EMAIL, 'name': 'Park Admin', 'sub': '1001'},
    'staff-token': {'email': STAFF_EMAIL, 'name': 'Park Staff', 'sub': '1002'},
    'blocked-token': {'email': BLOCKED_EMAIL, 'name': 'Blocked User', 'sub': '1003'},
    'stranger-token': {'email': 'stranger@kistpark.test', 'name': 'Stranger', 'sub': '1004'},
}


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir():
    """Temporary directory for databases and uploads, cleaned up after."""
    d = tempfile.mkdtemp(prefix="kistpark-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def static_dir(tmp_dir):
    return os.path.join(tmp_dir, "static")


@pytest.fixture
def app(tmp_dir, static_dir):
    """Flask app with every KIST Park module registered on temp databases."""
    app = Flask(__name__, static_folder=static_dir)
    app.config.update(
        TESTING=True,
        SECRET_KEY="test-secret",
        DB_DIR=tmp_dir,
        CONTENT_DB=os.path.join(tmp_dir, "content.db"),
        USER_DB=os.path.join(tmp_dir, "users.db"),
        LOG_DB=os.path.join(tmp_dir, "app_log.db"),
        STATIC_FOLDER=static_dir,
        STORAGE_TYPE="local",
        ASSET_CLEANUP_SYNC=True,
        GOOGLE_CLIENT_ID=CLIENT_ID,
        ALLOWED_ORIGINS=["http://localhost:3000"],
        NEW_USERS_ALLOWED=True,
        ADMIN_EMAILS=[ADMIN_EMAIL],
        ENFORCE_ALLOW_LIST=True,
    )
    KistPark(app)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_module_caches():
    assets._deleted_urls.clear()
    tokens.clear_certs_cache()
    yield
    assets._deleted_urls.clear()
    tokens.clear_certs_cache()


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_tokens(monkeypatch):
    """Replace Google verification with a lookup in FAKE_TOKENS."""
    def verify(token, audience=None):
        if token == 'expired-token':
            raise tokens.TokenExpiredError('Token expired')
        if token not in FAKE_TOKENS:
            raise tokens.TokenError('Invalid token: unknown test token')
        return dict(FAKE_TOKENS[token], iss='https://accounts.google.com', aud=CLIENT_ID)

    monkeypatch.setattr(tokens, 'verify_id_token', verify)
    return verify


@pytest.fixture
def users(app, fake_tokens):
    """Admin, staff and blocked accounts, as created by their first sign-in."""
    with app.app_context():
        admin, _ = UserDatabase.find_or_create(ADMIN_EMAIL, name='Park Admin')
        staff, _ = UserDatabase.find_or_create(STAFF_EMAIL, name='Park Staff')
        blocked, _ = UserDatabase.find_or_create(BLOCKED_EMAIL, name='Blocked User')
        blocked = UserDatabase.update_user(blocked['id'], is_allowed=False)
    return {'admin': admin, 'staff': staff, 'blocked': blocked}


@pytest.fixture
def auth_headers(users):
    return {'Authorization': 'Bearer staff-token'}


@pytest.fixture
def admin_headers(users):
    return {'Authorization': 'Bearer admin-token'}


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

def image_bytes(width=64, height=48, fmt='PNG', color=(200, 30, 30), noise=False, quality=95):
    if noise:
        img = Image.frombytes('RGB', (width, height), os.urandom(width * height * 3))
    else:
        img = Image.new('RGB', (width, height), color)
    buf = io.BytesIO()
    if fmt == 'JPEG':
        img.save(buf, format=fmt, quality=quality)
    else:
        img.save(buf, format=fmt)
    return buf.getvalue()


def to_data_uri(raw, mime='image/png'):
    return f"data:{mime};base64,{base64.b64encode(raw).decode('ascii')}"


@pytest.fixture
def make_data_uri():
    """Factory for base64 image data URIs like the admin client sends."""
    def _make(width=64, height=48, fmt='PNG', **kwargs):
        mime = {'PNG': 'image/png', 'JPEG': 'image/jpeg', 'GIF': 'image/gif'}.get(fmt, 'image/png')
        return to_data_uri(image_bytes(width, height, fmt, **kwargs), mime)
    return _make


@pytest.fixture
def stored_file(static_dir):
    """Map a /static/... URL back to its path on disk."""
    def _path(url):
        return os.path.join(static_dir, url[len('/static/'):])
    return _path


@pytest.fixture
def make_image_bytes():
    """Factory for raw encoded image bytes."""
    return image_bytes
