import os
from dotenv import load_dotenv
from flask import current_app

load_dotenv(override=True)


def _env_bool(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_list(name, default=''):
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


class Config:
    """
    Base configuration for the KIST Park admin API.
    Every value can be overridden through app.config.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY') or os.getenv('SECRET_KEY')
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_CONTENT_LENGTH', str(50 * 1024 * 1024)))

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    STATIC_FOLDER = os.getenv('STATIC_FOLDER', os.path.join(os.getcwd(), 'static'))

    # Database paths - use environment variables or fallback to DB_DIR
    CONTENT_DB = os.getenv('CONTENT_DB', os.path.join(DB_DIR, "content.db"))
    USER_DB = os.getenv('USER_DB', os.path.join(DB_DIR, "users.db"))
    LOG_DB = os.getenv('LOG_DB', os.path.join(DB_DIR, "app_log.db"))

    # Google sign-in
    GOOGLE_CLIENT_ID = os.getenv('GOOGLE_CLIENT_ID')
    GOOGLE_CERTS_URL = os.getenv('GOOGLE_CERTS_URL', 'https://www.googleapis.com/oauth2/v3/certs')
    GOOGLE_CERTS_CACHE_SECONDS = int(os.getenv('GOOGLE_CERTS_CACHE_SECONDS', '3600'))

    # Access control
    ALLOWED_ORIGINS = _env_list('ALLOWED_ORIGINS', 'http://localhost:3000')
    NEW_USERS_ALLOWED = _env_bool('NEW_USERS_ALLOWED', True)
    ADMIN_EMAILS = [email.lower() for email in _env_list('ADMIN_EMAILS')]
    ENFORCE_ALLOW_LIST = _env_bool('ENFORCE_ALLOW_LIST', True)

    # Storage: 'local' or 'cloud' (DigitalOcean Spaces / any S3-compatible host)
    STORAGE_TYPE = os.getenv('STORAGE_TYPE', 'local')
    SPACES_REGION = os.getenv('SPACES_REGION')
    SPACES_NAME = os.getenv('SPACES_NAME')
    SPACES_KEY = os.getenv('SPACES_KEY')
    SPACES_SECRET = os.getenv('SPACES_SECRET')
    SPACES_FOLDER = os.getenv('SPACES_FOLDER', 'uploads')
    STORAGE_TIMEOUT = int(os.getenv('STORAGE_TIMEOUT', '30'))

    # Image pipeline
    UPLOAD_BUDGET_BYTES = int(os.getenv('UPLOAD_BUDGET_BYTES', str(10 * 1024 * 1024)))
    HIGHLIGHT_MAX_IMAGES = int(os.getenv('HIGHLIGHT_MAX_IMAGES', '10'))
    HIGHLIGHT_MAX_IMAGE_BYTES = int(os.getenv('HIGHLIGHT_MAX_IMAGE_BYTES', str(15 * 1024 * 1024)))
    HIGHLIGHT_IMAGE_WIDTH = int(os.getenv('HIGHLIGHT_IMAGE_WIDTH', '1200'))
    HIGHLIGHT_IMAGE_QUALITY = int(os.getenv('HIGHLIGHT_IMAGE_QUALITY', '80'))
    PRESS_RELEASE_MAX_IMAGE_BYTES = int(os.getenv('PRESS_RELEASE_MAX_IMAGE_BYTES', str(10 * 1024 * 1024)))
    PRESS_RELEASE_IMAGE_WIDTH = int(os.getenv('PRESS_RELEASE_IMAGE_WIDTH', '1024'))
    PRESS_RELEASE_IMAGE_QUALITY = int(os.getenv('PRESS_RELEASE_IMAGE_QUALITY', '60'))
    ASSET_CLEANUP_SYNC = _env_bool('ASSET_CLEANUP_SYNC', False)

    # Logging
    LOG_API_CALLS = _env_bool('LOG_API_CALLS', True)

    # Port for local server
    port = int(os.getenv('PORT', '8083'))


def get_config_value(key, default=None):
    """Resolve a setting: app.config first, then Config, then the environment."""
    try:
        if key in current_app.config:
            return current_app.config[key]
    except RuntimeError:
        pass
    value = getattr(Config, key, None)
    if value is not None:
        return value
    return os.getenv(key, default)
