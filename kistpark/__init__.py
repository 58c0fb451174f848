"""
KIST Park Admin
===============

REST API behind the KIST Park admin console: highlights, press releases,
categories, newsletter subscribers and the user allow-list, secured with
Google sign-in.

Usage:
    from flask import Flask
    from kistpark import KistPark

    app = Flask(__name__)
    KistPark(app)                      # every module
    KistPark(app, {'features': {'subscribers': False}})
"""

__version__ = '1.0.0'

import logging
import os

import click
from flask import jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from .core.config import Config
from .core.logging_service import LoggingService

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'auth': True,
    'categories': True,
    'highlights': True,
    'press_releases': True,
    'subscribers': True,
    'sdg': True,
}

DATABASE_FILES = (
    ('CONTENT_DB', 'content.db'),
    ('USER_DB', 'users.db'),
    ('LOG_DB', 'app_log.db'),
)

ERROR_MESSAGES = {
    400: 'Bad request',
    404: 'Resource not found',
    405: 'Method not allowed',
    413: 'Request body too large',
}


class KistPark:
    """Flask extension that registers the admin API on an app"""

    def __init__(self, app=None, config=None):
        self.config = config or {}
        self.features = dict(DEFAULT_FEATURES, **self.config.get('features', {}))
        self.registered_modules = []
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        self._load_config(app)
        self._setup_cors(app)
        self._register_modules(app)
        self._register_error_handlers(app)
        self._register_request_checks(app)
        self._register_request_logging(app)
        self._register_cli(app)

        with app.app_context():
            self.init_databases()

        app.extensions['kistpark'] = self
        logger.info(f"KIST Park initialised with modules: {', '.join(self.registered_modules)}")

    def get_registered_modules(self):
        return list(self.registered_modules)

    # ===== Setup =====

    def _load_config(self, app):
        db_dir = app.config.setdefault('DB_DIR', Config.DB_DIR)
        # DB files follow DB_DIR unless configured one by one
        for key, filename in DATABASE_FILES:
            if key not in app.config and not os.getenv(key):
                app.config[key] = os.path.join(db_dir, filename)

        app.config.setdefault('STATIC_FOLDER', app.static_folder or Config.STATIC_FOLDER)
        for key in dir(Config):
            if key.isupper():
                app.config.setdefault(key, getattr(Config, key))

        # Keys Flask pre-populates with None
        for key in ('SECRET_KEY', 'MAX_CONTENT_LENGTH'):
            if app.config.get(key) is None:
                app.config[key] = getattr(Config, key)

        os.makedirs(db_dir, exist_ok=True)

    def _setup_cors(self, app):
        origins = app.config.get('ALLOWED_ORIGINS') or []
        if isinstance(origins, str):
            origins = [origin.strip() for origin in origins.split(',') if origin.strip()]
        CORS(app, origins=origins, supports_credentials=True, expose_headers=['x-total-count'])

    def _register_modules(self, app):
        if self.features.get('auth'):
            from .modules.auth import auth_bp, users_bp, user_management_bp
            app.register_blueprint(auth_bp)
            app.register_blueprint(users_bp)
            app.register_blueprint(user_management_bp)
            self.registered_modules.append('auth')

        if self.features.get('categories'):
            from .modules.categories import categories_bp
            app.register_blueprint(categories_bp)
            self.registered_modules.append('categories')

        if self.features.get('highlights'):
            from .modules.highlights import highlights_bp, highlights_web_bp
            app.register_blueprint(highlights_bp)
            app.register_blueprint(highlights_web_bp)
            self.registered_modules.append('highlights')

        if self.features.get('press_releases'):
            from .modules.press_releases import press_releases_bp, press_releases_web_bp
            app.register_blueprint(press_releases_bp)
            app.register_blueprint(press_releases_web_bp)
            self.registered_modules.append('press_releases')

        if self.features.get('subscribers'):
            from .modules.subscribers import subscribers_bp
            app.register_blueprint(subscribers_bp)
            self.registered_modules.append('subscribers')

        if self.features.get('sdg'):
            from .modules.sdg import sdg_bp
            app.register_blueprint(sdg_bp)
            self.registered_modules.append('sdg')

        if not any(rule.rule == '/' for rule in app.url_map.iter_rules()):
            app.add_url_rule('/', 'kistpark_index', lambda: jsonify({'message': 'Welcome to KIST Park Admin!'}))

    def _register_error_handlers(self, app):
        def handle_http_error(error):
            message = ERROR_MESSAGES.get(error.code, error.description)
            return jsonify({'message': message}), error.code

        def handle_unexpected_error(error):
            logger.exception(f"Unhandled error on {request.method} {request.path}")
            LoggingService.log_error_with_traceback('app', error, {'path': request.path})
            return jsonify({'message': 'Internal server error'}), 500

        app.register_error_handler(HTTPException, handle_http_error)
        app.register_error_handler(Exception, handle_unexpected_error)

    def _register_request_checks(self, app):
        @app.before_request
        def require_json_object():
            # Handlers read fields with .get(), so arrays and scalars stop here
            if request.method in ('POST', 'PUT', 'PATCH') and request.is_json:
                data = request.get_json(silent=True)
                if data is not None and not isinstance(data, dict):
                    return jsonify({'message': 'Request body must be a JSON object'}), 400

    def _register_request_logging(self, app):
        @app.after_request
        def log_api_call(response):
            if (app.config.get('LOG_API_CALLS') and request.path.startswith('/api/')
                    and request.method != 'OPTIONS'):
                LoggingService.log_api_call('api', request.path, request.method, response.status_code)
            return response

    def _register_cli(self, app):
        @app.cli.command('init-db')
        def init_db_command():
            """Create all tables."""
            self.init_databases()
            click.echo('Databases initialized')

        @app.cli.command('seed-sdgs')
        def seed_sdgs_command():
            """Reset the SDG reference list."""
            from .modules.sdg.routes import seed_sdgs
            click.echo(f'Seeded {seed_sdgs()} SDGs')

        @app.cli.command('grant-admin')
        @click.argument('email')
        def grant_admin_command(email):
            """Make an existing user an admin."""
            from .modules.auth.database import UserDatabase
            if not UserDatabase.grant_admin(email):
                raise click.ClickException(f'No user with email {email}, they must sign in once first')
            click.echo(f'{email} is now an admin')

        @app.cli.command('cleanup-logs')
        @click.option('--days', default=30, show_default=True, help='Keep this many days of logs.')
        def cleanup_logs_command(days):
            """Delete app_logs rows older than --days."""
            click.echo(f'Removed {LoggingService.cleanup_old_logs(days)} log entries')

    # ===== Databases =====

    def init_databases(self):
        """Create every table; safe to call repeatedly"""
        from .modules.auth.database import UserDatabase
        from .modules.categories.routes import init_categories_db
        from .modules.highlights.routes import init_highlights_db
        from .modules.press_releases.routes import init_press_releases_db
        from .modules.sdg.routes import init_sdg_db
        from .modules.subscribers.routes import init_subscribers_db

        LoggingService.init_logs_table()
        UserDatabase.init_users_table()
        init_categories_db()
        init_highlights_db()
        init_press_releases_db()
        init_subscribers_db()
        init_sdg_db()


__all__ = ['KistPark', '__version__']
