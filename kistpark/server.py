"""
KIST Park Admin Server
======================

Run with:
    python -m kistpark.server

Or through the Flask CLI (which also exposes init-db, seed-sdgs, grant-admin, cleanup-logs):
    flask --app kistpark.server run --port 8083
"""

import logging

from flask import Flask

from . import KistPark
from .core.config import Config


def create_app(overrides=None):
    app = Flask(__name__, static_folder=Config.STATIC_FOLDER, static_url_path='/static')
    if overrides:
        app.config.update(overrides)
    if app.config.get('STATIC_FOLDER'):
        app.static_folder = app.config['STATIC_FOLDER']

    KistPark(app)
    return app


def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    app = create_app()

    print("\n" + "=" * 60)
    print("KIST Park Admin API")
    print("=" * 60)
    print(f"API:        http://localhost:{Config.port}/api/v1")
    print(f"Origins:    {', '.join(Config.ALLOWED_ORIGINS)}")
    print(f"Storage:    {Config.STORAGE_TYPE}")
    print("=" * 60 + "\n")

    app.run(host='0.0.0.0', port=Config.port)


if __name__ == '__main__':
    main()
