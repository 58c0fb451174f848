"""
Press Releases Module
=====================

External coverage: each press release links out to a publisher's article
and carries a single cover image.
"""

from flask import Blueprint

press_releases_bp = Blueprint('press_releases', __name__, url_prefix='/api/v1/press-release')

press_releases_web_bp = Blueprint('press_releases_web', __name__, url_prefix='/api/v1/press-release-web')

from . import routes

__all__ = ['press_releases_bp', 'press_releases_web_bp']
