"""
Highlights Module
=================

Highlights are the main content type: titled stories tagged with SDGs,
an optional category, a location, an image gallery and rich-text content.

Provides:
- Admin CRUD with draft/published/rejected workflow (auth)
- Dashboard feed of recent published highlights (auth)
- Read-only public feed for the website
"""

from flask import Blueprint

highlights_bp = Blueprint('highlights', __name__, url_prefix='/api/v1/highlights')

highlights_web_bp = Blueprint('highlights_web', __name__, url_prefix='/api/v1/highlights-web')

from . import routes

__all__ = ['highlights_bp', 'highlights_web_bp']
