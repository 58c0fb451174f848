"""
Categories Module
=================

Highlight categories managed from the admin console.
"""

from flask import Blueprint

categories_bp = Blueprint('categories', __name__, url_prefix='/api/v1/categories')

from . import routes

__all__ = ['categories_bp']
