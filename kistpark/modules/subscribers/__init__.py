"""
Subscribers Module
==================

Provides:
- Public API for newsletter subscriptions
- Subscriber list, bulk delete and CSV export for the admin console
"""

from flask import Blueprint

subscribers_bp = Blueprint('subscribers', __name__, url_prefix='/api/v1/subscribers')

from . import routes

__all__ = ['subscribers_bp']
