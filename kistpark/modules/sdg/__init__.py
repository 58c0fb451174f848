"""
SDG Module
==========

Reference list of the UN Sustainable Development Goals used to tag
highlights.
"""

from flask import Blueprint

sdg_bp = Blueprint('sdg', __name__, url_prefix='/api/v1/sdgs')

from . import routes

__all__ = ['sdg_bp']
