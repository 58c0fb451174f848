"""
KIST Park Modules
=================

One package per admin resource. Each exposes its blueprint(s) and an
init_*_db() function that creates its tables.
"""
