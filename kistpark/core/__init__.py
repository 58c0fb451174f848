"""
KIST Park Core
==============

Core utilities and shared functionality for KIST Park modules.
"""

from .config import Config, get_config_value
from .database import Database, get_db_path
from .logging_service import LoggingService, db_log

__all__ = ['Config', 'get_config_value', 'Database', 'get_db_path', 'LoggingService', 'db_log']
