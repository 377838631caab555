"""
Database package for the roster system.
"""

from .database_manager import DatabaseManager
from .player_store import PlayerStore
from .guardian_manager import GuardianManager
from .history_manager import HistoryManager
from .cache_manager import CacheManager

__all__ = ['DatabaseManager', 'PlayerStore', 'GuardianManager', 'HistoryManager', 'CacheManager']
