"""
Core database management for the roster system.
"""

import sqlite3
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional
from config.config_manager import ConfigManager
from models.errors import TransientBackendError

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages core database operations and initialization."""

    def __init__(self, db_path: str = "roster.db", config_file: str = "config.yaml",
                 config: Optional[Dict[str, Any]] = None, timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout
        self.config = config if config is not None else ConfigManager.load_config(config_file)
        self.init_database()

    @contextmanager
    def connection(self):
        """
        Yield a connection that commits on success and is always closed.
        Locked or unavailable databases surface as TransientBackendError.
        """
        try:
            conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        except sqlite3.OperationalError as e:
            logger.error(f"Could not open database {self.db_path}: {e}")
            raise TransientBackendError(f"Database unavailable: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.OperationalError as e:
            conn.rollback()
            logger.error(f"Database operation failed: {e}")
            raise TransientBackendError(f"Database operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_database(self) -> None:
        """Initialize the database with required tables."""
        with self.connection() as conn:
            cursor = conn.cursor()

            # Mirror of the host's user accounts
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS guardians (
                    guardian_id INTEGER PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE,
                    display_name TEXT DEFAULT '',
                    billing_state TEXT,
                    billing_city TEXT,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # One player list per guardian, stored as a JSON blob
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS guardian_players (
                    guardian_id INTEGER PRIMARY KEY,
                    players_json TEXT NOT NULL DEFAULT '[]',
                    updated_at REAL NOT NULL DEFAULT 0
                )
            """)

            # Mirror of the purchase subsystem's orders
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS orders (
                    order_id INTEGER PRIMARY KEY,
                    guardian_id INTEGER NOT NULL,
                    status TEXT NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS order_items (
                    item_id INTEGER PRIMARY KEY,
                    order_id INTEGER NOT NULL,
                    event_name TEXT DEFAULT '',
                    venue TEXT DEFAULT '',
                    end_date TEXT,
                    assigned_attendee_name TEXT,
                    player_record_index INTEGER,
                    player_id TEXT
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_orders_guardian ON orders(guardian_id, status)
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS player_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guardian_id INTEGER NOT NULL,
                    player_id TEXT,
                    player_index INTEGER,
                    first_name TEXT DEFAULT '',
                    last_name TEXT DEFAULT '',
                    change_type TEXT NOT NULL,
                    details TEXT,
                    changed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS correlation_conflicts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    guardian_id INTEGER,
                    order_id INTEGER,
                    item_id INTEGER,
                    stored_index INTEGER,
                    attendee_name TEXT,
                    index_name TEXT,
                    resolved_index INTEGER,
                    detected_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

            # One row per distinct conflict; NULLs are folded so repeats collide
            cursor.execute("""
                DELETE FROM correlation_conflicts WHERE id NOT IN (
                    SELECT MIN(id) FROM correlation_conflicts
                    GROUP BY IFNULL(guardian_id, -1), IFNULL(order_id, -1), IFNULL(item_id, -1),
                             IFNULL(stored_index, -1), IFNULL(resolved_index, -1)
                )
            """)
            cursor.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_conflicts_unique ON correlation_conflicts(
                    IFNULL(guardian_id, -1), IFNULL(order_id, -1), IFNULL(item_id, -1),
                    IFNULL(stored_index, -1), IFNULL(resolved_index, -1)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    cache_key TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS cache_tags (
                    cache_key TEXT NOT NULL,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (cache_key, tag)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_cache_tags_tag ON cache_tags(tag)
            """)

            logger.info("Database initialized successfully")

    def get_database_stats(self) -> Dict[str, int]:
        """Get basic database statistics."""
        with self.connection() as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT COUNT(*) FROM guardians")
            guardians = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM guardian_players WHERE players_json != '[]'")
            guardians_with_players = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM player_history")
            history_records = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM correlation_conflicts")
            correlation_conflicts = cursor.fetchone()[0]

            cursor.execute("SELECT COUNT(*) FROM orders")
            orders = cursor.fetchone()[0]

            return {
                'guardians': guardians,
                'guardians_with_players': guardians_with_players,
                'history_records': history_records,
                'correlation_conflicts': correlation_conflicts,
                'orders': orders
            }
