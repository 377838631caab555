"""
History management for the roster database system.
"""

import sqlite3
import logging
import pandas as pd
from typing import List, Dict, Any, Optional
from models.player import PlayerRecord
from models.report import CorrelationConflict

logger = logging.getLogger(__name__)


class HistoryManager:
    """Manages the audit trail of player changes and correlation conflicts."""

    def __init__(self, database_manager):
        self.db_manager = database_manager

    def record_change(self, cursor: sqlite3.Cursor, guardian_id: int, record: Optional[PlayerRecord],
                      index: Optional[int], change_type: str, details: Optional[str] = None) -> None:
        """Record a change in the player_history table, inside the caller's transaction."""
        cursor.execute("""
            INSERT INTO player_history (
                guardian_id, player_id, player_index, first_name, last_name, change_type, details
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            guardian_id,
            record.player_id if record else None,
            index,
            record.first_name if record else '',
            record.last_name if record else '',
            change_type,
            details
        ))

    def erase_guardian_history(self, cursor: sqlite3.Cursor, guardian_id: int) -> int:
        """Remove personal data from a guardian's history, leaving an anonymous ERASE marker."""
        cursor.execute("DELETE FROM player_history WHERE guardian_id = ?", (guardian_id,))
        removed = cursor.rowcount
        cursor.execute("DELETE FROM correlation_conflicts WHERE guardian_id = ?", (guardian_id,))
        self.record_change(cursor, guardian_id, None, None, 'ERASE', f"{removed} history rows removed")
        return removed

    def record_conflict(self, conflict: CorrelationConflict) -> bool:
        """
        Persist a correlation conflict for later review.
        Returns False when the same conflict is already on record.
        """
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR IGNORE INTO correlation_conflicts (
                    guardian_id, order_id, item_id, stored_index, attendee_name, index_name, resolved_index
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (conflict.guardian_id, conflict.order_id, conflict.item_id, conflict.stored_index,
                  conflict.attendee_name, conflict.index_name, conflict.resolved_index))
            return cursor.rowcount == 1

    def get_player_history(self, player_id: str) -> List[Dict[str, Any]]:
        """Get complete history for a specific player."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, player_index, change_type, first_name, last_name, details, changed_at
                FROM player_history
                WHERE player_id = ?
                ORDER BY id DESC
            """, (player_id,))
            return [dict(row) for row in cursor.fetchall()]

    def get_guardian_history(self, guardian_id: int) -> List[Dict[str, Any]]:
        """Get all changes made to one guardian's player list."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT player_id, player_index, change_type, first_name, last_name, details, changed_at
                FROM player_history
                WHERE guardian_id = ?
                ORDER BY id DESC
            """, (guardian_id,))
            return [dict(row) for row in cursor.fetchall()]

    def get_recent_changes(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Get recent changes across all guardians."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, player_id, change_type, first_name, last_name, changed_at
                FROM player_history
                ORDER BY id DESC
                LIMIT ?
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

    def get_changes_by_type(self, change_type: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get changes of a specific type (INSERT, UPDATE, DELETE, FLAG, PURGE, ERASE)."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, player_id, player_index, first_name, last_name, details, changed_at
                FROM player_history
                WHERE change_type = ?
                ORDER BY id DESC
                LIMIT ?
            """, (change_type, limit))
            return [dict(row) for row in cursor.fetchall()]

    def get_correlation_conflicts(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Get recent correlation conflicts for reporting."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, order_id, item_id, stored_index, attendee_name,
                       index_name, resolved_index, detected_at
                FROM correlation_conflicts
                ORDER BY id DESC
                LIMIT ?
            """, (limit,))
            return [dict(row) for row in cursor.fetchall()]

    def get_history_statistics(self) -> Dict[str, Any]:
        """Get statistics about player history."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()

            cursor.execute("SELECT COUNT(*) FROM player_history")
            total_records = cursor.fetchone()[0]

            cursor.execute("""
                SELECT change_type, COUNT(*)
                FROM player_history
                GROUP BY change_type
            """)
            changes_by_type = {row[0]: row[1] for row in cursor.fetchall()}

            cursor.execute("""
                SELECT COUNT(*) FROM player_history
                WHERE changed_at > datetime('now', '-30 days')
            """)
            recent_activity = cursor.fetchone()[0]

            cursor.execute("""
                SELECT guardian_id, COUNT(*) as change_count
                FROM player_history
                GROUP BY guardian_id
                ORDER BY change_count DESC
                LIMIT 10
            """)
            most_active_guardians = [{'guardian_id': row[0], 'changes': row[1]} for row in cursor.fetchall()]

            cursor.execute("SELECT COUNT(*) FROM correlation_conflicts")
            conflicts = cursor.fetchone()[0]

            return {
                'total_records': total_records,
                'changes_by_type': changes_by_type,
                'recent_activity_30_days': recent_activity,
                'most_active_guardians': most_active_guardians,
                'correlation_conflicts': conflicts
            }

    def export_history_to_csv(self, output_file: str, start_date: str = None, end_date: str = None) -> int:
        """
        Export player history to CSV file.
        Returns the number of records exported.
        """
        query = """
            SELECT guardian_id, player_id, player_index, first_name, last_name,
                   change_type, details, changed_at
            FROM player_history
        """

        conditions = []
        params = []
        if start_date:
            conditions.append("changed_at >= ?")
            params.append(start_date)
        if end_date:
            conditions.append("changed_at <= ?")
            params.append(end_date)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id DESC"

        with self.db_manager.connection() as conn:
            df = pd.read_sql_query(query, conn, params=params)

        if df.empty:
            logger.info("No history records found for export")
            return 0

        df.to_csv(output_file, index=False, encoding='utf-8')
        logger.info(f"Exported {len(df)} history records to {output_file}")
        return len(df)
