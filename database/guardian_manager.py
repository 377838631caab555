"""
Guardian account mirror for the roster system.

Guardian accounts belong to the host platform. This table only mirrors the
fields the roster reads: email, display name and billing region.
"""

import logging
from typing import Optional, Tuple

from models.player import GuardianAccount
from models.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class GuardianManager:
    """Reads and mirrors host guardian accounts."""

    def __init__(self, database_manager):
        self.db_manager = database_manager

    def add_guardian(self, email: str, display_name: str = '', billing_state: Optional[str] = None,
                     billing_city: Optional[str] = None, guardian_id: Optional[int] = None) -> int:
        """Mirror a host account. Returns the guardian id."""
        email = (email or '').strip().lower()
        if not email or '@' not in email:
            raise ValidationError('email', f"'{email}' is not a valid email address.")

        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO guardians (guardian_id, email, display_name, billing_state, billing_city)
                VALUES (?, ?, ?, ?, ?)
            """, (guardian_id, email, display_name or '', billing_state, billing_city))
            new_id = cursor.lastrowid if guardian_id is None else guardian_id

        logger.info(f"Mirrored guardian account {new_id} ({email})")
        return new_id

    def ensure_guardian(self, email: str, display_name: str = '',
                        billing_state: Optional[str] = None) -> Tuple[int, bool]:
        """Return (guardian_id, created) for the account with this email."""
        existing = self.find_by_email(email)
        if existing:
            return existing.guardian_id, False
        return self.add_guardian(email, display_name, billing_state), True

    def find_by_email(self, email: str) -> Optional[GuardianAccount]:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, email, display_name, billing_state, billing_city
                FROM guardians WHERE email = ?
            """, ((email or '').strip().lower(),))
            row = cursor.fetchone()
        return self._row_to_account(row) if row else None

    def get_guardian(self, guardian_id: int) -> GuardianAccount:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT guardian_id, email, display_name, billing_state, billing_city
                FROM guardians WHERE guardian_id = ?
            """, (guardian_id,))
            row = cursor.fetchone()

        if row is None:
            raise NotFoundError(f"Guardian {guardian_id} does not exist")
        return self._row_to_account(row)

    def guardian_exists(self, guardian_id: int) -> bool:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT 1 FROM guardians WHERE guardian_id = ?", (guardian_id,))
            return cursor.fetchone() is not None

    def count_guardians(self) -> int:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT COUNT(*) FROM guardians")
            return cursor.fetchone()[0]

    @staticmethod
    def _row_to_account(row) -> GuardianAccount:
        return GuardianAccount(
            guardian_id=row['guardian_id'],
            email=row['email'],
            display_name=row['display_name'] or '',
            billing_state=row['billing_state'],
            billing_city=row['billing_city']
        )
