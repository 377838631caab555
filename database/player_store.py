"""
Player record storage for the roster system.

Each guardian owns one ordered list of player records, persisted as a JSON
blob in guardian_players. Records carry a stable player_id; the list
position is kept as a display and legacy-correlation view.
"""

import json
import logging
import sqlite3
import time
import uuid
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from models.player import PlayerRecord, GuardianAccount, EditResult, normalize_keys
from models.errors import DuplicateError, NotFoundError
from matching.identity_matcher import IdentityMatcher
from utils.guardian_locks import GuardianLockRegistry

logger = logging.getLogger(__name__)

LEGACY_ID_NAMESPACE = uuid.UUID('6f1c2a52-3c1e-4d0f-9a57-3f0b8e7d2c41')


def legacy_player_id(guardian_id: int, data: Dict[str, Any]) -> str:
    """Deterministic id for records stored before player ids existed."""
    data = normalize_keys(data)
    seed = '|'.join([
        str(guardian_id),
        str(data.get('first_name') or '').strip().lower(),
        str(data.get('last_name') or '').strip().lower(),
        str(data.get('date_of_birth') or '').strip()
    ])
    return uuid.uuid5(LEGACY_ID_NAMESPACE, seed).hex


class PlayerStore:
    """Per-guardian player lists with duplicate checks, history and cache invalidation."""

    def __init__(self, database_manager, cache_manager=None, history_manager=None,
                 matcher: Optional[IdentityMatcher] = None, locks: Optional[GuardianLockRegistry] = None,
                 clock: Callable[[], float] = time.time):
        self.db_manager = database_manager
        self.cache_manager = cache_manager
        self.history_manager = history_manager
        self.matcher = matcher or IdentityMatcher(history_manager)
        self.locks = locks or GuardianLockRegistry()
        self.clock = clock

    # Reads

    def list(self, guardian_id: int) -> List[PlayerRecord]:
        """All records of a guardian in insertion order."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            self._require_guardian(cursor, guardian_id)
            return self._load(cursor, guardian_id)

    def get(self, guardian_id: int, index: int) -> PlayerRecord:
        records = self.list(guardian_id)
        self._check_index(guardian_id, index, records)
        return records[index]

    def find_index(self, guardian_id: int, player_id: str) -> Optional[int]:
        """Current position of the record with this player id, or None."""
        for index, record in enumerate(self.list(guardian_id)):
            if record.player_id == player_id:
                return index
        return None

    def count_players(self, guardian_id: int) -> int:
        return len(self.list(guardian_id))

    def last_modified(self, guardian_id: int) -> float:
        """Time of the last observable change to a guardian's list, 0 if never written."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT updated_at FROM guardian_players WHERE guardian_id = ?", (guardian_id,))
            row = cursor.fetchone()
        return row['updated_at'] if row else 0

    def iter_guardian_batches(self, batch_size: int, offset: int = 0
                              ) -> List[Tuple[GuardianAccount, List[PlayerRecord], int]]:
        """
        One batch of guardians in guardian-id order, starting at offset.
        Each entry is (account, records, size of the stored blob in bytes).
        """
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT gp.guardian_id, gp.players_json,
                       g.email, g.display_name, g.billing_state, g.billing_city
                FROM guardian_players gp
                LEFT JOIN guardians g ON g.guardian_id = gp.guardian_id
                ORDER BY gp.guardian_id
                LIMIT ? OFFSET ?
            """, (batch_size, offset))
            rows = cursor.fetchall()

        batch = []
        for row in rows:
            account = GuardianAccount(
                guardian_id=row['guardian_id'],
                email=row['email'] or '',
                display_name=row['display_name'] or '',
                billing_state=row['billing_state'],
                billing_city=row['billing_city']
            )
            blob = row['players_json'] or '[]'
            batch.append((account, self._decode(row['guardian_id'], blob), len(blob.encode('utf-8'))))
        return batch

    # Mutations

    def add(self, guardian_id: int, submission: Dict[str, Any], today: Optional[date] = None) -> int:
        """
        Validate and append a player. Returns the new index.
        Raises ValidationError, DuplicateError or NotFoundError.
        """
        candidate = PlayerRecord.from_submission(submission, creation_timestamp=int(self.clock()), today=today)

        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)

                existing = self.matcher.find_duplicate(candidate, records)
                if existing is not None:
                    raise DuplicateError(
                        f"A player named {candidate.full_name} born {candidate.date_of_birth.isoformat()} "
                        f"is already registered. Edit the existing player instead.",
                        existing_index=existing
                    )

                records.append(candidate)
                index = len(records) - 1
                self._save(cursor, guardian_id, records)
                self._record(cursor, guardian_id, candidate, index, 'INSERT')

        logger.info(f"Added player {candidate.full_name} for guardian {guardian_id} at index {index}")
        self._invalidate(guardian_id)
        return index

    def edit(self, guardian_id: int, index: int, patch: Dict[str, Any],
             today: Optional[date] = None) -> EditResult:
        """
        Merge patch over the stored record and re-validate.
        Returns EditResult with changed=False when the patch alters nothing,
        in which case nothing is written.
        """
        patch = normalize_keys(patch)

        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)
                self._check_index(guardian_id, index, records)

                current = records[index]
                merged = current.to_submission()
                merged.update(patch)
                updated = PlayerRecord.from_submission(
                    merged,
                    creation_timestamp=current.creation_timestamp,
                    player_id=current.player_id,
                    ineligible=current.ineligible,
                    today=today
                )

                if updated == current:
                    logger.debug(f"No changes for player {current.full_name} of guardian {guardian_id}")
                    return EditResult(record=current, index=index, changed=False)

                existing = self.matcher.find_duplicate(updated, records, exclude_index=index)
                if existing is not None:
                    raise DuplicateError(
                        f"Another player named {updated.full_name} with the same date of birth "
                        f"is already registered at position {existing}.",
                        existing_index=existing
                    )

                records[index] = updated
                self._save(cursor, guardian_id, records)
                changed_fields = [name for name in merged if getattr(current, name) != getattr(updated, name)]
                self._record(cursor, guardian_id, updated, index, 'UPDATE', ', '.join(changed_fields))

        logger.info(f"Updated player {updated.full_name} for guardian {guardian_id}")
        self._invalidate(guardian_id)
        return EditResult(record=updated, index=index, changed=True)

    def delete(self, guardian_id: int, index: int) -> PlayerRecord:
        """Remove a record. Later records move up one position."""
        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)
                self._check_index(guardian_id, index, records)

                removed = records.pop(index)
                self._save(cursor, guardian_id, records)
                self._record(cursor, guardian_id, removed, index, 'DELETE')

        logger.info(f"Deleted player {removed.full_name} of guardian {guardian_id} at index {index}")
        self._invalidate(guardian_id)
        return removed

    def delete_all(self, guardian_id: int) -> int:
        """Remove a guardian's whole list and personal history. Returns the number of records removed."""
        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)
                cursor.execute("DELETE FROM guardian_players WHERE guardian_id = ?", (guardian_id,))
                if self.history_manager:
                    self.history_manager.erase_guardian_history(cursor, guardian_id)

        logger.info(f"Erased {len(records)} players of guardian {guardian_id}")
        if records:
            self._invalidate(guardian_id)
        return len(records)

    def set_ineligible(self, guardian_id: int, index: int, flag: bool = True) -> bool:
        """Set the administrative ineligible flag. Returns True when the flag changed."""
        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)
                self._check_index(guardian_id, index, records)

                record = records[index]
                if record.ineligible == flag:
                    return False

                record.ineligible = flag
                self._save(cursor, guardian_id, records)
                self._record(cursor, guardian_id, record, index, 'FLAG', 'ineligible' if flag else 'eligible')

        self._invalidate(guardian_id)
        return True

    def remove_where(self, guardian_id: int, predicate: Callable[[PlayerRecord], bool],
                     change_type: str = 'PURGE') -> List[PlayerRecord]:
        """Remove every record matching predicate in one write. Returns the removed records."""
        with self.locks.hold(guardian_id):
            with self.db_manager.connection() as conn:
                cursor = conn.cursor()
                self._require_guardian(cursor, guardian_id)
                records = self._load(cursor, guardian_id)

                kept, removed = [], []
                for index, record in enumerate(records):
                    if predicate(record):
                        removed.append(record)
                        self._record(cursor, guardian_id, record, index, change_type)
                    else:
                        kept.append(record)

                if removed:
                    self._save(cursor, guardian_id, kept)

        if removed:
            logger.info(f"Removed {len(removed)} players of guardian {guardian_id}")
            self._invalidate(guardian_id)
        return removed

    # Internals

    def _require_guardian(self, cursor: sqlite3.Cursor, guardian_id: int) -> None:
        cursor.execute("SELECT 1 FROM guardians WHERE guardian_id = ?", (guardian_id,))
        if cursor.fetchone() is None:
            cursor.execute("SELECT 1 FROM guardian_players WHERE guardian_id = ?", (guardian_id,))
            if cursor.fetchone() is None:
                raise NotFoundError(f"Guardian {guardian_id} does not exist")

    @staticmethod
    def _check_index(guardian_id: int, index: int, records: List[PlayerRecord]) -> None:
        if not isinstance(index, int) or index < 0 or index >= len(records):
            raise NotFoundError(f"Guardian {guardian_id} has no player at index {index}")

    def _load(self, cursor: sqlite3.Cursor, guardian_id: int) -> List[PlayerRecord]:
        cursor.execute("SELECT players_json FROM guardian_players WHERE guardian_id = ?", (guardian_id,))
        row = cursor.fetchone()
        return self._decode(guardian_id, row['players_json']) if row else []

    @staticmethod
    def _decode(guardian_id: int, blob: str) -> List[PlayerRecord]:
        try:
            entries = json.loads(blob or '[]')
        except ValueError:
            logger.error(f"Player list of guardian {guardian_id} is not valid JSON, treating it as empty")
            return []

        if not isinstance(entries, list):
            logger.error(f"Player list of guardian {guardian_id} is not a list, treating it as empty")
            return []

        records = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed player entry for guardian {guardian_id}")
                continue
            records.append(PlayerRecord.from_dict(entry, fallback_id=legacy_player_id(guardian_id, entry)))
        return records

    def _save(self, cursor: sqlite3.Cursor, guardian_id: int, records: List[PlayerRecord]) -> None:
        blob = json.dumps([record.to_dict() for record in records], ensure_ascii=False)
        cursor.execute("""
            INSERT OR REPLACE INTO guardian_players (guardian_id, players_json, updated_at)
            VALUES (?, ?, ?)
        """, (guardian_id, blob, self.clock()))

    def _record(self, cursor: sqlite3.Cursor, guardian_id: int, record: PlayerRecord,
                index: int, change_type: str, details: Optional[str] = None) -> None:
        if self.history_manager:
            self.history_manager.record_change(cursor, guardian_id, record, index, change_type, details)

    def _invalidate(self, guardian_id: int) -> None:
        if self.cache_manager:
            self.cache_manager.invalidate_guardian(guardian_id)
