"""
Cache management for the roster system.

Entries are JSON values stored with an expiry time and a set of tags.
Store mutations invalidate by tag; everything else simply expires.
"""

import json
import logging
import time
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger(__name__)

DIRECTORY_TAG = 'directory'


def guardian_tag(guardian_id: int) -> str:
    return f"guardian:{guardian_id}"


class CacheManager:
    """Best-effort TTL cache backed by the roster database."""

    def __init__(self, database_manager, clock: Callable[[], float] = time.time):
        self.db_manager = database_manager
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT value_json, expires_at FROM cache_entries WHERE cache_key = ?
            """, (key,))
            row = cursor.fetchone()

            if row is None:
                return None

            if row['expires_at'] <= self.clock():
                cursor.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
                cursor.execute("DELETE FROM cache_tags WHERE cache_key = ?", (key,))
                return None

        try:
            return json.loads(row['value_json'])
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry {key}")
            self.delete(key)
            return None

    def set(self, key: str, value: Any, ttl_seconds: float, tags: Iterable[str] = ()) -> None:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO cache_entries (cache_key, value_json, expires_at)
                VALUES (?, ?, ?)
            """, (key, json.dumps(value), self.clock() + ttl_seconds))
            cursor.execute("DELETE FROM cache_tags WHERE cache_key = ?", (key,))
            cursor.executemany("""
                INSERT OR IGNORE INTO cache_tags (cache_key, tag) VALUES (?, ?)
            """, [(key, tag) for tag in set(tags)])

    def get_or_compute(self, key: str, ttl_seconds: float, compute_fn: Callable[[], Any],
                       tags: Iterable[str] = (), refresh: bool = False) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.
        refresh=True skips the lookup and always recomputes.
        """
        if not refresh:
            cached = self.get(key)
            if cached is not None:
                logger.debug(f"Cache hit for {key}")
                return cached

        value = compute_fn()
        self.set(key, value, ttl_seconds, tags)
        return value

    def delete(self, key: str) -> None:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM cache_entries WHERE cache_key = ?", (key,))
            cursor.execute("DELETE FROM cache_tags WHERE cache_key = ?", (key,))

    def invalidate_tag(self, tag: str) -> int:
        """Drop every entry carrying the tag. Returns the number of entries removed."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                DELETE FROM cache_entries WHERE cache_key IN (
                    SELECT cache_key FROM cache_tags WHERE tag = ?
                )
            """, (tag,))
            removed = cursor.rowcount
            cursor.execute("""
                DELETE FROM cache_tags WHERE cache_key IN (
                    SELECT cache_key FROM cache_tags WHERE tag = ?
                )
            """, (tag,))

        if removed:
            logger.debug(f"Invalidated {removed} cache entries tagged {tag}")
        return removed

    def invalidate_guardian(self, guardian_id: int) -> int:
        """Drop entries for one guardian and every cross-account view."""
        return self.invalidate_tag(guardian_tag(guardian_id)) + self.invalidate_tag(DIRECTORY_TAG)

    def clear(self) -> None:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM cache_entries")
            cursor.execute("DELETE FROM cache_tags")
        logger.info("All caches cleared")

    def purge_expired(self) -> int:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            now = self.clock()
            cursor.execute("""
                DELETE FROM cache_tags WHERE cache_key IN (
                    SELECT cache_key FROM cache_entries WHERE expires_at <= ?
                )
            """, (now,))
            cursor.execute("DELETE FROM cache_entries WHERE expires_at <= ?", (now,))
            return cursor.rowcount
