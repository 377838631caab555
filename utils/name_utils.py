"""
Name utilities for attendee identity matching.
"""

import re
from typing import Optional, Tuple


class NameUtils:
    """Utilities for name processing and strict comparison."""

    @staticmethod
    def normalize(name: Optional[str]) -> str:
        """Lowercase, trim and collapse internal whitespace."""
        if name is None:
            return ""
        return re.sub(r'\s+', ' ', str(name)).strip().lower()

    @staticmethod
    def full_name(first_name: Optional[str], last_name: Optional[str]) -> str:
        """Join first and last name the way attendee snapshots are written."""
        return f"{first_name or ''} {last_name or ''}".strip()

    @staticmethod
    def names_match(left: Optional[str], right: Optional[str]) -> bool:
        """Case-insensitive exact comparison. Empty names never match."""
        left_normalized = NameUtils.normalize(left)
        return bool(left_normalized) and left_normalized == NameUtils.normalize(right)

    @staticmethod
    def split_full_name(name: Optional[str]) -> Tuple[str, str]:
        """
        Split "First Middle Last" into ("First", "Middle Last").
        A single token is returned as the first name with an empty last name.
        """
        parts = re.sub(r'\s+', ' ', str(name or '')).strip().split(' ', 1)
        if len(parts) == 1:
            return parts[0], ''
        return parts[0], parts[1]
