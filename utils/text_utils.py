"""
Text processing utilities for the roster system.
"""

from typing import Optional


class TextUtils:
    """Utilities for text processing and display."""

    @staticmethod
    def contains(haystack: Optional[str], needle: Optional[str]) -> bool:
        """Case-insensitive substring test."""
        if not needle:
            return True
        if not haystack:
            return False
        return needle.strip().lower() in str(haystack).lower()

    @staticmethod
    def format_bytes(size: float) -> str:
        """Format bytes into human readable format."""
        units = ['B', 'KB', 'MB', 'GB']
        unit = 0
        while size >= 1024 and unit < len(units) - 1:
            size /= 1024
            unit += 1
        return f"{round(size, 2)} {units[unit]}"
