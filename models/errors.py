"""
Error types for the player roster system.
"""

from typing import Optional


class RosterError(Exception):
    """Base class for all roster errors."""


class ValidationError(RosterError):
    """A submitted field is missing, malformed or too long."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class DuplicateError(RosterError):
    """A player with the same first name, last name and date of birth already exists."""

    def __init__(self, message: str, existing_index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.existing_index = existing_index


class NotFoundError(RosterError):
    """The guardian or the player index does not exist."""


class TransientBackendError(RosterError):
    """The storage or order backend is temporarily unavailable. Callers may retry."""


class ResourceBudgetExceeded(RosterError):
    """A bulk scan reached its batch or byte cap."""

    def __init__(self, reason: str, batches: int, bytes_scanned: int):
        super().__init__(reason)
        self.reason = reason
        self.batches = batches
        self.bytes_scanned = bytes_scanned
