"""
Models package for the roster system.

This package contains all data models, dataclasses and error types used throughout the system.
"""

from .player import PlayerRecord, GuardianAccount, EditResult
from .order import Order, OrderLineItemReference
from .report import (
    DirectoryFilters, DirectoryEntry, DirectoryPage, CorrelationConflict,
    ImportReport, MaintenanceReport
)
from .errors import (
    RosterError, ValidationError, DuplicateError, NotFoundError,
    TransientBackendError, ResourceBudgetExceeded
)

__all__ = [
    'PlayerRecord', 'GuardianAccount', 'EditResult',
    'Order', 'OrderLineItemReference',
    'DirectoryFilters', 'DirectoryEntry', 'DirectoryPage', 'CorrelationConflict',
    'ImportReport', 'MaintenanceReport',
    'RosterError', 'ValidationError', 'DuplicateError', 'NotFoundError',
    'TransientBackendError', 'ResourceBudgetExceeded'
]
