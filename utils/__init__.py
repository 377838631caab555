"""
Utility functions package for the roster system.
"""

from .name_utils import NameUtils
from .text_utils import TextUtils
from .guardian_locks import GuardianLockRegistry
from .scan_budget import ScanBudget, scan_batches

__all__ = ['NameUtils', 'TextUtils', 'GuardianLockRegistry', 'ScanBudget', 'scan_batches']
