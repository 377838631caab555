"""
Resource budget for bulk scans over guardian accounts.
"""

import logging
from typing import Tuple

from models.errors import ResourceBudgetExceeded
from .text_utils import TextUtils

logger = logging.getLogger(__name__)


class ScanBudget:
    """
    Counts batches and bytes consumed by a scan.

    charge() raises ResourceBudgetExceeded once either cap is reached so the
    caller can stop cooperatively and report partial results.
    """

    def __init__(self, max_batches: int, max_bytes: int = 0):
        self.max_batches = max_batches
        self.max_bytes = max_bytes
        self.batches = 0
        self.bytes_scanned = 0

    def charge(self, batch_bytes: int) -> None:
        self.batches += 1
        self.bytes_scanned += batch_bytes

        if self.max_batches and self.batches >= self.max_batches:
            logger.warning(f"Scan reached batch limit ({self.max_batches})")
            raise ResourceBudgetExceeded('batch limit reached', self.batches, self.bytes_scanned)

        if self.max_bytes and self.bytes_scanned >= self.max_bytes:
            logger.warning(f"Scan reached byte limit: {TextUtils.format_bytes(self.bytes_scanned)}")
            raise ResourceBudgetExceeded('byte limit reached', self.batches, self.bytes_scanned)


def scan_batches(fetch_batch, batch_size: int, budget: ScanBudget, visit) -> Tuple[int, bool]:
    """
    Feed every (account, records) pair to visit, batch by batch, until the
    data runs out or the budget is spent. A short batch ends the scan
    normally. Returns (guardians_scanned, truncated).
    """
    scanned = 0
    offset = 0
    while True:
        batch = fetch_batch(batch_size, offset)
        for account, records, _ in batch:
            visit(account, records)
        scanned += len(batch)

        if len(batch) < batch_size:
            return scanned, False
        offset += batch_size

        try:
            budget.charge(sum(size for _, _, size in batch))
        except ResourceBudgetExceeded as e:
            logger.warning(
                f"Scan stopped after {e.batches} batches, {scanned} guardians "
                f"({TextUtils.format_bytes(e.bytes_scanned)}): {e.reason}"
            )
            return scanned, True
