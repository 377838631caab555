"""
Cross-account player directory for administrators.

Guardians are read in guardian-id order, in batches much smaller than a
page, and every player record is flattened with its guardian's fields.
The scan stops at the configured batch and byte caps and then reports a
truncated result instead of failing.
"""

import logging
import math
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from models.player import GuardianAccount, PlayerRecord
from models.report import DirectoryEntry, DirectoryFilters, DirectoryPage
from matching.eligibility import EligibilityClassifier
from database.cache_manager import DIRECTORY_TAG
from utils.scan_budget import ScanBudget, scan_batches
from utils.text_utils import TextUtils

logger = logging.getLogger(__name__)


class DirectoryBuilder:
    """Builds filtered, paginated and cached pages of every player record."""

    def __init__(self, player_store, config: Dict[str, Any], cache_manager=None,
                 participation_counter=None, classifier: Optional[EligibilityClassifier] = None):
        self.player_store = player_store
        self.cache_manager = cache_manager
        self.participation_counter = participation_counter
        self.classifier = classifier or EligibilityClassifier(config)

        directory_config = config.get('directory', {})
        self.page_size = int(directory_config.get('page_size', 20))
        self.batch_size = int(directory_config.get('batch_size', 25))
        self.max_batches = int(directory_config.get('max_batches', 20))
        self.max_bytes = int(directory_config.get('max_bytes', 300 * 1024 * 1024))
        self.cache_ttl = int(directory_config.get('cache_ttl_minutes', 30)) * 60

    def build_page(self, filters: Optional[DirectoryFilters] = None, page_number: int = 1,
                   page_size: Optional[int] = None, reference_date: Optional[date] = None,
                   refresh: bool = False, include_event_counts: bool = False) -> DirectoryPage:
        """
        Return one 1-based page of the filtered directory.

        An out-of-range page number yields an empty page with the totals
        intact. refresh=True bypasses the cache.
        """
        filters = filters or DirectoryFilters()
        if page_size is None:
            page_size = self.page_size
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        reference_date = reference_date or date.today()

        cache_key = filters.cache_key(page_number, page_size, reference_date.isoformat())
        if include_event_counts:
            cache_key += '_events'

        if self.cache_manager and not refresh:
            cached = self.cache_manager.get(cache_key)
            if cached is not None:
                logger.debug(f"Directory page {page_number} served from cache")
                page = DirectoryPage.from_dict(cached)
                page.from_cache = True
                return page

        page = self._compute_page(filters, page_number, page_size, reference_date, include_event_counts)

        if self.cache_manager:
            self.cache_manager.set(cache_key, page.to_dict(), self.cache_ttl, tags=[DIRECTORY_TAG])
        return page

    def collect_entries(self, filters: Optional[DirectoryFilters] = None,
                        reference_date: Optional[date] = None) -> Tuple[List[DirectoryEntry], bool, int]:
        """
        Every entry passing filters as (entries, truncated, guardians_scanned).
        Used by exports that need the whole filtered set rather than a page.
        """
        filters = filters or DirectoryFilters()
        reference_date = reference_date or date.today()

        entries: List[DirectoryEntry] = []

        def visit(account: GuardianAccount, records: List[PlayerRecord]) -> None:
            for index, record in enumerate(records):
                entry = self._to_entry(account, index, record, reference_date)
                if self._matches(entry, filters):
                    entries.append(entry)

        budget = ScanBudget(self.max_batches, self.max_bytes)
        scanned, truncated = scan_batches(self.player_store.iter_guardian_batches, self.batch_size, budget, visit)
        return entries, truncated, scanned

    def _compute_page(self, filters: DirectoryFilters, page_number: int, page_size: int,
                      reference_date: date, include_event_counts: bool) -> DirectoryPage:
        entries, truncated, scanned = self.collect_entries(filters, reference_date)

        total_items = len(entries)
        total_pages = math.ceil(total_items / page_size)
        if 1 <= page_number <= total_pages:
            start = (page_number - 1) * page_size
            page_entries = entries[start:start + page_size]
        else:
            page_entries = []

        if include_event_counts and self.participation_counter:
            self._attach_event_counts(page_entries)

        logger.info(
            f"Directory page {page_number}/{total_pages}: {len(page_entries)} of {total_items} records, "
            f"{scanned} guardians scanned{' (truncated)' if truncated else ''}"
        )
        return DirectoryPage(
            page_number=page_number,
            page_size=page_size,
            total_items=total_items,
            total_pages=total_pages,
            filtered_records=page_entries,
            truncated=truncated,
            guardians_scanned=scanned
        )

    def _to_entry(self, account: GuardianAccount, index: int, record: PlayerRecord,
                  reference_date: date) -> DirectoryEntry:
        classification = self.classifier.classify(record.date_of_birth, reference_date)
        return DirectoryEntry(
            guardian_id=account.guardian_id,
            guardian_email=account.email,
            guardian_name=account.display_name,
            index=index,
            player_id=record.player_id,
            first_name=record.first_name,
            last_name=record.last_name,
            date_of_birth=record.date_of_birth.isoformat() if record.date_of_birth else None,
            gender=record.gender,
            national_insurance_number=record.national_insurance_number,
            medical_conditions=record.medical_conditions,
            region=record.region or account.region,
            creation_timestamp=record.creation_timestamp,
            ineligible=record.ineligible,
            age=classification.age if classification else None,
            age_group=classification.age_group if classification else None
        )

    @staticmethod
    def _matches(entry: DirectoryEntry, filters: DirectoryFilters) -> bool:
        search, region, gender, age_group = filters.as_tuple()

        if search and not any(
            TextUtils.contains(value, search)
            for value in (entry.first_name, entry.last_name, entry.national_insurance_number)
        ):
            return False
        if region and entry.region != region:
            return False
        if gender and entry.gender != gender:
            return False
        if age_group and entry.age_group != age_group:
            return False
        return True

    def _attach_event_counts(self, entries: List[DirectoryEntry]) -> None:
        counts_by_guardian: Dict[int, Dict[int, int]] = {}
        for entry in entries:
            if entry.guardian_id not in counts_by_guardian:
                counts_by_guardian[entry.guardian_id] = self.participation_counter.count_all(entry.guardian_id)
            entry.event_count = counts_by_guardian[entry.guardian_id].get(entry.index, 0)
