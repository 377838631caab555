"""
Report and directory models for the roster system.
"""

import hashlib
import json
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class DirectoryFilters:
    """Filters accepted by the administrative directory."""
    search: str = ''
    region: str = ''
    gender: str = ''
    age_group: str = ''

    def as_tuple(self) -> Tuple[str, str, str, str]:
        return (
            self.search.strip().lower(),
            self.region.strip(),
            self.gender.strip().lower(),
            self.age_group.strip()
        )

    def cache_key(self, page_number: int, page_size: int, reference_date: str) -> str:
        payload = json.dumps([self.as_tuple(), page_number, page_size, reference_date])
        return 'directory_' + hashlib.md5(payload.encode('utf-8')).hexdigest()


@dataclass
class DirectoryEntry:
    """A player record flattened with its guardian's fields for display."""
    guardian_id: int
    guardian_email: str
    guardian_name: str
    index: int
    player_id: str
    first_name: str
    last_name: str
    date_of_birth: Optional[str]
    gender: str
    national_insurance_number: str
    medical_conditions: str
    region: str
    creation_timestamp: int
    ineligible: bool
    age: Optional[int] = None
    age_group: Optional[str] = None
    event_count: Optional[int] = None


@dataclass
class DirectoryPage:
    """One page of the cross-account player directory."""
    page_number: int
    page_size: int
    total_items: int
    total_pages: int
    filtered_records: List[DirectoryEntry] = field(default_factory=list)
    truncated: bool = False
    guardians_scanned: int = 0
    from_cache: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DirectoryPage':
        records = [DirectoryEntry(**entry) for entry in data.get('filtered_records', [])]
        values = {key: value for key, value in data.items() if key != 'filtered_records'}
        return cls(filtered_records=records, **values)


@dataclass
class CorrelationConflict:
    """Index and name signals on a line item pointed at different records."""
    guardian_id: Optional[int]
    order_id: Optional[int]
    item_id: Optional[int]
    stored_index: Optional[int]
    attendee_name: Optional[str]
    index_name: Optional[str]
    resolved_index: Optional[int]


@dataclass
class ImportReport:
    """Result of a CSV import."""
    rows_total: int = 0
    imported: int = 0
    duplicates: int = 0
    errors: List[Tuple[int, str]] = field(default_factory=list)

    @property
    def rejected(self) -> int:
        return len(self.errors)

    def add_error(self, row_number: int, message: str) -> None:
        self.errors.append((row_number, message))


@dataclass
class MaintenanceReport:
    """Result of a bulk maintenance pass."""
    action: str
    dry_run: bool = False
    guardians_processed: int = 0
    records_examined: int = 0
    records_affected: int = 0
    errors: List[Tuple[int, str]] = field(default_factory=list)
    truncated: bool = False
