"""
Event participation counting for player records.

Counts are never stored: each call scans the guardian's orders in the
counted statuses and resolves every line item to a record through the
identity matcher. count_all() caches the per-guardian result.
"""

import hashlib
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from models.order import Order, OrderLineItemReference
from matching.identity_matcher import IdentityMatcher
from database.cache_manager import guardian_tag
from models.errors import NotFoundError

logger = logging.getLogger(__name__)

DEFAULT_EVENT_DATE_FORMAT = '%d/%m/%Y'


@dataclass
class StatusPolicy:
    """Which order statuses count as attended events."""
    statuses: List[str] = field(default_factory=lambda: ['completed', 'processing'])
    optional_statuses: List[str] = field(default_factory=lambda: ['on-hold', 'pending'])
    include_optional: bool = False

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'StatusPolicy':
        participation = config.get('participation', {})
        defaults = cls()
        return cls(
            statuses=list(participation.get('statuses', defaults.statuses)),
            optional_statuses=list(participation.get('optional_statuses', defaults.optional_statuses)),
            include_optional=bool(participation.get('include_optional', defaults.include_optional))
        )

    def counted_statuses(self) -> List[str]:
        statuses = list(self.statuses)
        if self.include_optional:
            statuses.extend(status for status in self.optional_statuses if status not in statuses)
        return statuses

    def includes(self, status: str) -> bool:
        return status in self.counted_statuses()

    def fingerprint(self) -> str:
        return hashlib.md5(','.join(sorted(self.counted_statuses())).encode('utf-8')).hexdigest()[:8]


def is_past_event(end_date: Optional[str], reference: date,
                  date_format: str = DEFAULT_EVENT_DATE_FORMAT) -> bool:
    """True when end_date parses and is before reference. Unparsable dates are never past."""
    if not end_date:
        return False
    try:
        parsed = datetime.strptime(str(end_date).strip(), date_format).date()
    except ValueError:
        logger.debug(f"Unparsable event end date '{end_date}', treating as upcoming")
        return False
    return parsed < reference


def is_well_formed_item(item: Any) -> bool:
    """A line item the matcher can safely read: an integer or missing index and a text or missing name."""
    if not isinstance(item, OrderLineItemReference):
        return False
    index = item.player_record_index
    if index is not None and (isinstance(index, bool) or not isinstance(index, int)):
        return False
    name = item.assigned_attendee_name
    return name is None or isinstance(name, str)


class ParticipationCounter:
    """Counts and lists the events each player record was bought for."""

    def __init__(self, player_store, order_source, config: Dict[str, Any],
                 matcher: Optional[IdentityMatcher] = None, cache_manager=None):
        self.player_store = player_store
        self.order_source = order_source
        self.matcher = matcher or player_store.matcher
        self.cache_manager = cache_manager
        self.policy = StatusPolicy.from_config(config)
        self.date_format = config.get('participation', {}).get('event_date_format', DEFAULT_EVENT_DATE_FORMAT)
        self.cache_ttl = config.get('directory', {}).get('cache_ttl_minutes', 30) * 60

    def count_events(self, guardian_id: int, player_index: int) -> int:
        """Number of counted line items attributed to the record at player_index."""
        records = self.player_store.list(guardian_id)
        self._check_index(guardian_id, player_index, records)
        return len(self._match_items(guardian_id, records).get(player_index, []))

    def count_all(self, guardian_id: int, refresh: bool = False) -> Dict[int, int]:
        """Counts for every record of a guardian from a single order scan."""
        key = f"participation_{guardian_id}_{self.policy.fingerprint()}"

        def compute():
            records = self.player_store.list(guardian_id)
            matches = self._match_items(guardian_id, records)
            return {str(index): len(matches.get(index, [])) for index in range(len(records))}

        if self.cache_manager:
            counts = self.cache_manager.get_or_compute(
                key, self.cache_ttl, compute, tags=[guardian_tag(guardian_id)], refresh=refresh
            )
        else:
            counts = compute()
        return {int(index): count for index, count in counts.items()}

    def get_attended_events(self, guardian_id: int, player_index: int,
                            reference: Optional[date] = None) -> List[Dict[str, Any]]:
        """Every counted event of a record, with a past flag."""
        reference = reference or date.today()
        records = self.player_store.list(guardian_id)
        self._check_index(guardian_id, player_index, records)

        events = []
        for order, item in self._match_items(guardian_id, records).get(player_index, []):
            events.append({
                'name': item.event_name,
                'date': item.end_date,
                'venue': item.venue,
                'order_id': order.order_id,
                'item_id': item.item_id,
                'status': order.status,
                'past': is_past_event(item.end_date, reference, self.date_format)
            })
        return events

    def get_past_events(self, guardian_id: int, player_index: int,
                        reference: Optional[date] = None) -> List[Dict[str, Any]]:
        """Counted events whose end date is before reference."""
        return [
            {'name': event['name'], 'date': event['date'], 'venue': event['venue'], 'order_id': event['order_id']}
            for event in self.get_attended_events(guardian_id, player_index, reference)
            if event['past']
        ]

    def _match_items(self, guardian_id: int, records) -> Dict[int, List[Tuple[Order, OrderLineItemReference]]]:
        matches: Dict[int, List[Tuple[Order, OrderLineItemReference]]] = {}
        if not records:
            return matches

        for order in self.order_source.get_orders(guardian_id, self.policy.counted_statuses()):
            if not isinstance(order, Order) or not self.policy.includes(getattr(order, 'status', None)):
                logger.warning(f"Skipping malformed or uncounted order for guardian {guardian_id}: {order!r}")
                continue

            for item in order.line_items or []:
                if not is_well_formed_item(item):
                    logger.warning(f"Skipping malformed line item in order {order.order_id}: {item!r}")
                    continue
                index = self.matcher.resolve(item, records, guardian_id)
                if index is not None:
                    matches.setdefault(index, []).append((order, item))
        return matches

    @staticmethod
    def _check_index(guardian_id: int, index: int, records) -> None:
        if not isinstance(index, int) or index < 0 or index >= len(records):
            raise NotFoundError(f"Guardian {guardian_id} has no player at index {index}")
