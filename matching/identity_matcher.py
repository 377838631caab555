"""
Duplicate detection and order-line attendee correlation.

Both checks are strict: names are compared case-insensitively after
whitespace trimming, never fuzzily, so two children sharing a name are
never merged by accident.
"""

import logging
from typing import List, Optional, Sequence, Tuple

from models.player import PlayerRecord
from models.order import OrderLineItemReference
from models.report import CorrelationConflict
from utils.name_utils import NameUtils

logger = logging.getLogger(__name__)


class IdentityMatcher:
    """Matches player submissions and order line items to stored records."""

    def __init__(self, history_manager=None):
        self.history_manager = history_manager

    def find_duplicate(self, candidate: PlayerRecord, records: Sequence[PlayerRecord],
                       exclude_index: Optional[int] = None) -> Optional[int]:
        """
        Return the index of a record with the same (first, last, dob) triple.
        The record at exclude_index is ignored so an edit never collides with itself.
        """
        key = candidate.identity_key
        for index, record in enumerate(records):
            if index == exclude_index:
                continue
            if record.identity_key == key:
                return index
        return None

    def is_duplicate(self, candidate: PlayerRecord, records: Sequence[PlayerRecord],
                     exclude_index: Optional[int] = None) -> bool:
        return self.find_duplicate(candidate, records, exclude_index) is not None

    def find_by_name(self, attendee_name: Optional[str], records: Sequence[PlayerRecord]) -> List[int]:
        """Indexes of every record whose "first last" equals the attendee name."""
        if not NameUtils.normalize(attendee_name):
            return []
        return [
            index for index, record in enumerate(records)
            if NameUtils.names_match(record.full_name, attendee_name)
        ]

    def resolve_with_conflict(self, line_item: OrderLineItemReference, records: Sequence[PlayerRecord],
                              guardian_id: Optional[int] = None
                              ) -> Tuple[Optional[int], Optional[CorrelationConflict]]:
        """
        Resolve a line item to a record index.

        Precedence: stable player id, then the stored index corroborated by the
        attendee name. An item whose player id is gone belongs to a deleted
        record and stays unattributed. When index and name point at different
        records the name wins; when the name matches nothing the item is
        unattributed. Both disagreements are reported.
        """
        if line_item.player_id:
            for index, record in enumerate(records):
                if record.player_id == line_item.player_id:
                    return index, None
            logger.debug(f"Player id {line_item.player_id} on item {line_item.item_id} no longer exists")
            return None, None

        stored_index = line_item.player_record_index
        index_in_bounds = stored_index is not None and 0 <= stored_index < len(records)
        attendee_name = line_item.assigned_attendee_name
        name_matches = self.find_by_name(attendee_name, records)

        if index_in_bounds:
            if not NameUtils.normalize(attendee_name) or stored_index in name_matches:
                return stored_index, None

            resolved = name_matches[0] if name_matches else None
            conflict = CorrelationConflict(
                guardian_id=guardian_id,
                order_id=line_item.order_id,
                item_id=line_item.item_id,
                stored_index=stored_index,
                attendee_name=attendee_name,
                index_name=records[stored_index].full_name,
                resolved_index=resolved
            )
            return resolved, conflict

        if name_matches:
            if len(name_matches) > 1:
                logger.debug(f"Attendee '{attendee_name}' matches {len(name_matches)} records, using the first")
            return name_matches[0], None

        return None, None

    def resolve(self, line_item: OrderLineItemReference, records: Sequence[PlayerRecord],
                guardian_id: Optional[int] = None) -> Optional[int]:
        """Resolve a line item to a record index, reporting any conflict. None means unattributed."""
        resolved, conflict = self.resolve_with_conflict(line_item, records, guardian_id)
        if conflict:
            self._report_conflict(conflict)
        return resolved

    def _report_conflict(self, conflict: CorrelationConflict) -> None:
        if self.history_manager and not self.history_manager.record_conflict(conflict):
            logger.debug(f"Conflict on order {conflict.order_id} item {conflict.item_id} already recorded")
            return
        target = f"index {conflict.resolved_index}" if conflict.resolved_index is not None else "nobody"
        logger.warning(
            f"CORRELATION CONFLICT: order {conflict.order_id} item {conflict.item_id} stores index "
            f"{conflict.stored_index} ('{conflict.index_name}') but attendee '{conflict.attendee_name}'; "
            f"resolved to {target}"
        )
