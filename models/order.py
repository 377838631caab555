"""
Order data models consumed by the roster system.

Orders belong to the purchase subsystem; the roster only reads the
attendee correlation fields carried by each line item.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class OrderLineItemReference:
    """One purchased event slot and its attendee correlation fields."""
    item_id: int
    order_id: int
    event_name: str = ''
    venue: str = ''
    end_date: Optional[str] = None
    assigned_attendee_name: Optional[str] = None
    player_record_index: Optional[int] = None
    player_id: Optional[str] = None


@dataclass
class Order:
    """A guardian's purchase order."""
    order_id: int
    guardian_id: int
    status: str
    created_at: Optional[str] = None
    line_items: List[OrderLineItemReference] = field(default_factory=list)

    def __post_init__(self):
        if self.line_items is None:
            self.line_items = []
