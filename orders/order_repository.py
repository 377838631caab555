"""
Local mirror of the purchase subsystem's orders.

The roster reads orders by guardian and status. The only write it performs
is tagging a line item with the attendee it was bought for.
"""

import logging
from typing import Dict, Iterable, List, Optional

from models.order import Order, OrderLineItemReference
from models.errors import NotFoundError

logger = logging.getLogger(__name__)


class OrderRepository:
    """Orders and line items stored in the roster database."""

    def __init__(self, database_manager, player_store=None, cache_manager=None):
        self.db_manager = database_manager
        self.player_store = player_store
        self.cache_manager = cache_manager

    def add_order(self, order: Order) -> int:
        """Insert or replace an order together with its line items."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT OR REPLACE INTO orders (order_id, guardian_id, status, created_at)
                VALUES (?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))
            """, (order.order_id, order.guardian_id, order.status, order.created_at))
            cursor.execute("DELETE FROM order_items WHERE order_id = ?", (order.order_id,))
            for item in order.line_items:
                self._insert_item(cursor, order.order_id, item)

        logger.debug(f"Stored order {order.order_id} with {len(order.line_items)} items")
        self._invalidate(order.guardian_id)
        return order.order_id

    def add_line_item(self, order_id: int, item: OrderLineItemReference) -> int:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT guardian_id FROM orders WHERE order_id = ?", (order_id,))
            row = cursor.fetchone()
            if row is None:
                raise NotFoundError(f"Order {order_id} does not exist")
            self._insert_item(cursor, order_id, item)

        self._invalidate(row['guardian_id'])
        return item.item_id

    def get_orders(self, guardian_id: int, statuses: Optional[Iterable[str]] = None) -> List[Order]:
        """A guardian's orders, optionally limited to the given statuses, oldest first."""
        query = "SELECT order_id, guardian_id, status, created_at FROM orders WHERE guardian_id = ?"
        params: list = [guardian_id]
        statuses = list(statuses) if statuses is not None else None
        if statuses is not None:
            if not statuses:
                return []
            query += f" AND status IN ({', '.join('?' for _ in statuses)})"
            params.extend(statuses)
        query += " ORDER BY order_id"

        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            orders = [self._row_to_order(row) for row in cursor.fetchall()]
            for order in orders:
                order.line_items = self._load_items(cursor, order.order_id)
        return orders

    def get_orders_by_guardian(self, statuses: Optional[Iterable[str]] = None) -> Dict[int, List[Order]]:
        """Every order grouped by guardian id."""
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT DISTINCT guardian_id FROM orders ORDER BY guardian_id")
            guardian_ids = [row['guardian_id'] for row in cursor.fetchall()]

        grouped = {}
        for guardian_id in guardian_ids:
            orders = self.get_orders(guardian_id, statuses)
            if orders:
                grouped[guardian_id] = orders
        return grouped

    def get_line_item(self, item_id: int) -> OrderLineItemReference:
        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM order_items WHERE item_id = ?", (item_id,))
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError(f"Order item {item_id} does not exist")
        return self._row_to_item(row)

    def assign_attendee(self, item_id: int, guardian_id: int, player_index: int) -> OrderLineItemReference:
        """
        Tag a line item with the player it was bought for: stable id, current
        position and a snapshot of the name.
        """
        if self.player_store is None:
            raise RuntimeError("assign_attendee requires a player store")

        record = self.player_store.get(guardian_id, player_index)

        with self.db_manager.connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                SELECT o.guardian_id FROM order_items i
                JOIN orders o ON o.order_id = i.order_id
                WHERE i.item_id = ?
            """, (item_id,))
            row = cursor.fetchone()
            if row is None or row['guardian_id'] != guardian_id:
                raise NotFoundError(f"Guardian {guardian_id} has no order item {item_id}")

            cursor.execute("""
                UPDATE order_items SET
                    player_id = ?, player_record_index = ?, assigned_attendee_name = ?
                WHERE item_id = ?
            """, (record.player_id, player_index, record.full_name, item_id))

        logger.info(f"Assigned {record.full_name} to order item {item_id}")
        self._invalidate(guardian_id)
        return self.get_line_item(item_id)

    def _insert_item(self, cursor, order_id: int, item: OrderLineItemReference) -> None:
        cursor.execute("""
            INSERT OR REPLACE INTO order_items (
                item_id, order_id, event_name, venue, end_date,
                assigned_attendee_name, player_record_index, player_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            item.item_id, order_id, item.event_name, item.venue, item.end_date,
            item.assigned_attendee_name, item.player_record_index, item.player_id
        ))

    def _load_items(self, cursor, order_id: int) -> List[OrderLineItemReference]:
        cursor.execute("SELECT * FROM order_items WHERE order_id = ? ORDER BY item_id", (order_id,))
        return [self._row_to_item(row) for row in cursor.fetchall()]

    @staticmethod
    def _row_to_order(row) -> Order:
        return Order(
            order_id=row['order_id'],
            guardian_id=row['guardian_id'],
            status=row['status'],
            created_at=row['created_at']
        )

    @staticmethod
    def _row_to_item(row) -> OrderLineItemReference:
        # Values are passed through as stored; the participation counter rejects malformed ones
        return OrderLineItemReference(
            item_id=row['item_id'],
            order_id=row['order_id'],
            event_name=row['event_name'] or '',
            venue=row['venue'] or '',
            end_date=row['end_date'],
            assigned_attendee_name=row['assigned_attendee_name'],
            player_record_index=row['player_record_index'],
            player_id=row['player_id']
        )

    def _invalidate(self, guardian_id: int) -> None:
        if self.cache_manager:
            self.cache_manager.invalidate_guardian(guardian_id)
