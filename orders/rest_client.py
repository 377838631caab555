"""
REST order source for shops exposing the WooCommerce orders API.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from models.order import Order, OrderLineItemReference
from models.errors import RosterError, TransientBackendError

logger = logging.getLogger(__name__)

# Line item meta keys written by the shop's checkout
ATTENDEE_META_KEY = 'Assigned Attendee'
PLAYER_INDEX_META_KEY = 'intersoccer_player_index'
PLAYER_ID_META_KEY = 'roster_player_id'
VENUE_META_KEY = 'Venue'
END_DATE_META_KEYS = ('End Date', 'Start/End Dates')


def parse_index(value: Any) -> Optional[int]:
    """Stored indexes arrive as strings; anything that is not a non-negative integer is dropped."""
    if value is None or value == '':
        return None
    try:
        index = int(str(value).strip())
    except ValueError:
        return None
    return index if index >= 0 else None


def parse_end_date(value: Any) -> Optional[str]:
    """'Start/End Dates' holds 'start - end'; keep the end part."""
    if not value:
        return None
    text = str(value).strip()
    if ' - ' in text:
        text = text.rsplit(' - ', 1)[1].strip()
    return text or None


class WooCommerceOrderClient:
    """Reads a guardian's orders from the shop's REST API."""

    def __init__(self, config: Dict[str, Any], session: Optional[requests.Session] = None):
        api_config = config.get('api', {})
        self.base_url = (api_config.get('base_url') or '').rstrip('/')
        self.orders_path = api_config.get('orders_path', '/wp-json/wc/v3/orders')
        self.timeout = api_config.get('timeout', 30)
        self.per_page = api_config.get('per_page', 100)
        self.session = session or requests.Session()
        if api_config.get('consumer_key'):
            self.session.auth = (api_config['consumer_key'], api_config.get('consumer_secret', ''))

    def get_orders(self, guardian_id: int, statuses: Optional[Iterable[str]] = None) -> List[Order]:
        """Fetch every page of a guardian's orders in the given statuses."""
        if not self.base_url:
            raise RosterError("No order API base_url configured")

        params = {'customer': guardian_id, 'per_page': self.per_page, 'orderby': 'id', 'order': 'asc'}
        if statuses is not None:
            statuses = list(statuses)
            if not statuses:
                return []
            params['status'] = ','.join(statuses)

        orders = []
        page = 1
        while True:
            params['page'] = page
            payload = self._get(f"{self.base_url}{self.orders_path}", params)
            if not isinstance(payload, list):
                logger.warning(f"Unexpected order payload for guardian {guardian_id}, ignoring page {page}")
                break

            for entry in payload:
                order = self._parse_order(entry, guardian_id)
                if order is not None:
                    orders.append(order)

            if len(payload) < self.per_page:
                break
            page += 1

        logger.debug(f"Fetched {len(orders)} orders for guardian {guardian_id}")
        return orders

    def _get(self, url: str, params: Dict[str, Any]) -> Any:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.error(f"Order API unreachable: {e}")
            raise TransientBackendError(f"Order API unreachable: {e}") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.error(f"Order API returned HTTP {status}: {e}")
            if status is None or status >= 500 or status == 429:
                raise TransientBackendError(f"Order API returned HTTP {status}") from e
            raise RosterError(f"Order API rejected the request (HTTP {status})") from e
        except ValueError as e:
            logger.error(f"Order API returned invalid JSON: {e}")
            raise TransientBackendError("Order API returned invalid JSON") from e

    def _parse_order(self, entry: Any, guardian_id: int) -> Optional[Order]:
        try:
            order = Order(
                order_id=int(entry['id']),
                guardian_id=int(entry.get('customer_id') or guardian_id),
                status=str(entry['status']),
                created_at=entry.get('date_created')
            )
            for item in entry.get('line_items') or []:
                parsed = self._parse_line_item(item, order.order_id)
                if parsed is not None:
                    order.line_items.append(parsed)
            return order
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed order for guardian {guardian_id}: {e}")
            return None

    def _parse_line_item(self, item: Dict[str, Any], order_id: int) -> Optional[OrderLineItemReference]:
        try:
            meta = {
                entry.get('key'): entry.get('value')
                for entry in item.get('meta_data') or []
                if isinstance(entry, dict)
            }
            end_date = None
            for key in END_DATE_META_KEYS:
                end_date = parse_end_date(meta.get(key))
                if end_date:
                    break

            return OrderLineItemReference(
                item_id=int(item['id']),
                order_id=order_id,
                event_name=str(item.get('name') or ''),
                venue=str(meta.get(VENUE_META_KEY) or ''),
                end_date=end_date,
                assigned_attendee_name=meta.get(ATTENDEE_META_KEY) or None,
                player_record_index=parse_index(meta.get(PLAYER_INDEX_META_KEY)),
                player_id=meta.get(PLAYER_ID_META_KEY) or None
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed line item in order {order_id}: {e}")
            return None
