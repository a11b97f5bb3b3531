"""
Order reads and administrative status changes.
"""

from typing import List, Optional

import structlog

from cart import require_user
from database import ItemStore
from errors import Forbidden, InvalidStatus, NotFound
from keys import KeyKind, order_key, user_partition
from schemas import ORDER_STATUSES, Order, OrderStatusChanges, utc_now

logger = structlog.get_logger(__name__)

ORDER_PREFIX = KeyKind.ORDER.value + "#"


class OrderService:
    def __init__(self, store: ItemStore):
        self.store = store

    def find(self, order_id: str) -> Optional[Order]:
        item = self.store.get(order_key(order_id))
        return Order.from_item(item) if item else None

    def list_orders(self, user_id: Optional[str]) -> List[Order]:
        user_id = require_user(user_id)
        items = self.store.query_index(user_partition(user_id), ORDER_PREFIX, newest_first=True)
        return [Order.from_item(i) for i in items]

    def get_order(self, user_id: Optional[str], order_id: str) -> Order:
        user_id = require_user(user_id)
        order = self.find(order_id)
        if order is None:
            raise NotFound("Order not found")
        if order.user_id != user_id:
            raise Forbidden()
        return order

    def list_all_orders(self) -> List[Order]:
        return [Order.from_item(i) for i in self.store.scan_kind(KeyKind.ORDER, newest_first=True)]

    def update_order_status(self, order_id: str, status: str, tracking_number: Optional[str] = None) -> Order:
        if status not in ORDER_STATUSES:
            raise InvalidStatus()

        fields = {"status": status, "updated_at": utc_now()}
        if tracking_number:
            fields["tracking_number"] = tracking_number
        item = self.store.update(order_key(order_id), OrderStatusChanges(**fields))
        if item is None:
            raise NotFound("Order not found")

        logger.info("order_status_updated", order_id=order_id, status=status)
        return Order.from_item(item)
