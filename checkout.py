"""
Checkout: turns a user's cart into a pending order backed by a Stripe
hosted checkout session, and settles payment status from Stripe webhooks.

Order flow::

    pending/pending --checkout.session.completed--> pending/paid

The status axis (processing, shipped, ...) is only moved by admins, see
orders.py.
"""

import json
import uuid
from datetime import date
from typing import List, Optional

import structlog
from pydantic import BaseModel

from cart import CartService, require_user
from catalog import ProductCatalog
from database import ItemStore
from errors import EmptyCart, InsufficientStock, NotFound, UpstreamFailure, ValidationError
from keys import order_key, owner_index
from orders import OrderService
from payments import LineItem, PaymentEvent, StripeGateway
from pricing import compute_totals, to_cents
from schemas import Address, CartItem, Order, OrderItem, PaymentStatusChanges, utc_now
from settings import Settings

logger = structlog.get_logger(__name__)

PAID_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILED_EVENTS = ("checkout.session.async_payment_failed",)


class CheckoutResult(BaseModel):
    session_id: str
    url: Optional[str] = None
    order_id: str

    def to_public(self) -> dict:
        return {"sessionId": self.session_id, "url": self.url, "orderId": self.order_id}


class CheckoutService:
    def __init__(self, store: ItemStore, gateway: StripeGateway, settings: Settings):
        self.store = store
        self.gateway = gateway
        self.settings = settings
        self.catalog = ProductCatalog(store)
        self.cart = CartService(store, self.catalog)
        self.orders = OrderService(store)

    def _order_items(self, cart_items: List[CartItem]) -> List[OrderItem]:
        if not cart_items:
            raise EmptyCart()

        # Stock and price may have moved since the items were added.
        lines = []
        for entry in cart_items:
            product = self.catalog.find(entry.product_id)
            if product is None:
                raise NotFound(f"Product {entry.product_id} not found")
            if product.stock < entry.quantity:
                raise InsufficientStock(f"Insufficient stock for {product.name}")
            lines.append(
                OrderItem(
                    product_id=product.id,
                    quantity=entry.quantity,
                    price=product.price,
                    name=product.name,
                    image=product.thumbnail,
                )
            )
        return lines

    def _metadata(self, order_id, user_id, shipping, billing, delivery_date, gift_message) -> dict:
        return {
            "orderId": order_id,
            "userId": user_id,
            "shippingAddress": json.dumps(shipping.to_public()),
            "billingAddress": json.dumps(billing.to_public()),
            "deliveryDate": delivery_date.isoformat() if delivery_date else "",
            "giftMessage": gift_message or "",
        }

    def create_checkout_session(
        self,
        user_id: Optional[str],
        shipping_address: Optional[Address],
        billing_address: Optional[Address] = None,
        delivery_date: Optional[date] = None,
        gift_message: Optional[str] = None,
    ) -> CheckoutResult:
        user_id = require_user(user_id)
        if shipping_address is None:
            raise ValidationError("Shipping address is required")
        billing_address = billing_address or shipping_address

        cart_items = self.cart.list_items(user_id)
        lines = self._order_items(cart_items)
        totals = compute_totals((line.price, line.quantity) for line in lines)
        order_id = str(uuid.uuid4())

        line_items = [
            LineItem(name=line.name, unit_amount=to_cents(line.price), quantity=line.quantity, image=line.image)
            for line in lines
        ]
        if totals.tax > 0:
            line_items.append(LineItem(name="Sales tax", unit_amount=to_cents(totals.tax)))

        frontend = self.settings.frontend_origin.rstrip("/")
        session = self.gateway.create_session(
            line_items=line_items,
            shipping_amount=to_cents(totals.shipping),
            success_url=f"{frontend}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
            cancel_url=f"{frontend}/checkout/cancel",
            metadata=self._metadata(order_id, user_id, shipping_address, billing_address, delivery_date, gift_message),
            client_reference_id=order_id,
        )

        now = utc_now()
        order = Order(
            id=order_id,
            user_id=user_id,
            payment_intent_id=session.payment_intent,
            stripe_session_id=session.id,
            items=lines,
            totals=totals,
            shipping_address=shipping_address,
            billing_address=billing_address,
            delivery_date=delivery_date,
            gift_message=gift_message or None,
            created_at=now,
            updated_at=now,
        )
        key = order_key(order_id)
        try:
            self.store.put(key, order.to_item(), index=owner_index(user_id, key))
        except UpstreamFailure:
            self.gateway.expire_session(session.id)
            raise
        logger.info("checkout_created", order_id=order_id, user_id=user_id, session_id=session.id, total=totals.total)

        try:
            self.cart.clear(user_id, cart_items)
        except UpstreamFailure as exc:
            # The order stands; leftover cart items can be removed by the user.
            logger.warning("cart_clear_failed", order_id=order_id, user_id=user_id, error=exc.error)

        return CheckoutResult(session_id=session.id, url=session.url, order_id=order_id)

    def _set_payment_status(self, event: PaymentEvent, status: str):
        order_id = event.order_id
        if not order_id:
            logger.warning("webhook_without_order", event_type=event.type, event_id=event.id)
            return
        order = self.orders.find(order_id)
        if order is None:
            logger.warning("webhook_unknown_order", event_type=event.type, order_id=order_id)
            return
        if status == "failed" and order.payment_status == "paid":
            return
        self.store.update(order_key(order_id), PaymentStatusChanges(payment_status=status, updated_at=utc_now()))
        logger.info("payment_status_updated", order_id=order_id, payment_status=status, event_type=event.type)

    def handle_payment_webhook(self, raw_body: bytes, signature: Optional[str]) -> PaymentEvent:
        event = self.gateway.parse_webhook(raw_body, signature)
        if event.type in PAID_EVENTS:
            self._set_payment_status(event, "paid")
        elif event.type in FAILED_EVENTS:
            self._set_payment_status(event, "failed")
        else:
            logger.debug("webhook_ignored", event_type=event.type)
        return event
