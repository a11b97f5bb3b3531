"""
Stripe hosted checkout.
"""

import json
from typing import Dict, List, Optional

import stripe
import structlog
from pydantic import BaseModel, Field

from errors import InvalidSignature, UpstreamFailure

logger = structlog.get_logger(__name__)


class LineItem(BaseModel):
    name: str
    unit_amount: int = Field(..., ge=0, description="Unit price in cents")
    quantity: int = Field(1, ge=1)
    description: Optional[str] = None
    image: Optional[str] = None


class CheckoutSession(BaseModel):
    id: str
    url: Optional[str] = None
    payment_intent: Optional[str] = None


class PaymentEvent(BaseModel):
    id: Optional[str] = None
    type: str
    data: dict = Field(default_factory=dict)

    @property
    def session(self) -> dict:
        return self.data.get("object") or {}

    @property
    def order_id(self) -> Optional[str]:
        obj = self.session
        metadata = obj.get("metadata") or {}
        return metadata.get("orderId") or obj.get("client_reference_id")


class StripeGateway:
    def __init__(self, api_key: Optional[str], webhook_secret: Optional[str], currency: str = "usd"):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def _line_item(self, item: LineItem) -> dict:
        product_data = {"name": item.name, "images": [item.image] if item.image else []}
        if item.description:
            product_data["description"] = item.description
        return {
            "price_data": {
                "currency": self.currency,
                "product_data": product_data,
                "unit_amount": item.unit_amount,
            },
            "quantity": item.quantity,
        }

    def _shipping_option(self, amount: int) -> dict:
        return {
            "shipping_rate_data": {
                "type": "fixed_amount",
                "fixed_amount": {"amount": amount, "currency": self.currency},
                "display_name": "Free Shipping" if amount == 0 else "Standard Shipping",
                "delivery_estimate": {
                    "minimum": {"unit": "day", "value": 3},
                    "maximum": {"unit": "day", "value": 7},
                },
            }
        }

    def create_session(
        self,
        line_items: List[LineItem],
        shipping_amount: int,
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        client_reference_id: Optional[str] = None,
    ) -> CheckoutSession:
        if not self.api_key:
            raise UpstreamFailure("Stripe not configured. Set STRIPE_SECRET_KEY.")
        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[self._line_item(i) for i in line_items],
                shipping_options=[self._shipping_option(shipping_amount)],
                success_url=success_url,
                cancel_url=cancel_url,
                client_reference_id=client_reference_id,
                metadata=metadata,
            )
        except stripe.StripeError as exc:
            logger.error("stripe_session_failed", error=str(exc))
            raise UpstreamFailure("Failed to create checkout session", error=str(exc)) from exc
        return CheckoutSession(
            id=session.id,
            url=session.url,
            payment_intent=session.payment_intent if isinstance(session.payment_intent, str) else None,
        )

    def expire_session(self, session_id: str):
        try:
            stripe.checkout.Session.expire(session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.warning("stripe_session_expire_failed", session_id=session_id, error=str(exc))

    def parse_webhook(self, payload: bytes, sig_header: Optional[str]) -> PaymentEvent:
        """Verify the Stripe-Signature header and decode the event."""
        if not self.webhook_secret:
            raise UpstreamFailure("Webhook secret not configured. Set STRIPE_WEBHOOK_SECRET.")
        if not sig_header:
            raise InvalidSignature()
        try:
            body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
            stripe.WebhookSignature.verify_header(
                body, sig_header, self.webhook_secret, stripe.Webhook.DEFAULT_TOLERANCE
            )
            return PaymentEvent.model_validate(json.loads(body))
        except stripe.SignatureVerificationError as exc:
            raise InvalidSignature(error=str(exc)) from exc
        except ValueError as exc:
            raise InvalidSignature("Webhook payload is not a valid event", error=str(exc)) from exc
