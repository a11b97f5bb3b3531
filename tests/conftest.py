import hashlib
import hmac
import json
import time

import mongomock
import pytest
from fastapi.testclient import TestClient

from catalog import ProductCatalog
from database import ItemStore
from keys import order_key, owner_index
from main import create_app
from payments import CheckoutSession, StripeGateway
from schemas import Address, Order, OrderItem, Totals
from settings import Settings

WEBHOOK_SECRET = "whsec_test_secret"
IDENTITY_HEADER = "X-Auth-Subject"


class RecordingGateway(StripeGateway):
    """Gateway that records session requests instead of calling Stripe.

    Webhook verification is inherited unchanged, so signatures are checked by
    the real stripe library.
    """

    def __init__(self):
        super().__init__(api_key="sk_test_123", webhook_secret=WEBHOOK_SECRET)
        self.sessions = []
        self.expired = []
        self.fail_with = None

    def create_session(self, **kwargs):
        if self.fail_with is not None:
            raise self.fail_with
        self.sessions.append(kwargs)
        n = len(self.sessions)
        return CheckoutSession(
            id=f"cs_test_{n}",
            url=f"https://checkout.stripe.test/pay/cs_test_{n}",
            payment_intent=f"pi_test_{n}",
        )

    def expire_session(self, session_id):
        self.expired.append(session_id)


@pytest.fixture
def settings():
    return Settings(
        stripe_secret_key="sk_test_123",
        stripe_webhook_secret=WEBHOOK_SECRET,
        frontend_origin="https://shop.test",
        identity_header=IDENTITY_HEADER,
    )


@pytest.fixture
def store():
    store = ItemStore(mongomock.MongoClient()["rakhi_store"]["items"])
    store.ensure_indexes()
    return store


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def catalog(store):
    return ProductCatalog(store)


@pytest.fixture
def client(settings, store, gateway):
    return TestClient(create_app(settings=settings, store=store, gateway=gateway))


@pytest.fixture
def auth():
    def headers(user_id="user-a"):
        return {IDENTITY_HEADER: user_id}

    return headers


@pytest.fixture
def product_data():
    def build(**overrides):
        data = {
            "name": "Peacock Zardosi Rakhi",
            "description": "Hand-embroidered rakhi with roli-chawal and a greeting card.",
            "price": 30.0,
            "category": "rakhi",
            "images": ["https://cdn.test/rakhi-1.jpg", "https://cdn.test/rakhi-2.jpg"],
            "stock": 10,
            "sku": "RK-001",
            "deliveryInfo": {"estimatedDays": 5, "availableZipCodes": ["94105", "10001"]},
        }
        data.update(overrides)
        return data

    return build


@pytest.fixture
def make_product(catalog, product_data):
    def create(**overrides):
        return catalog.create_product(product_data(**overrides))

    return create


@pytest.fixture
def address():
    return Address(name="Asha Rao", address1="12 Market St", city="San Jose", state="CA", zip_code="95112")


@pytest.fixture
def make_order(store, address):
    def create(order_id, user_id="user-a", created_at="2026-08-01T10:00:00+00:00", **fields):
        order = Order(
            id=order_id,
            user_id=user_id,
            items=[OrderItem(product_id="p-1", quantity=1, price=10.0, name="Rakhi")],
            totals=Totals(subtotal=10.0, tax=0.8, shipping=9.99, total=20.79),
            shipping_address=address,
            billing_address=address,
            stripe_session_id=f"cs_{order_id}",
            created_at=created_at,
            updated_at=created_at,
            **fields,
        )
        key = order_key(order_id)
        store.put(key, order.to_item(), index=owner_index(user_id, key))
        return order

    return create


@pytest.fixture
def sign():
    def signature(payload, secret=WEBHOOK_SECRET, timestamp=None):
        timestamp = int(time.time()) if timestamp is None else timestamp
        digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={digest}"

    return signature


@pytest.fixture
def stripe_event():
    def build(event_type, order_id=None, **obj):
        session = {"id": "cs_test_1", "object": "checkout.session", **obj}
        if order_id is not None:
            session["metadata"] = {"orderId": order_id}
        return json.dumps({"id": "evt_test_1", "type": event_type, "data": {"object": session}})

    return build
