from unittest import mock

import pytest

from cart import CartService
from database import ItemStore
from errors import InsufficientStock, NotFound, Unauthorized, ValidationError
from keys import cart_key


@pytest.fixture
def carts(store, catalog):
    return CartService(store, catalog)


def test_add_snapshots_product(carts, make_product, store):
    product = make_product(price=30.0, stock=5)
    item = carts.add_to_cart("user-a", product.id, 2)

    assert item.quantity == 2
    assert item.price == 30.0
    assert item.name == product.name
    assert item.image == "https://cdn.test/rakhi-1.jpg"

    stored = store.get(cart_key(item.id))
    assert stored["userId"] == "user-a"
    assert stored["GSI1PK"] == "USER#user-a"


def test_add_unknown_product(carts):
    with pytest.raises(NotFound):
        carts.add_to_cart("user-a", "missing", 1)


def test_add_respects_stock(carts, make_product):
    product = make_product(stock=3)
    carts.add_to_cart("user-a", product.id, 3)
    with pytest.raises(InsufficientStock):
        carts.add_to_cart("user-a", product.id, 4)


def test_add_requires_identity(carts, make_product):
    with pytest.raises(Unauthorized):
        carts.add_to_cart(None, make_product().id, 1)


def test_get_cart_totals(carts, make_product):
    cheap = make_product(price=10.0)
    carts.add_to_cart("user-a", cheap.id, 1)

    cart = carts.get_cart("user-a")
    assert [i.product_id for i in cart.items] == [cheap.id]
    assert cart.totals.total == 20.79

    carts.add_to_cart("user-a", make_product(price=25.0, sku="RK-002").id, 2)
    assert carts.get_cart("user-a").totals.shipping == 0.0


def test_get_cart_is_scoped_to_owner(carts, make_product):
    product = make_product()
    carts.add_to_cart("user-a", product.id, 1)
    assert carts.get_cart("user-b").items == []


def test_get_cart_requires_identity(carts):
    with pytest.raises(Unauthorized):
        carts.get_cart("")


def test_price_is_captured_at_add_time(carts, catalog, make_product):
    product = make_product(price=30.0)
    carts.add_to_cart("user-a", product.id, 1)
    catalog.update_product(product.id, {"price": 45.0})

    assert carts.get_cart("user-a").items[0].price == 30.0


def test_update_quantity(carts, make_product):
    item = carts.add_to_cart("user-a", make_product(stock=10).id, 1)
    updated = carts.update_cart_item("user-a", item.id, 4)
    assert updated.quantity == 4
    assert updated.updated_at >= item.updated_at


def test_update_rechecks_current_stock(carts, catalog, make_product):
    product = make_product(stock=10)
    item = carts.add_to_cart("user-a", product.id, 1)
    catalog.update_product(product.id, {"stock": 2})

    with pytest.raises(InsufficientStock):
        carts.update_cart_item("user-a", item.id, 3)
    assert carts.get_cart("user-a").items[0].quantity == 1


def test_update_other_users_item(carts, make_product):
    item = carts.add_to_cart("user-a", make_product().id, 1)
    with pytest.raises(NotFound):
        carts.update_cart_item("user-b", item.id, 2)


@pytest.mark.parametrize("quantity", [0, -1])
def test_update_rejects_non_positive_quantity_before_store(quantity):
    store = mock.create_autospec(ItemStore, instance=True)
    with pytest.raises(ValidationError):
        CartService(store).update_cart_item("user-a", "c1", quantity)
    assert store.method_calls == []


def test_remove_item(carts, make_product, store):
    item = carts.add_to_cart("user-a", make_product().id, 1)
    carts.remove_cart_item("user-a", item.id)

    assert store.get(cart_key(item.id)) is None
    with pytest.raises(NotFound):
        carts.remove_cart_item("user-a", item.id)


def test_remove_other_users_item(carts, make_product, store):
    item = carts.add_to_cart("user-a", make_product().id, 1)
    with pytest.raises(NotFound):
        carts.remove_cart_item("user-b", item.id)
    assert store.get(cart_key(item.id)) is not None


def test_clear_is_idempotent(carts, make_product):
    product = make_product()
    items = [carts.add_to_cart("user-a", product.id, 1) for _ in range(2)]

    assert carts.clear("user-a") == 2
    assert carts.get_cart("user-a").items == []
    carts.clear("user-a", items)


# HTTP

def test_cart_endpoints(client, auth, make_product):
    product = make_product(price=30.0)

    resp = client.post("/cart", json={"productId": product.id, "quantity": 2}, headers=auth())
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["productId"] == product.id
    item_id = body["data"]["id"]

    resp = client.get("/cart", headers=auth())
    assert resp.status_code == 200
    assert resp.json()["data"]["totals"] == {"subtotal": 60.0, "tax": 4.8, "shipping": 0.0, "total": 64.8}

    resp = client.put(f"/cart/{item_id}", json={"quantity": 3}, headers=auth())
    assert resp.status_code == 200
    assert resp.json()["data"]["quantity"] == 3

    resp = client.delete(f"/cart/{item_id}", headers=auth())
    assert resp.status_code == 200
    assert client.get("/cart", headers=auth()).json()["data"]["items"] == []


def test_add_to_cart_http_errors(client, auth, make_product):
    product = make_product(stock=1)

    resp = client.post("/cart", json={"productId": product.id, "quantity": 2}, headers=auth())
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Insufficient stock"}

    resp = client.post("/cart", json={"productId": "nope"}, headers=auth())
    assert resp.status_code == 404

    resp = client.post("/cart", json={}, headers=auth())
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_update_cart_zero_quantity_http(client, auth, make_product):
    item_id = client.post("/cart", json={"productId": make_product().id}, headers=auth()).json()["data"]["id"]
    resp = client.put(f"/cart/{item_id}", json={"quantity": 0}, headers=auth())
    assert resp.status_code == 400
