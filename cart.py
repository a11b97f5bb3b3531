"""
Shopping cart.

A cart is the set of CART records listed under the owner's USER partition.
Each item snapshots the product's price, name and thumbnail when added.
"""

import uuid
from typing import Iterable, List, Optional

from pydantic import BaseModel

from catalog import ProductCatalog
from database import ItemStore
from errors import InsufficientStock, NotFound, Unauthorized, ValidationError
from keys import KeyKind, cart_key, owner_index, user_partition
from pricing import compute_totals
from schemas import CartItem, CartItemChanges, Totals, utc_now

CART_PREFIX = KeyKind.CART.value + "#"


class CartView(BaseModel):
    items: List[CartItem]
    totals: Totals

    def to_public(self) -> dict:
        return {
            "items": [i.to_public() for i in self.items],
            "totals": self.totals.to_public(),
        }


def require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise Unauthorized()
    return user_id


def require_quantity(quantity: int):
    if quantity is None or quantity < 1:
        raise ValidationError("Quantity must be greater than 0")


class CartService:
    def __init__(self, store: ItemStore, catalog: Optional[ProductCatalog] = None):
        self.store = store
        self.catalog = catalog or ProductCatalog(store)

    def list_items(self, user_id: str) -> List[CartItem]:
        items = self.store.query_index(user_partition(user_id), CART_PREFIX)
        return [CartItem.from_item(i) for i in items]

    def get_cart(self, user_id: Optional[str]) -> CartView:
        user_id = require_user(user_id)
        items = self.list_items(user_id)
        totals = compute_totals((i.price, i.quantity) for i in items)
        return CartView(items=items, totals=totals)

    def _owned_item(self, user_id: str, item_id: str) -> CartItem:
        item = self.store.get(cart_key(item_id))
        if item is None or item.get("userId") != user_id:
            raise NotFound("Cart item not found")
        return CartItem.from_item(item)

    def add_to_cart(self, user_id: Optional[str], product_id: str, quantity: int = 1) -> CartItem:
        user_id = require_user(user_id)
        require_quantity(quantity)
        if not product_id:
            raise ValidationError("Product ID is required")

        product = self.catalog.find(product_id)
        if product is None:
            raise NotFound("Product not found")
        if product.stock < quantity:
            raise InsufficientStock()

        now = utc_now()
        item = CartItem(
            id=str(uuid.uuid4()),
            user_id=user_id,
            product_id=product_id,
            quantity=quantity,
            price=product.price,
            name=product.name,
            image=product.thumbnail,
            created_at=now,
            updated_at=now,
        )
        key = cart_key(item.id)
        self.store.put(key, item.to_item(), index=owner_index(user_id, key))
        return item

    def update_cart_item(self, user_id: Optional[str], item_id: str, quantity: int) -> CartItem:
        user_id = require_user(user_id)
        require_quantity(quantity)

        item = self._owned_item(user_id, item_id)
        product = self.catalog.find(item.product_id)
        if product is None:
            raise NotFound("Product not found")
        if product.stock < quantity:
            raise InsufficientStock()

        updated = self.store.update(
            cart_key(item_id), CartItemChanges(quantity=quantity, updated_at=utc_now())
        )
        if updated is None:
            raise NotFound("Cart item not found")
        return CartItem.from_item(updated)

    def remove_cart_item(self, user_id: Optional[str], item_id: str):
        user_id = require_user(user_id)
        self._owned_item(user_id, item_id)
        self.store.delete(cart_key(item_id))

    def clear(self, user_id: str, items: Optional[Iterable[CartItem]] = None) -> int:
        """Delete the user's cart items; already-deleted items are skipped silently."""
        if items is None:
            items = self.list_items(user_id)
        count = 0
        for item in items:
            self.store.delete(cart_key(item.id))
            count += 1
        return count
