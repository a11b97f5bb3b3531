"""
Composite keys for the single item table.

Every record is addressed by an ``ItemKey`` (``PRODUCT#<id>``, ``CART#<id>``,
``ORDER#<id>``) stored as both PK and SK. Per-user and per-catalog-status
lookups go through a secondary ``IndexKey`` pair (GSI1PK / GSI1SK).
"""

from dataclasses import dataclass
from enum import Enum

SEPARATOR = "#"


class KeyKind(str, Enum):
    PRODUCT = "PRODUCT"
    CART = "CART"
    ORDER = "ORDER"
    USER = "USER"


@dataclass(frozen=True)
class ItemKey:
    kind: KeyKind
    id: str

    def __post_init__(self):
        if not self.id:
            raise ValueError("key id must not be empty")

    def encode(self) -> str:
        return f"{self.kind.value}{SEPARATOR}{self.id}"

    @classmethod
    def decode(cls, raw: str) -> "ItemKey":
        kind, sep, ident = raw.partition(SEPARATOR)
        if not sep:
            raise ValueError(f"malformed key: {raw!r}")
        try:
            return cls(KeyKind(kind), ident)
        except ValueError as exc:
            raise ValueError(f"malformed key {raw!r}: {exc}") from exc

    def __str__(self) -> str:
        return self.encode()


@dataclass(frozen=True)
class IndexKey:
    partition: str
    sort: str


def product_key(product_id: str) -> ItemKey:
    return ItemKey(KeyKind.PRODUCT, product_id)


def cart_key(item_id: str) -> ItemKey:
    return ItemKey(KeyKind.CART, item_id)


def order_key(order_id: str) -> ItemKey:
    return ItemKey(KeyKind.ORDER, order_id)


def user_partition(user_id: str) -> str:
    return ItemKey(KeyKind.USER, user_id).encode()


def owner_index(user_id: str, key: ItemKey) -> IndexKey:
    """Index entry that lists ``key`` under its owner."""
    return IndexKey(user_partition(user_id), key.encode())


def catalog_partition(active: bool) -> str:
    return ItemKey(KeyKind.PRODUCT, "ACTIVE" if active else "INACTIVE").encode()


def catalog_index(product_id: str, active: bool) -> IndexKey:
    return IndexKey(catalog_partition(active), product_key(product_id).encode())
