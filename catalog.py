"""
Product catalog.
"""

import uuid
from typing import List, Optional

import pydantic
import structlog

from database import ItemStore
from errors import NotFound, ValidationError
from keys import catalog_index, catalog_partition, product_key
from schemas import Product, ProductChanges, ProductCreate, ProductUpdate, utc_now

logger = structlog.get_logger(__name__)


def field_errors(exc: pydantic.ValidationError) -> List[str]:
    """Flatten pydantic errors into ``"field.path: message"`` strings."""
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return messages


class ProductCatalog:
    def __init__(self, store: ItemStore):
        self.store = store

    def find(self, product_id: str) -> Optional[Product]:
        item = self.store.get(product_key(product_id))
        return Product.from_item(item) if item else None

    def list_products(self) -> List[Product]:
        items = self.store.query_index(catalog_partition(True))
        return [p for p in map(Product.from_item, items) if p.is_active]

    def get_product(self, product_id: str) -> Product:
        product = self.find(product_id)
        if product is None:
            raise NotFound("Product not found")
        return product

    def create_product(self, data: dict) -> Product:
        try:
            values = ProductCreate.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(errors=field_errors(exc)) from exc

        product_id = str(uuid.uuid4())
        now = utc_now()
        attributes = {**values.to_item(), "id": product_id, "createdAt": now, "updatedAt": now}
        item = self.store.put(
            product_key(product_id), attributes, index=catalog_index(product_id, values.is_active)
        )
        logger.info("product_created", product_id=product_id, sku=values.sku)
        return Product.from_item(item)

    def update_product(self, product_id: str, data: dict) -> Product:
        try:
            values = ProductUpdate.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(errors=field_errors(exc)) from exc

        key = product_key(product_id)
        if self.store.get(key) is None:
            raise NotFound("Product not found")

        fields = values.model_dump(exclude_unset=True, exclude_none=True)
        changes = ProductChanges(**fields, updated_at=utc_now())
        index = catalog_index(product_id, values.is_active) if "is_active" in fields else None
        item = self.store.update(key, changes, index=index)
        if item is None:
            raise NotFound("Product not found")
        return Product.from_item(item)

    def delete_product(self, product_id: str):
        # References from carts and orders are left dangling.
        self.store.delete(product_key(product_id))
        logger.info("product_deleted", product_id=product_id)
