"""
Database Schemas for the Rakhi Gifts store

Products, cart items and orders all live in one item table. Each model here
describes the attributes stored alongside the record's composite key (see
keys.py); attribute names are camelCase on the wire and in the table.
"""

from datetime import date, datetime, timezone
from typing import List, Literal, Optional, get_args

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from keys import ItemKey

Category = Literal["rakhi", "chocolate-combo", "roli-moli", "flowers", "hampers"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed"]

ORDER_STATUSES = get_args(OrderStatus)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ShopModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_item(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})

    def to_public(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StoredModel(ShopModel):
    @classmethod
    def from_item(cls, item: dict):
        """Build from a table record, taking the id from its primary key."""
        return cls.model_validate({**item, "id": ItemKey.decode(item["PK"]).id})


# Products

class Dimensions(ShopModel):
    length: Optional[float] = Field(None, gt=0)
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)


class DeliveryInfo(ShopModel):
    estimated_days: int = Field(..., ge=1, le=30, description="Days from dispatch to delivery")
    available_zip_codes: List[str] = Field(default_factory=list, description="Deliverable zip codes")


class ProductCreate(ShopModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=2, max_length=100, description="Product name")
    description: str = Field(..., min_length=1, max_length=500, description="Product description")
    price: float = Field(..., gt=0, description="Price in dollars")
    category: Category = Field(..., description="Catalog category")
    images: List[str] = Field(default_factory=list, description="Image URLs, first one is the thumbnail")
    stock: int = Field(0, ge=0, description="Units available")
    sku: str = Field(..., min_length=1, max_length=50, description="Stock keeping unit")
    weight: Optional[float] = Field(None, gt=0, description="Shipping weight")
    dimensions: Optional[Dimensions] = None
    is_active: bool = Field(True, description="Listed in the catalog")
    delivery_info: DeliveryInfo


class ProductUpdate(ShopModel):
    """Partial product update; only fields present in the request are written."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    price: Optional[float] = Field(None, gt=0)
    category: Optional[Category] = None
    images: Optional[List[str]] = None
    stock: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = Field(None, min_length=1, max_length=50)
    weight: Optional[float] = Field(None, gt=0)
    dimensions: Optional[Dimensions] = None
    is_active: Optional[bool] = None
    delivery_info: Optional[DeliveryInfo] = None


class ProductChanges(ProductUpdate):
    updated_at: Optional[str] = None


class Product(StoredModel):
    id: str
    name: str
    description: str = ""
    price: float
    category: Category
    images: List[str] = Field(default_factory=list)
    stock: int = 0
    sku: Optional[str] = None
    weight: Optional[float] = None
    dimensions: Optional[Dimensions] = None
    is_active: bool = True
    delivery_info: Optional[DeliveryInfo] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def thumbnail(self) -> Optional[str]:
        return self.images[0] if self.images else None


# Cart

class CartItem(StoredModel):
    id: str
    user_id: str
    product_id: str
    quantity: int = Field(1, ge=1)
    price: float = Field(..., description="Unit price captured when the item was added")
    name: Optional[str] = None
    image: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CartItemChanges(ShopModel):
    quantity: int = Field(..., ge=1)
    updated_at: str


class Totals(ShopModel):
    subtotal: float
    tax: float
    shipping: float
    total: float


# Orders

class Address(ShopModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    address1: str = Field(..., min_length=1, description="Street address")
    address2: Optional[str] = None
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    zip_code: str = Field(..., min_length=1)
    country: str = "US"


class OrderItem(ShopModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float
    name: str
    image: Optional[str] = None


class Order(StoredModel):
    id: str
    user_id: str
    status: OrderStatus = "pending"
    payment_status: PaymentStatus = "pending"
    payment_intent_id: Optional[str] = None
    stripe_session_id: Optional[str] = None
    items: List[OrderItem]
    totals: Totals
    shipping_address: Address
    billing_address: Address
    delivery_date: Optional[date] = None
    gift_message: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class OrderStatusChanges(ShopModel):
    status: OrderStatus
    tracking_number: Optional[str] = None
    updated_at: str


class PaymentStatusChanges(ShopModel):
    payment_status: PaymentStatus
    updated_at: str


# Request bodies

class AddToCartRequest(ShopModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)


class UpdateCartItemRequest(ShopModel):
    quantity: int = Field(..., ge=1)


class CheckoutRequest(ShopModel):
    shipping_address: Optional[Address] = None
    billing_address: Optional[Address] = None
    delivery_date: Optional[date] = None
    gift_message: Optional[str] = Field(None, max_length=500)


class OrderStatusRequest(ShopModel):
    status: str = Field(..., min_length=1)
    tracking_number: Optional[str] = None
