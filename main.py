import os
from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from cart import CartService
from catalog import ProductCatalog
from checkout import CheckoutService
from database import ItemStore
from errors import ShopError, Unauthorized
from orders import OrderService
from payments import StripeGateway
from schemas import (
    AddToCartRequest,
    CheckoutRequest,
    OrderStatusRequest,
    UpdateCartItemRequest,
)
from settings import Settings

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[ItemStore] = None,
    gateway: Optional[StripeGateway] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    if store is None:
        store = ItemStore.from_settings(settings)
    if gateway is None:
        gateway = StripeGateway(settings.stripe_secret_key, settings.stripe_webhook_secret, settings.currency)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store.ensure_indexes()
        yield

    app = FastAPI(title="Rakhi Gifts API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.gateway = gateway

    # Registered first so the CORS layer wraps it and covers 500 responses too.
    register_error_handlers(app)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app


# ----- Error envelope -----

def register_error_handlers(app: FastAPI):
    @app.middleware("http")
    async def unhandled_error_envelope(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            logger.exception("request_crashed", path=request.url.path, error=str(exc))
            return JSONResponse(
                status_code=500,
                content={"success": False, "message": "Internal server error", "error": str(exc)},
            )

    @app.exception_handler(ShopError)
    async def shop_error_handler(request: Request, exc: ShopError):
        if exc.status_code >= 500:
            logger.error("request_failed", path=request.url.path, message=exc.message, error=exc.error)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            loc = ".".join(str(part) for part in err["loc"] if part != "body")
            errors.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": "Invalid input", "errors": errors},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )


# ----- Dependencies -----

def get_user_id(request: Request) -> str:
    """Subject claim of the caller's token, forwarded by the upstream authorizer."""
    header = request.app.state.settings.identity_header
    value = (request.headers.get(header) or "").strip()
    if not value:
        raise Unauthorized()
    return value


def get_cart_service(request: Request) -> CartService:
    return CartService(request.app.state.store)


def get_checkout_service(request: Request) -> CheckoutService:
    state = request.app.state
    return CheckoutService(state.store, state.gateway, state.settings)


def get_order_service(request: Request) -> OrderService:
    return OrderService(request.app.state.store)


def get_catalog(request: Request) -> ProductCatalog:
    return ProductCatalog(request.app.state.store)


# ----- Routes -----

def register_routes(app: FastAPI):
    @app.get("/")
    def read_root():
        return {"message": "Rakhi Gifts backend running"}

    @app.get("/test")
    def test_database(request: Request):
        settings = request.app.state.settings
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
            "stripe": "✅ Configured" if settings.stripe_secret_key else "⚠️ Missing STRIPE_SECRET_KEY",
        }
        try:
            response["collections"] = request.app.state.store.ping()[:10]
            response["database"] = "✅ Connected"
            response["connection_status"] = "Connected"
        except ShopError as e:
            response["database"] = f"⚠️ Error: {str(e.error)[:80]}"
        return response

    # Cart

    @app.get("/cart")
    def get_cart(user_id=Depends(get_user_id), service: CartService = Depends(get_cart_service)):
        cart = service.get_cart(user_id)
        return {"success": True, "data": cart.to_public()}

    @app.post("/cart", status_code=201)
    def add_to_cart(
        payload: AddToCartRequest,
        user_id=Depends(get_user_id),
        service: CartService = Depends(get_cart_service),
    ):
        item = service.add_to_cart(user_id, payload.product_id, payload.quantity)
        return {
            "success": True,
            "message": "Item added to cart successfully",
            "data": {"id": item.id, "productId": item.product_id, "quantity": item.quantity, "price": item.price},
        }

    @app.put("/cart/{item_id}")
    def update_cart_item(
        item_id: str,
        payload: UpdateCartItemRequest,
        user_id=Depends(get_user_id),
        service: CartService = Depends(get_cart_service),
    ):
        item = service.update_cart_item(user_id, item_id, payload.quantity)
        return {
            "success": True,
            "message": "Cart item updated successfully",
            "data": {"id": item.id, "quantity": item.quantity, "price": item.price},
        }

    @app.delete("/cart/{item_id}")
    def remove_cart_item(
        item_id: str,
        user_id=Depends(get_user_id),
        service: CartService = Depends(get_cart_service),
    ):
        service.remove_cart_item(user_id, item_id)
        return {"success": True, "message": "Item removed from cart successfully"}

    # Checkout

    @app.post("/checkout")
    def create_checkout_session(
        payload: CheckoutRequest,
        user_id=Depends(get_user_id),
        service: CheckoutService = Depends(get_checkout_service),
    ):
        result = service.create_checkout_session(
            user_id,
            payload.shipping_address,
            billing_address=payload.billing_address,
            delivery_date=payload.delivery_date,
            gift_message=payload.gift_message,
        )
        return {
            "success": True,
            "message": "Checkout session created successfully",
            "data": result.to_public(),
        }

    @app.post("/checkout/webhook")
    async def stripe_webhook(request: Request, service: CheckoutService = Depends(get_checkout_service)):
        payload = await request.body()
        sig_header = request.headers.get("stripe-signature")
        service.handle_payment_webhook(payload, sig_header)
        return {"received": True}

    # Orders

    @app.get("/orders")
    def list_orders(user_id=Depends(get_user_id), service: OrderService = Depends(get_order_service)):
        orders = [o.to_public() for o in service.list_orders(user_id)]
        return {"success": True, "data": orders, "count": len(orders)}

    @app.get("/orders/{order_id}")
    def get_order(
        order_id: str,
        user_id=Depends(get_user_id),
        service: OrderService = Depends(get_order_service),
    ):
        return {"success": True, "data": service.get_order(user_id, order_id).to_public()}

    @app.get("/admin/orders")
    def list_all_orders(service: OrderService = Depends(get_order_service)):
        orders = [o.to_public() for o in service.list_all_orders()]
        return {"success": True, "data": orders, "count": len(orders)}

    @app.put("/orders/{order_id}/status")
    def update_order_status(
        order_id: str,
        payload: OrderStatusRequest,
        service: OrderService = Depends(get_order_service),
    ):
        order = service.update_order_status(order_id, payload.status, payload.tracking_number)
        return {
            "success": True,
            "message": "Order status updated successfully",
            "data": {"id": order.id, "status": order.status, "trackingNumber": order.tracking_number},
        }

    # Products

    @app.get("/products")
    def list_products(catalog: ProductCatalog = Depends(get_catalog)):
        products = [p.to_public() for p in catalog.list_products()]
        return {"success": True, "data": products, "count": len(products)}

    @app.get("/products/{product_id}")
    def get_product(product_id: str, catalog: ProductCatalog = Depends(get_catalog)):
        return {"success": True, "data": catalog.get_product(product_id).to_public()}

    @app.post("/products", status_code=201)
    def create_product(payload: dict = Body(...), catalog: ProductCatalog = Depends(get_catalog)):
        product = catalog.create_product(payload)
        return {
            "success": True,
            "message": "Product created successfully",
            "data": {"id": product.id, "name": product.name, "price": product.price},
        }

    @app.put("/products/{product_id}")
    def update_product(product_id: str, payload: dict = Body(...), catalog: ProductCatalog = Depends(get_catalog)):
        product = catalog.update_product(product_id, payload)
        return {"success": True, "message": "Product updated successfully", "data": product.to_public()}

    @app.delete("/products/{product_id}")
    def delete_product(product_id: str, catalog: ProductCatalog = Depends(get_catalog)):
        catalog.delete_product(product_id)
        return {"success": True, "message": "Product deleted successfully"}


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
