"""
Error taxonomy shared by the services.

Services raise these; the HTTP layer turns them into the
``{success: false, message, error?, errors?}`` envelope.
"""

from typing import List, Optional


class ShopError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, error: Optional[str] = None):
        self.message = message or self.default_message
        self.error = error
        super().__init__(self.message)

    def to_body(self) -> dict:
        body = {"success": False, "message": self.message}
        if self.error:
            body["error"] = self.error
        return body


class ValidationError(ShopError):
    status_code = 400
    default_message = "Invalid input"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = list(errors or [])

    def to_body(self) -> dict:
        body = super().to_body()
        if self.errors:
            body["errors"] = self.errors
        return body


class InvalidStatus(ValidationError):
    default_message = "Invalid order status"


class EmptyCart(ShopError):
    status_code = 400
    default_message = "Cart is empty"


class InsufficientStock(ShopError):
    status_code = 400
    default_message = "Insufficient stock"


class Unauthorized(ShopError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ShopError):
    status_code = 403
    default_message = "Access denied"


class NotFound(ShopError):
    status_code = 404
    default_message = "Not found"


class InvalidSignature(ShopError):
    status_code = 400
    default_message = "Webhook signature verification failed"


class UpstreamFailure(ShopError):
    status_code = 500
    default_message = "Upstream service failed"
