"""Domain errors raised by the storefront services.

Routers translate these into HTTP responses using ``status_code``.
"""


class StorefrontError(Exception):
    status_code = 500
    default_message = "Unable to process request"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class ValidationError(StorefrontError):
    status_code = 400
    default_message = "Invalid request"


class AddressRequired(ValidationError):
    default_message = "Address is required"


class Unauthorized(StorefrontError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Resource not found"


class ProductNotFound(NotFound):
    default_message = "One or more products were not found"


class AddressNotFound(NotFound):
    default_message = "Address not found"


class OrderNotFound(NotFound):
    default_message = "Order not found"


class CartItemNotFound(NotFound):
    default_message = "Cart item not found"


class Conflict(StorefrontError):
    status_code = 409
    default_message = "Conflict"


class OutOfStock(StorefrontError):
    status_code = 400
    default_message = "Insufficient inventory"

    def __init__(self, product_name: str | None = None) -> None:
        self.product_name = product_name
        message = f"Insufficient inventory for {product_name}" if product_name else None
        super().__init__(message)


class UpstreamUnavailable(StorefrontError):
    status_code = 503
    default_message = "Upstream service is unavailable"
