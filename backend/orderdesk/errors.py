# Overview: Error taxonomy for order fulfillment; each error knows its HTTP mapping.

"""
Business outcomes (stock shortfall, state-machine conflicts, contention) are
raised as FulfillmentError subclasses and returned to callers as structured
4xx responses. Anything else is unexpected and handled by the route layer.
"""

from __future__ import annotations


class FulfillmentError(Exception):
    """Base for expected order/inventory failures."""

    code = "FULFILLMENT_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": str(self),
            "code": self.code,
            "details": self.details,
            "retryable": self.retryable,
        }


class NotFoundError(FulfillmentError):
    code = "NOT_FOUND"
    http_status = 404


class ProductNotFoundError(NotFoundError):
    code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class OrderNotFoundError(NotFoundError):
    code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})
        self.order_id = order_id


class OrderValidationError(FulfillmentError):
    """Malformed input, e.g. zero quantity or an unknown payment method."""
    code = "VALIDATION_FAILED"
    http_status = 400


class ProductInactiveError(OrderValidationError):
    code = "PRODUCT_INACTIVE"

    def __init__(self, product_id: int, product_name: str):
        super().__init__(
            f"Product {product_name} is not available for sale",
            details={"product_id": product_id, "product_name": product_name},
        )


class InsufficientStockError(FulfillmentError):
    """
    Requested quantity exceeds stock on hand.

    The first shortfall is exposed as attributes; every shortfall found in
    the same validation pass is listed under details["items"].
    """
    code = "INSUFFICIENT_STOCK"
    http_status = 422

    def __init__(self, shortfalls: list[dict]):
        first = shortfalls[0]
        super().__init__(
            f"Insufficient stock for {first['product_name']}: "
            f"requested {first['requested']}, available {first['available']}",
            details={
                "product_id": first["product_id"],
                "product_name": first["product_name"],
                "available": first["available"],
                "requested": first["requested"],
                "items": shortfalls,
            },
        )
        self.product_id = first["product_id"]
        self.available = first["available"]
        self.requested = first["requested"]


class AlreadyCompletedError(FulfillmentError):
    code = "ALREADY_COMPLETED"
    http_status = 400


class AlreadyVoidedError(FulfillmentError):
    code = "ALREADY_VOIDED"
    http_status = 400


class OrderLockedError(FulfillmentError):
    """The requested change is not allowed in the order's current state."""
    code = "ORDER_LOCKED"
    http_status = 400


class ContentionError(FulfillmentError):
    """Lock wait exceeded on inventory rows; safe to retry with backoff."""
    code = "STOCK_CONTENDED"
    http_status = 409
    retryable = True
