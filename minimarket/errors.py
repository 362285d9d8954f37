# minimarket/errors.py
"""Error kinds raised by the cart and checkout services.

The set is closed: every failure that leaves the checkout path is one of
the classes in ``ERROR_KINDS``. Each kind knows its stable ``code`` and the
HTTP status the API answers with.
"""
from __future__ import annotations


class OrderError(Exception):
    code = "order_error"
    status_code = 400

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_api(self) -> dict:
        return {"code": self.code, **self.details}


class CartEmptyError(OrderError):
    code = "cart_empty"
    status_code = 422

    def __init__(self, message: str = "cart is empty"):
        super().__init__(message)


class ProductUnavailableError(OrderError):
    code = "product_unavailable"
    status_code = 409

    def __init__(self, product_id, message: str | None = None):
        super().__init__(message or f"product {product_id} unavailable", product_id=product_id)
        self.product_id = product_id


class InsufficientStockError(OrderError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id, requested: int, available: int | None = None, name: str | None = None):
        label = name or f"product {product_id}"
        super().__init__(
            f"insufficient stock for {label}",
            product_id=product_id,
            requested=requested,
            available=available,
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class ValidationError(OrderError):
    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, field=field)
        self.field = field


class StorageError(OrderError):
    """Persistence failed; nothing was written, the whole call may be retried."""
    code = "storage_error"
    status_code = 503


ERROR_KINDS = (
    CartEmptyError,
    ProductUnavailableError,
    InsufficientStockError,
    ValidationError,
    StorageError,
)


def register_error_handlers(app):
    from flask import jsonify
    from .utils.api import api_error
    import structlog

    log = structlog.get_logger(__name__)

    @app.errorhandler(OrderError)
    def handle_order_error(e: OrderError):
        if isinstance(e, StorageError):
            log.error("storage_error", message=e.message)
        r = jsonify(api_error(e.message, e.as_api()))
        r.status_code = e.status_code
        return r
