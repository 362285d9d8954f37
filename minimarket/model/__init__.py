# ------ minimarket/model/__init__.py ------

from .product import Product
from .inventory import InventoryLog, INVENTORY_LOG_TYPES
from .cart import Cart, CartItem
from .order import (
    Order,
    OrderItem,
    ImmutableOrderError,
    ORDER_STATUSES,
    PAYMENT_STATUSES,
)

__all__ = [
    "Product",
    "InventoryLog",
    "INVENTORY_LOG_TYPES",
    "Cart",
    "CartItem",
    "Order",
    "OrderItem",
    "ImmutableOrderError",
    "ORDER_STATUSES",
    "PAYMENT_STATUSES",
]
