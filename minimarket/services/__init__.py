from .cart_store import CartStore
from .catalog import ProductCatalog, is_purchasable
from .checkout import CheckoutService, CustomerInfo, OrderReceipt, ShippingAddress
from .inventory import InventoryService, Reservation
from .order_factory import OrderLine, OrderQuote, compute_shipping, compute_tax, price_cart
from .order_number import generate_order_number
from .order_store import OrderStore
from .transaction import atomic

__all__ = [
    "CartStore",
    "ProductCatalog",
    "is_purchasable",
    "CheckoutService",
    "CustomerInfo",
    "OrderReceipt",
    "ShippingAddress",
    "InventoryService",
    "Reservation",
    "OrderLine",
    "OrderQuote",
    "compute_shipping",
    "compute_tax",
    "price_cart",
    "generate_order_number",
    "OrderStore",
    "atomic",
]
