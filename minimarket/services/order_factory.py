# minimarket/services/order_factory.py
"""Turn a cart snapshot plus fresh catalog rows into priced order lines.

Nothing here touches storage: inputs are any objects exposing the cart
item attributes (``product_id``, ``quantity``) and the product attributes
(``id``, ``name``, ``sku``, ``price``, ``is_active``, ``track_inventory``,
``quantity``). The cart's cached price is never read.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Sequence

from ..errors import CartEmptyError, InsufficientStockError, ProductUnavailableError
from ..utils.money import TAX_RATE, percent_of
from .catalog import is_purchasable

FREE_SHIPPING_THRESHOLD = 15000
SHIPPING_COST = 2990


@dataclass(frozen=True)
class OrderLine:
    product_id: int
    name: str
    sku: str
    quantity: int
    unit_price: int
    total_price: int
    track_inventory: bool = True


@dataclass(frozen=True)
class OrderQuote:
    lines: tuple[OrderLine, ...]
    subtotal: int
    tax_amount: int
    tax_rate: Decimal
    shipping_cost: int
    discount_amount: int
    total_amount: int

    @property
    def reservations(self) -> list[tuple[int, int]]:
        return [(line.product_id, line.quantity) for line in self.lines]


def compute_tax(subtotal: int, rate: Decimal = TAX_RATE) -> int:
    return percent_of(subtotal, rate)


def compute_shipping(subtotal: int) -> int:
    return 0 if subtotal >= FREE_SHIPPING_THRESHOLD else SHIPPING_COST


def price_line(item, product) -> OrderLine:
    if not is_purchasable(product):
        raise ProductUnavailableError(item.product_id)
    quantity = int(item.quantity)
    available = int(product.quantity or 0)
    if product.track_inventory and available < quantity:
        raise InsufficientStockError(product.id, requested=quantity, available=available, name=product.name)

    unit_price = int(product.price)
    return OrderLine(
        product_id=product.id,
        name=product.name,
        sku=product.sku,
        quantity=quantity,
        unit_price=unit_price,
        total_price=unit_price * quantity,
        track_inventory=bool(product.track_inventory),
    )


def price_cart(items: Sequence, products: Mapping, discount_amount: int = 0) -> OrderQuote:
    """Validate every line against ``products`` and compute the money fields.

    Fails on the first unavailable product or short line, in cart order.
    """
    if not items:
        raise CartEmptyError()

    lines = tuple(price_line(item, products.get(item.product_id)) for item in items)
    subtotal = sum(line.total_price for line in lines)
    tax_amount = compute_tax(subtotal)
    shipping_cost = compute_shipping(subtotal)

    return OrderQuote(
        lines=lines,
        subtotal=subtotal,
        tax_amount=tax_amount,
        tax_rate=TAX_RATE,
        shipping_cost=shipping_cost,
        discount_amount=discount_amount,
        total_amount=subtotal + tax_amount + shipping_cost - discount_amount,
    )
