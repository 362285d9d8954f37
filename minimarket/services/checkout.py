# minimarket/services/checkout.py
"""Cart → order, as one transaction.

``CheckoutService.create_order`` computes everything first (cart read,
fresh catalog rows, pricing) and only then performs the writes in a fixed
order: reserve stock, insert the order, delete the cart. All of it runs
inside ``atomic`` on the session handed to the service, so other readers
see either the finished order with its stock taken and the cart gone, or
nothing at all. The cart goes through a guarded DELETE, so two checkouts of
the same cart cannot both commit.
"""
from __future__ import annotations

import re
from dataclasses import asdict, dataclass

import structlog

from ..errors import CartEmptyError, OrderError, StorageError, ValidationError
from ..identity import User
from ..model import Order, OrderItem
from .cart_store import CartStore
from .catalog import ProductCatalog, is_purchasable
from .inventory import InventoryService
from .order_factory import OrderQuote, price_cart
from .order_number import generate_order_number
from .order_store import OrderStore
from .transaction import atomic

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _required(payload: dict, key: str, prefix: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{prefix}.{key} is required", field=f"{prefix}.{key}")
    return value.strip()


def _optional(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    if value is None:
        return None
    return str(value).strip() or None


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "CustomerInfo":
        if not isinstance(payload, dict):
            raise ValidationError("customer info is required", field="customer")
        email = _required(payload, "email", "customer")
        if not _EMAIL_RE.match(email):
            raise ValidationError("customer.email is not a valid address", field="customer.email")
        return cls(
            name=_required(payload, "name", "customer"),
            email=email,
            phone=_optional(payload, "phone"),
        )


@dataclass(frozen=True)
class ShippingAddress:
    street: str
    city: str
    region: str
    postal_code: str
    country: str
    additional_info: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "ShippingAddress":
        if not isinstance(payload, dict):
            raise ValidationError("shipping address is required", field="shipping_address")
        return cls(
            street=_required(payload, "street", "shipping_address"),
            city=_required(payload, "city", "shipping_address"),
            region=_required(payload, "region", "shipping_address"),
            postal_code=_required(payload, "postal_code", "shipping_address"),
            country=_required(payload, "country", "shipping_address"),
            additional_info=_optional(payload, "additional_info"),
        )

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class OrderReceipt:
    order_id: int
    order_number: str

    def as_api(self):
        return {"order_id": self.order_id, "order_number": self.order_number}


def _coerce(value, kind):
    return value if isinstance(value, kind) else kind.from_payload(value)


class CheckoutService:
    def __init__(self, session, *, order_number_factory=generate_order_number):
        self.session = session
        self.catalog = ProductCatalog(session)
        self.carts = CartStore(session, self.catalog)
        self.orders = OrderStore(session)
        self.order_number_factory = order_number_factory

    def create_order(self, identity, customer_info, shipping_address, payment_method) -> OrderReceipt:
        customer = _coerce(customer_info, CustomerInfo)
        address = _coerce(shipping_address, ShippingAddress)
        if not isinstance(payment_method, str) or not payment_method.strip():
            raise ValidationError("payment_method is required", field="payment_method")

        log = logger.bind(owner=identity.key)
        try:
            with atomic(self.session):
                cart = self.carts.get_cart(identity, for_update=True)
                if cart is None:
                    raise CartEmptyError()

                products = self.catalog.get_products([i.product_id for i in cart.items], for_update=True)
                quote = price_cart(cart.items, products)

                user_id = identity.user_id if isinstance(identity, User) else None
                inventory = InventoryService(self.session, self.catalog)
                inventory.reserve(quote.reservations, user_id=user_id)

                order = self.orders.add(self._build_order(
                    quote, self._next_order_number(), user_id, customer, address, payment_method.strip(),
                ))
                inventory.attach_order(order.id)

                if not self.carts.delete_cart(cart):
                    # a concurrent checkout of the same cart committed first
                    raise CartEmptyError("cart was already checked out")
                receipt = OrderReceipt(order.id, order.order_number)
        except OrderError as exc:
            log.info("order_rejected", code=exc.code, reason=exc.message)
            raise

        log.info("order_created", order_id=receipt.order_id, order_number=receipt.order_number,
                 total_amount=quote.total_amount, lines=len(quote.lines))
        return receipt

    def _next_order_number(self) -> str:
        for _ in range(ORDER_NUMBER_ATTEMPTS):
            number = self.order_number_factory()
            if not self.orders.order_number_exists(number):
                return number
        raise StorageError("could not allocate a unique order number")

    @staticmethod
    def _build_order(quote: OrderQuote, order_number, user_id, customer: CustomerInfo,
                     address: ShippingAddress, payment_method) -> Order:
        return Order(
            order_number=order_number,
            user_id=user_id,
            status="pending",
            payment_status="pending",
            payment_method=payment_method,
            customer_name=customer.name,
            email=customer.email,
            phone=customer.phone,
            shipping_address=address.as_dict(),
            subtotal=quote.subtotal,
            tax_amount=quote.tax_amount,
            tax_rate=quote.tax_rate,
            shipping_cost=quote.shipping_cost,
            discount_amount=quote.discount_amount,
            total_amount=quote.total_amount,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    name=line.name,
                    sku=line.sku,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    total_price=line.total_price,
                )
                for line in quote.lines
            ],
        )

    def validate_cart(self, identity) -> dict:
        """Pre-checkout report: every problem line, not just the first.

        Cached prices that drifted from the catalog are refreshed in place.
        """
        with atomic(self.session):
            cart = self.carts.get_cart(identity)
            if cart is None:
                return {"valid": False, "errors": [{"code": CartEmptyError.code, "message": "cart is empty"}],
                        "cart": None}

            products = self.catalog.get_products([i.product_id for i in cart.items])
            errors = []
            for item in cart.items:
                product = products.get(item.product_id)
                if not is_purchasable(product):
                    errors.append({"code": "product_unavailable", "product_id": item.product_id,
                                   "message": f"product {item.product_id} is no longer available"})
                    continue
                available = int(product.quantity or 0)
                if product.track_inventory and available < item.quantity:
                    errors.append({"code": "insufficient_stock", "product_id": item.product_id,
                                   "message": f"{product.name} has insufficient stock "
                                              f"({available} available, {item.quantity} requested)"})
                    continue
                if item.price != product.price:
                    errors.append({"code": "price_changed", "product_id": item.product_id,
                                   "message": f"price has changed for {product.name}"})
                    item.price = product.price
                    cart.touch()

            return {"valid": not errors, "errors": errors, "cart": cart.as_api()}
