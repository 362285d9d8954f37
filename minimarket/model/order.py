# minimarket/model/order.py
from datetime import datetime, timezone
from sqlalchemy import event, inspect
from ..extensions import db
from ..utils.api import epoch_ms
from ..utils.money import CURRENCY

ORDER_STATUSES = ("pending", "processing", "shipped", "delivered", "cancelled")
PAYMENT_STATUSES = ("pending", "paid", "failed")

# the only columns that may change once an order is written
MUTABLE_ORDER_FIELDS = frozenset({"status", "payment_status", "updated_at"})


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ImmutableOrderError(RuntimeError):
    pass


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(32), unique=True, index=True, nullable=False)  # e.g. "MM-251018-4K9Z"
    user_id = db.Column(db.String(128), index=True)   # guests are not kept in history

    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(20), nullable=False, default="pending")
    payment_method = db.Column(db.String(64), nullable=False)
    shipping_method = db.Column(db.String(32), nullable=False, default="standard")

    # Customer snapshot
    customer_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(50))
    shipping_address = db.Column(db.JSON, nullable=False)

    # Money snapshot, whole CLP
    subtotal = db.Column(db.Integer, nullable=False)
    tax_amount = db.Column(db.Integer, nullable=False)
    tax_rate = db.Column(db.Numeric(5, 4), nullable=False)
    shipping_cost = db.Column(db.Integer, nullable=False)
    discount_amount = db.Column(db.Integer, nullable=False, default=0)
    total_amount = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default=CURRENCY)

    created_at = db.Column(db.DateTime, default=_utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=_utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.id.asc()",
    )

    def as_api(self):
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "payment_method": self.payment_method,
            "shipping_method": self.shipping_method,
            "customer": {
                "name": self.customer_name,
                "email": self.email,
                "phone": self.phone,
            },
            "shipping_address": self.shipping_address,
            "items": [i.as_api() for i in self.items],
            "subtotal": self.subtotal,
            "tax_amount": self.tax_amount,
            "tax_rate": float(self.tax_rate) if self.tax_rate is not None else None,
            "shipping_cost": self.shipping_cost,
            "discount_amount": self.discount_amount,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "created_at": epoch_ms(self.created_at),
            "updated_at": epoch_ms(self.updated_at),
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    # snapshot, not a reference: survives later catalog edits
    product_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Integer, nullable=False)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.name,
            "sku": self.sku,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "total_price": self.total_price,
        }


def _changed_columns(mapper, target) -> set:
    state = inspect(target)
    columns = {prop.key for prop in mapper.column_attrs}
    return {key for key in columns if state.attrs[key].history.has_changes()}


@event.listens_for(Order, "before_update")
def _guard_order_immutable(mapper, connection, target):
    frozen = _changed_columns(mapper, target) - MUTABLE_ORDER_FIELDS
    if frozen:
        raise ImmutableOrderError(f"order fields are immutable: {', '.join(sorted(frozen))}")


@event.listens_for(OrderItem, "before_update")
def _guard_order_item_immutable(mapper, connection, target):
    if _changed_columns(mapper, target):
        raise ImmutableOrderError("order line items are immutable")
