# minimarket/model/cart.py
from __future__ import annotations
import uuid as _uuid
from datetime import datetime, timezone
from ..extensions import db
from ..utils.api import epoch_ms
from ..utils.money import CURRENCY, TAX_RATE, percent_of


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Cart(db.Model):
    __tablename__ = "cart"
    __table_args__ = (
        # a cart belongs to a user or to a guest session, never both
        db.CheckConstraint(
            "(user_id IS NULL) <> (session_id IS NULL)",
            name="ck_cart_single_owner",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    uuid = db.Column(db.String(36), unique=True, index=True, default=lambda: str(_uuid.uuid4()))
    user_id = db.Column(db.String(128), nullable=True, unique=True, index=True)
    session_id = db.Column(db.String(128), nullable=True, unique=True, index=True)
    currency = db.Column(db.String(3), nullable=False, default=CURRENCY)
    expires_at = db.Column(db.DateTime, nullable=True, index=True)   # guest carts only
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow)

    items = db.relationship(
        "CartItem",
        backref="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartItem.id.asc()",
    )

    def find_item(self, product_id) -> CartItem | None:
        return next((i for i in self.items if i.product_id == product_id), None)

    def touch(self, now=None):
        self.updated_at = now or _utcnow()

    # --------- derived totals (display only, never trusted at checkout) ----------
    @property
    def subtotal(self) -> int:
        return sum(i.line_total for i in self.items)

    @property
    def tax(self) -> int:
        return percent_of(self.subtotal, TAX_RATE)

    @property
    def total(self) -> int:
        return self.subtotal + self.tax

    @property
    def item_count(self) -> int:
        return sum(int(i.quantity) for i in self.items)

    def as_api(self):
        return {
            "id": self.id,
            "uuid": self.uuid,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "items": [i.as_api() for i in self.items],
            "subtotal": self.subtotal,
            "tax": self.tax,
            "total": self.total,
            "currency": self.currency,
            "expires_at": epoch_ms(self.expires_at),
            "created_at": epoch_ms(self.created_at),
            "updated_at": epoch_ms(self.updated_at),
        }


class CartItem(db.Model):
    __tablename__ = "cart_item"
    __table_args__ = (
        db.UniqueConstraint("cart_id", "product_id", name="uq_cart_item_product"),
        db.CheckConstraint("quantity >= 1", name="ck_cart_item_quantity_positive"),
    )

    id = db.Column(db.Integer, primary_key=True)
    cart_id = db.Column(db.Integer, db.ForeignKey("cart.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Integer, nullable=False, default=0)   # cached at add time
    added_at = db.Column(db.DateTime, default=_utcnow)

    product = db.relationship("Product", lazy="joined")

    @property
    def line_total(self) -> int:
        return int(self.price or 0) * int(self.quantity or 0)

    def as_api(self):
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price": self.price,
            "line_total": self.line_total,
            "added_at": epoch_ms(self.added_at),
            "product": self.product.as_api() if self.product else None,
        }
