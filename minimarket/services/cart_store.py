# minimarket/services/cart_store.py
"""One cart per identity.

Mutations flush but never commit; the caller decides the transaction
boundary (a route wraps each mutation in ``atomic``). Stock is not checked
here, only at checkout.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import delete, select

from ..errors import ProductUnavailableError, ValidationError
from ..identity import Guest, User
from ..model import Cart, CartItem
from .catalog import ProductCatalog, is_purchasable

logger = structlog.get_logger(__name__)

GUEST_CART_TTL = timedelta(days=7)


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _owner_filter(identity):
    if isinstance(identity, User):
        return Cart.user_id == identity.user_id
    if isinstance(identity, Guest):
        return Cart.session_id == identity.session_id
    raise ValidationError("unknown identity", field="identity")


def _as_quantity(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError("quantity must be an integer", field="quantity")


class CartStore:
    def __init__(self, session, catalog: ProductCatalog | None = None):
        self.session = session
        self.catalog = catalog or ProductCatalog(session)

    # ---- reads -------------------------------------------------------------

    def _load(self, identity, for_update: bool = False) -> Cart | None:
        stmt = select(Cart).where(_owner_filter(identity))
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.session.execute(stmt).scalars().first()

    def get_cart(self, identity, for_update: bool = False) -> Cart | None:
        cart = self._load(identity, for_update=for_update)
        if cart is None or not cart.items:
            return None
        return cart

    def item_count(self, identity) -> int:
        cart = self.get_cart(identity)
        return cart.item_count if cart else 0

    # ---- writes ------------------------------------------------------------

    def _get_or_create(self, identity, now) -> Cart:
        cart = self._load(identity)
        if cart is not None:
            return cart
        if isinstance(identity, User):
            cart = Cart(user_id=identity.user_id, created_at=now, updated_at=now)
        else:
            cart = Cart(session_id=identity.session_id, expires_at=now + GUEST_CART_TTL,
                        created_at=now, updated_at=now)
        self.session.add(cart)
        return cart

    def _purchasable(self, product_id):
        product = self.catalog.get_product(product_id)
        if not is_purchasable(product):
            raise ProductUnavailableError(product_id, "product not found or inactive")
        return product

    def add_item(self, identity, product_id, quantity=1) -> Cart:
        """Add ``quantity`` units, creating the cart on first use."""
        quantity = _as_quantity(quantity)
        if quantity < 1:
            raise ValidationError("quantity must be >= 1", field="quantity")
        product = self._purchasable(product_id)

        now = _utcnow()
        cart = self._get_or_create(identity, now)
        item = cart.find_item(product.id)
        if item:
            item.quantity += quantity
            item.added_at = now
        else:
            cart.items.append(CartItem(product_id=product.id, quantity=quantity,
                                       price=product.price, added_at=now))
        cart.touch(now)
        self.session.flush()
        return cart

    def upsert_item(self, identity, product_id, quantity) -> Cart | None:
        """Set the line to exactly ``quantity``; zero or less removes it."""
        quantity = _as_quantity(quantity)
        if quantity <= 0:
            return self.remove_item(identity, product_id)

        product = self._purchasable(product_id)
        now = _utcnow()
        cart = self._get_or_create(identity, now)
        item = cart.find_item(product.id)
        if item:
            item.quantity = quantity
            item.price = product.price
        else:
            cart.items.append(CartItem(product_id=product.id, quantity=quantity,
                                       price=product.price, added_at=now))
        cart.touch(now)
        self.session.flush()
        return cart

    def remove_item(self, identity, product_id) -> Cart | None:
        cart = self._load(identity)
        if cart is None:
            return None
        item = cart.find_item(int(product_id))
        if item is not None:
            cart.items.remove(item)
        if not cart.items:
            # an empty cart and no cart are the same thing
            self.session.delete(cart)
            self.session.flush()
            return None
        cart.touch()
        self.session.flush()
        return cart

    def clear(self, identity) -> bool:
        cart = self._load(identity)
        if cart is None:
            return False
        return self.delete_cart(cart)

    def delete_cart(self, cart: Cart) -> bool:
        """Delete ``cart`` and its lines; False if another transaction already did.

        The row count of the guarded DELETE is the only reliable answer when
        two checkouts of the same cart race each other.
        """
        self.session.flush()
        self.session.execute(delete(CartItem.__table__).where(CartItem.__table__.c.cart_id == cart.id))
        result = self.session.execute(delete(Cart.__table__).where(Cart.__table__.c.id == cart.id))
        self.session.expunge(cart)
        return result.rowcount == 1

    # ---- housekeeping --------------------------------------------------------

    def merge_guest_cart(self, session_id: str, user_id: str) -> dict:
        """Fold a guest cart into the user's cart after sign-in.

        Quantities of the same product are summed and the user's cached
        price is kept; the guest cart is deleted. Without a user cart the
        guest cart is simply handed over to the user.
        """
        guest_cart = self._load(Guest(session_id))
        if guest_cart is None:
            return {"merged": False, "converted": False}

        now = _utcnow()
        user_cart = self._load(User(user_id))
        if user_cart is None:
            guest_cart.session_id = None
            guest_cart.expires_at = None
            guest_cart.user_id = user_id
            guest_cart.touch(now)
            self.session.flush()
            logger.info("guest_cart_converted", user_id=user_id, cart_id=guest_cart.id)
            return {"merged": False, "converted": True}

        for guest_item in guest_cart.items:
            existing = user_cart.find_item(guest_item.product_id)
            if existing:
                existing.quantity += guest_item.quantity
            else:
                user_cart.items.append(CartItem(
                    product_id=guest_item.product_id,
                    quantity=guest_item.quantity,
                    price=guest_item.price,
                    added_at=guest_item.added_at or now,
                ))
        user_cart.touch(now)
        self.session.delete(guest_cart)
        self.session.flush()
        logger.info("guest_cart_merged", user_id=user_id, cart_id=user_cart.id)
        return {"merged": True, "converted": False}

    def cleanup_expired(self, now=None) -> int:
        now = now or _utcnow()
        expired = list(self.session.execute(
            select(Cart).where(Cart.expires_at.is_not(None), Cart.expires_at < now)
        ).scalars())
        for cart in expired:
            self.session.delete(cart)
        self.session.flush()
        return len(expired)
