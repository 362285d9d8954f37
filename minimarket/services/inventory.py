# minimarket/services/inventory.py
"""Stock counters: all-or-nothing reservation and manual adjustments.

``reserve`` decrements each tracked product with a single guarded UPDATE
(``quantity >= :requested``). The guard is evaluated by the database under
its write lock, so two concurrent reservations for the last units cannot
both pass. A refused line raises ``InsufficientStockError``; the enclosing
transaction must then be rolled back, which also undoes the lines already
decremented in the batch.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update

from ..errors import InsufficientStockError, ProductUnavailableError, ValidationError
from ..model import InventoryLog, Product
from .catalog import ProductCatalog, is_purchasable

logger = structlog.get_logger(__name__)

ADJUSTMENT_TYPES = ("stock_in", "stock_out", "adjustment")


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class Reservation:
    product_id: int
    quantity: int
    reserved: bool
    previous_quantity: int | None = None
    new_quantity: int | None = None


def _combine(items) -> "OrderedDict[int, int]":
    wanted: OrderedDict[int, int] = OrderedDict()
    for entry in items:
        if isinstance(entry, tuple):
            product_id, quantity = entry
        else:
            product_id, quantity = entry["product_id"], entry["quantity"]
        quantity = int(quantity)
        if quantity < 1:
            raise ValidationError("reservation quantity must be >= 1", field="quantity")
        wanted[int(product_id)] = wanted.get(int(product_id), 0) + quantity
    return wanted


class InventoryService:
    def __init__(self, session, catalog: ProductCatalog | None = None):
        self.session = session
        self.catalog = catalog or ProductCatalog(session)
        self.pending_logs: list[InventoryLog] = []

    def reserve(self, items, order_id=None, user_id=None) -> list[Reservation]:
        """Reserve ``items`` ((product_id, quantity) pairs or dicts) or nothing."""
        wanted = _combine(items)
        products = self.catalog.get_products(wanted.keys(), for_update=True)

        # check everything before touching anything
        for product_id, quantity in wanted.items():
            product = products.get(product_id)
            if not is_purchasable(product):
                raise ProductUnavailableError(product_id)
            if product.track_inventory and int(product.quantity or 0) < quantity:
                raise InsufficientStockError(product_id, requested=quantity,
                                             available=int(product.quantity or 0), name=product.name)

        now = _utcnow()
        reservations = []
        for product_id, quantity in sorted(wanted.items()):
            product = products[product_id]
            if not product.track_inventory:
                reservations.append(Reservation(product_id, quantity, reserved=False))
                continue

            result = self.session.execute(
                update(Product.__table__)
                .where(Product.__table__.c.id == product_id)
                .where(Product.__table__.c.quantity >= quantity)
                .values(quantity=Product.__table__.c.quantity - quantity, updated_at=now)
            )
            if result.rowcount != 1:
                # someone else took the units between our read and our write
                self.session.expire(product)
                current = self.session.execute(
                    select(Product.quantity).where(Product.id == product_id)
                ).scalar_one_or_none()
                logger.info("reservation_refused", product_id=product_id,
                            requested=quantity, available=current)
                raise InsufficientStockError(product_id, requested=quantity,
                                             available=current, name=product.name)

            self.session.expire(product, ["quantity", "updated_at"])
            new_quantity = self.session.execute(
                select(Product.quantity).where(Product.id == product_id)
            ).scalar_one()
            previous = new_quantity + quantity
            self._log(product_id, "reserved", -quantity, previous, new_quantity,
                      reason="Order reservation", order_id=order_id, user_id=user_id, now=now)
            reservations.append(Reservation(product_id, quantity, True, previous, new_quantity))

        self.session.flush()
        return reservations

    def attach_order(self, order_id) -> None:
        """Point the log rows written by the last ``reserve`` at their order."""
        for entry in self.pending_logs:
            entry.order_id = order_id
        self.pending_logs = []

    def adjust(self, product_id, quantity, type, reason=None, user_id=None) -> InventoryLog:
        if type not in ADJUSTMENT_TYPES:
            raise ValidationError(f"type must be one of {', '.join(ADJUSTMENT_TYPES)}", field="type")
        quantity = int(quantity)
        if quantity < 0:
            raise ValidationError("quantity must be >= 0", field="quantity")

        products = self.catalog.get_products([product_id], for_update=True)
        product = products.get(int(product_id))
        if product is None:
            raise ProductUnavailableError(product_id, "product not found")

        previous = int(product.quantity or 0)
        if type == "stock_in":
            new_quantity = previous + quantity
        elif type == "stock_out":
            new_quantity = max(0, previous - quantity)
        else:
            new_quantity = quantity

        now = _utcnow()
        product.quantity = new_quantity
        product.updated_at = now
        entry = self._log(product.id, type, new_quantity - previous, previous, new_quantity,
                          reason=reason, user_id=user_id, now=now)
        self.session.flush()
        return entry

    def _log(self, product_id, type, delta, previous, new_quantity, *, reason=None,
             order_id=None, user_id=None, now=None) -> InventoryLog:
        entry = InventoryLog(
            product_id=product_id,
            type=type,
            quantity=delta,
            previous_quantity=previous,
            new_quantity=new_quantity,
            reason=reason,
            order_id=order_id,
            user_id=user_id,
            created_at=now or _utcnow(),
        )
        self.session.add(entry)
        if type == "reserved":
            self.pending_logs.append(entry)
        return entry
