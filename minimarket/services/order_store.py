# minimarket/services/order_store.py
from __future__ import annotations

from sqlalchemy import exists, select

from ..model import Order

DEFAULT_HISTORY_LIMIT = 20
MAX_HISTORY_LIMIT = 100


class OrderStore:
    def __init__(self, session):
        self.session = session

    def add(self, order: Order) -> Order:
        self.session.add(order)
        self.session.flush()
        return order

    def get_order(self, order_id) -> Order | None:
        return self.session.get(Order, order_id)

    def get_by_number(self, order_number: str) -> Order | None:
        stmt = select(Order).where(Order.order_number == order_number)
        return self.session.execute(stmt).scalars().first()

    def order_number_exists(self, order_number: str) -> bool:
        return bool(self.session.execute(
            select(exists().where(Order.order_number == order_number))
        ).scalar())

    def list_orders_by_user(self, user_id, limit: int | None = DEFAULT_HISTORY_LIMIT) -> list[Order]:
        """Most recent first; ``limit`` defaults to 20 and is capped at 100."""
        limit = DEFAULT_HISTORY_LIMIT if limit is None else max(0, min(int(limit), MAX_HISTORY_LIMIT))
        stmt = (
            select(Order)
            .where(Order.user_id == str(user_id))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())
