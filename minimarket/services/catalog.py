# minimarket/services/catalog.py
"""Read side of the product catalog as seen by cart and checkout."""
from __future__ import annotations

from sqlalchemy import select

from ..model import Product


def is_purchasable(product) -> bool:
    # a missing product and a deactivated one are the same to the buyer
    return product is not None and bool(product.is_active)


class ProductCatalog:
    def __init__(self, session):
        self.session = session

    def get_product(self, product_id) -> Product | None:
        return self.session.get(Product, product_id)

    def get_products(self, product_ids, *, for_update: bool = False) -> dict[int, Product]:
        """Batch fetch keyed by id; unknown ids are simply missing from the map.

        With ``for_update`` the rows are locked in id order so two checkouts
        touching the same products cannot deadlock each other.
        """
        ids = sorted({int(pid) for pid in product_ids})
        if not ids:
            return {}
        stmt = select(Product).where(Product.id.in_(ids)).order_by(Product.id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return {p.id: p for p in self.session.execute(stmt).scalars()}

    def low_stock(self) -> list[Product]:
        stmt = (
            select(Product)
            .where(
                Product.is_active.is_(True),
                Product.track_inventory.is_(True),
                Product.quantity <= Product.low_stock_threshold,
            )
            .order_by(Product.quantity.asc(), Product.id.asc())
        )
        return list(self.session.execute(stmt).scalars())
