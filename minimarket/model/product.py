# minimarket/model/product.py
from sqlalchemy.sql import func
from ..extensions import db
from ..utils.api import epoch_ms

class Product(db.Model):
    __tablename__ = "product"
    __table_args__ = (
        db.CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    slug = db.Column(db.String(255), index=True)

    price = db.Column(db.Integer, nullable=False, default=0)   # whole CLP
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    # inventory
    track_inventory = db.Column(db.Boolean, nullable=False, default=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    @property
    def is_low_stock(self) -> bool:
        return bool(self.track_inventory) and int(self.quantity or 0) <= int(self.low_stock_threshold or 0)

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "slug": self.slug,
            "price": self.price,
            "is_active": self.is_active,
            "inventory": {
                "track_inventory": self.track_inventory,
                "quantity": self.quantity,
                "low_stock_threshold": self.low_stock_threshold,
                "low_stock": self.is_low_stock,
            },
            "created_at": epoch_ms(self.created_at),
            "updated_at": epoch_ms(self.updated_at),
        }
