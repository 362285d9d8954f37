# minimarket/model/inventory.py
from datetime import datetime, timezone
from ..extensions import db
from ..utils.api import epoch_ms

INVENTORY_LOG_TYPES = ("stock_in", "stock_out", "reserved", "released", "adjustment")


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class InventoryLog(db.Model):
    """Audit trail: one row per change to a product's stock counter."""
    __tablename__ = "inventory_log"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("product.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)           # signed delta
    previous_quantity = db.Column(db.Integer, nullable=False)
    new_quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255))
    # not a FK: the reservation is written before the order row exists
    order_id = db.Column(db.Integer, index=True)
    user_id = db.Column(db.String(128))
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "previous_quantity": self.previous_quantity,
            "new_quantity": self.new_quantity,
            "reason": self.reason,
            "order_id": self.order_id,
            "created_at": epoch_ms(self.created_at),
        }
