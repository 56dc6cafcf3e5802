from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


RETURN_TYPE_RETURN = "return"
RETURN_TYPE_REPLACE = "replace"
RETURN_TYPES = (RETURN_TYPE_RETURN, RETURN_TYPE_REPLACE)


class Return(db.Model):
    """
    Append-only record of one return or exchange against one sale item.

    IMMUTABLE: Rows are never updated or deleted. A replace carries a zero
    refund; the replacement goods go out on a separate sale.
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.Index("ix_returns_shop_processed", "shop_id", "processed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, nullable=True, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=False, index=True)

    return_type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    refund_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    reason = db.Column(db.String(255), nullable=True)

    processed_by = db.Column(db.String(255), nullable=False)
    processed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True, order_by="Return.id"))
    sale_item = db.relationship("SaleItem", backref=db.backref("returns", lazy=True, order_by="Return.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "sale_id": self.sale_id,
            "sale_item_id": self.sale_item_id,
            "item_name": self.sale_item.item_name if self.sale_item else None,
            "return_type": self.return_type,
            "quantity": self.quantity,
            "refund_amount": str(self.refund_amount),
            "reason": self.reason,
            "processed_by": self.processed_by,
            "processed_at": to_utc_z(self.processed_at),
        }
