from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z


SALE_RETURN_NONE = "none"
SALE_RETURN_PARTIAL = "partial"
SALE_RETURN_FULL = "full"

ITEM_RETURN_NONE = "none"
ITEM_RETURN_RETURNED = "returned"


class Sale(db.Model):
    """
    A committed sale.

    WHY: Financial fields are derived once at commit time and never
    recomputed. Only the return_* fields change afterwards, and only
    forwards (none -> partial -> full).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("receipt_number", name="uq_sales_receipt_number"),
        db.Index("ix_sales_shop_sale_date", "shop_id", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, nullable=True, index=True)

    # Human-facing receipt id, searched by the return desk
    receipt_number = db.Column(db.String(64), nullable=False)

    salesman_id = db.Column(db.Integer, db.ForeignKey("salesmen.id"), nullable=False, index=True)
    salesman_name = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    total_profit = db.Column(db.Numeric(12, 2), nullable=False)
    loyalty_points_earned = db.Column(db.Integer, nullable=False, default=0)

    # Return roll-up
    return_status = db.Column(db.String(16), nullable=False, default=SALE_RETURN_NONE, index=True)
    return_date = db.Column(db.DateTime(timezone=True), nullable=True)
    return_reason = db.Column(db.String(255), nullable=True)
    return_processed_by = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    salesman = db.relationship("Salesman")
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship("SaleItem", back_populates="sale", order_by="SaleItem.id", lazy=True)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "receipt_number": self.receipt_number,
            "salesman_id": self.salesman_id,
            "salesman_name": self.salesman_name,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "sale_date": to_utc_z(self.sale_date),
            "subtotal": str(self.subtotal),
            "discount_percentage": str(self.discount_percentage),
            "discount_amount": str(self.discount_amount),
            "tax": str(self.tax),
            "total_amount": str(self.total_amount),
            "total_profit": str(self.total_profit),
            "loyalty_points_earned": self.loyalty_points_earned,
            "return_status": self.return_status,
            "return_date": to_utc_z(self.return_date) if self.return_date else None,
            "return_reason": self.return_reason,
            "return_processed_by": self.return_processed_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class SaleItem(db.Model):
    """
    One committed line of a sale with its price and packaging snapshot.

    quantity is in the unit the line was sold in (packs or base units);
    total_base_units is what was taken out of stock.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("return_quantity >= 0", name="ck_sale_items_return_qty_nonneg"),
        db.CheckConstraint("return_quantity <= quantity", name="ck_sale_items_return_qty_max"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    shop_id = db.Column(db.Integer, nullable=True, index=True)

    item_type = db.Column(db.String(16), nullable=False)
    item_id = db.Column(db.Integer, nullable=False)
    item_name = db.Column(db.String(255), nullable=False)
    batch_no = db.Column(db.String(64), nullable=False)

    selling_mode = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    unit_price = db.Column(db.Numeric(12, 4), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)
    profit = db.Column(db.Numeric(12, 2), nullable=False)

    # Packaging breakdown
    units_per_pack = db.Column(db.Integer, nullable=False, default=1)
    total_base_units = db.Column(db.Integer, nullable=False)
    total_packs = db.Column(db.Integer, nullable=False, default=0)

    # Snapshot of return restrictions at time of sale
    is_fridge_item = db.Column(db.Boolean, nullable=False, default=False)
    is_controlled = db.Column(db.Boolean, nullable=False, default=False)

    return_status = db.Column(db.String(16), nullable=False, default=ITEM_RETURN_NONE)
    return_quantity = db.Column(db.Integer, nullable=False, default=0)
    return_date = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    sale = db.relationship("Sale", back_populates="items")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining_quantity(self) -> int:
        return self.quantity - (self.return_quantity or 0)

    @property
    def base_units_per_unit(self) -> int:
        """Base units taken from stock for each unit of quantity on this line."""
        if not self.quantity:
            return 1
        return self.total_base_units // self.quantity

    @property
    def is_return_restricted(self) -> bool:
        return bool(self.is_fridge_item or self.is_controlled)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_type": self.item_type,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "batch_no": self.batch_no,
            "selling_mode": self.selling_mode,
            "quantity": self.quantity,
            "unit_price": str(self.unit_price),
            "total_price": str(self.total_price),
            "profit": str(self.profit),
            "units_per_pack": self.units_per_pack,
            "total_base_units": self.total_base_units,
            "total_packs": self.total_packs,
            "is_fridge_item": self.is_fridge_item,
            "is_controlled": self.is_controlled,
            "return_status": self.return_status,
            "return_quantity": self.return_quantity,
            "remaining_quantity": self.remaining_quantity,
            "return_date": to_utc_z(self.return_date) if self.return_date else None,
            "created_at": to_utc_z(self.created_at),
        }
