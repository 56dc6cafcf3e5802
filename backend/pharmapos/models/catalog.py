from __future__ import annotations

from ..extensions import db
from pharmapos.time_utils import to_utc_z, to_iso_date


SELLING_TYPE_PER_UNIT = "per_unit"
SELLING_TYPE_PER_PACK = "per_pack"
SELLING_TYPES = (SELLING_TYPE_PER_UNIT, SELLING_TYPE_PER_PACK)


class SellableItemMixin:
    """
    Columns shared by every sellable catalog table.

    quantity is the authoritative stock counter, always in base units
    (tablets, ml, pieces). It is only ever changed through the atomic
    helpers in stock_service, never by read-modify-write.
    """
    id = db.Column(db.Integer, primary_key=True)
    shop_id = db.Column(db.Integer, nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    batch_no = db.Column(db.String(64), nullable=False)
    rack_no = db.Column(db.String(32), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False)
    purchase_price = db.Column(db.Numeric(12, 2), nullable=False)

    manufacturing_date = db.Column(db.Date, nullable=True)
    expiry_date = db.Column(db.Date, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def _base_dict(self) -> dict:
        return {
            "id": self.id,
            "shop_id": self.shop_id,
            "name": self.name,
            "batch_no": self.batch_no,
            "rack_no": self.rack_no,
            "supplier": self.supplier,
            "quantity": self.quantity,
            "selling_price": str(self.selling_price),
            "purchase_price": str(self.purchase_price),
            "manufacturing_date": to_iso_date(self.manufacturing_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Medicine(SellableItemMixin, db.Model):
    """
    A medicine batch.

    Packaging: when selling_type is per_pack the shelf price may be set
    per pack (price_per_pack); stock is still counted in base units, so a
    pack sale consumes units_per_pack units.
    """
    __tablename__ = "medicines"
    __table_args__ = (
        db.Index("ix_medicines_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    item_type = "medicine"

    company_name = db.Column(db.String(255), nullable=True)
    selling_type = db.Column(db.String(16), nullable=False, default=SELLING_TYPE_PER_UNIT)
    units_per_pack = db.Column(db.Integer, nullable=True)
    price_per_pack = db.Column(db.Numeric(12, 2), nullable=True)

    # Return restrictions
    is_narcotic = db.Column(db.Boolean, nullable=False, default=False)
    is_fridge_item = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "item_type": self.item_type,
            "company_name": self.company_name,
            "selling_type": self.selling_type,
            "units_per_pack": self.units_per_pack,
            "price_per_pack": str(self.price_per_pack) if self.price_per_pack is not None else None,
            "is_narcotic": self.is_narcotic,
            "is_fridge_item": self.is_fridge_item,
        })
        return data


class Cosmetic(SellableItemMixin, db.Model):
    """A cosmetic product batch. Always sold per unit."""
    __tablename__ = "cosmetics"
    __table_args__ = (
        db.Index("ix_cosmetics_shop_name", "shop_id", "name"),
        {"sqlite_autoincrement": True},
    )

    item_type = "cosmetic"

    brand = db.Column(db.String(255), nullable=True)

    def to_dict(self) -> dict:
        data = self._base_dict()
        data.update({
            "item_type": self.item_type,
            "brand": self.brand,
        })
        return data
