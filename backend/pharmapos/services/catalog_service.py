# Overview: Read-only catalog lookups for sellable items, plus FEFO batch selection.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from ..extensions import db
from ..models import Medicine, Cosmetic
from ..models.catalog import SELLING_TYPE_PER_UNIT
from .pricing import CatalogItem, to_decimal


ITEM_TYPE_MEDICINE = "medicine"
ITEM_TYPE_COSMETIC = "cosmetic"

ITEM_MODELS = {
    ITEM_TYPE_MEDICINE: Medicine,
    ITEM_TYPE_COSMETIC: Cosmetic,
}


class CatalogError(ValueError):
    """Raised for an unknown item type."""


def get_item_model(item_type: str):
    model = ITEM_MODELS.get(item_type)
    if model is None:
        raise CatalogError(f"Unknown item type: {item_type}")
    return model


def list_sellable_items(item_type: str, shop_id: int | None = None) -> list:
    """Items of one type with stock on hand, ordered by name."""
    model = get_item_model(item_type)
    query = db.session.query(model).filter(model.quantity > 0)
    if shop_id is not None:
        query = query.filter(model.shop_id == shop_id)
    return query.order_by(model.name.asc(), model.id.asc()).all()


def get_item(item_type: str, item_id: int):
    model = get_item_model(item_type)
    return db.session.get(model, item_id)


def to_catalog_item(row) -> CatalogItem:
    """Snapshot an ORM row for the cart and pricing layers."""
    if isinstance(row, Medicine):
        return CatalogItem(
            item_type=ITEM_TYPE_MEDICINE,
            id=row.id,
            name=row.name,
            batch_no=row.batch_no,
            quantity=row.quantity,
            selling_price=to_decimal(row.selling_price),
            purchase_price=to_decimal(row.purchase_price),
            selling_type=row.selling_type or SELLING_TYPE_PER_UNIT,
            units_per_pack=row.units_per_pack,
            price_per_pack=to_decimal(row.price_per_pack) if row.price_per_pack is not None else None,
            expiry_date=row.expiry_date,
            is_fridge_item=bool(row.is_fridge_item),
            is_controlled=bool(row.is_narcotic),
        )
    return CatalogItem(
        item_type=ITEM_TYPE_COSMETIC,
        id=row.id,
        name=row.name,
        batch_no=row.batch_no,
        quantity=row.quantity,
        selling_price=to_decimal(row.selling_price),
        purchase_price=to_decimal(row.purchase_price),
        expiry_date=row.expiry_date,
    )


def load_catalog_item(item_type: str, item_id: int) -> CatalogItem | None:
    row = get_item(item_type, item_id)
    return to_catalog_item(row) if row is not None else None


# =============================================================================
# EXPIRY / FEFO
# =============================================================================

def is_expired(expiry_date: date | None, today: date | None = None) -> bool:
    if expiry_date is None:
        return False
    return expiry_date < (today or date.today())


def is_expiring_within_days(expiry_date: date | None, days: int, today: date | None = None) -> bool:
    if expiry_date is None:
        return False
    remaining = (expiry_date - (today or date.today())).days
    return 0 <= remaining <= days


@dataclass
class FefoResult:
    batches: list[dict] = field(default_factory=list)
    total_available: int = 0

    @property
    def allocated(self) -> int:
        return sum(b["quantity"] for b in self.batches)

    def to_dict(self) -> dict:
        return {
            "batches": self.batches,
            "total_available": self.total_available,
            "allocated": self.allocated,
        }


def _fefo_candidates(name: str, shop_id: int | None, today: date) -> list[Medicine]:
    query = db.session.query(Medicine).filter(
        db.func.lower(Medicine.name) == name.lower(),
        Medicine.quantity > 0,
    )
    if shop_id is not None:
        query = query.filter(Medicine.shop_id == shop_id)

    batches = [m for m in query.all() if not is_expired(m.expiry_date, today)]
    # Nearest expiry first; undated batches last
    batches.sort(key=lambda m: (m.expiry_date is None, m.expiry_date or date.max, m.id))
    return batches


def select_batches_fefo(
    name: str,
    required_quantity: int,
    shop_id: int | None = None,
    today: date | None = None,
) -> FefoResult:
    """
    Allocate required_quantity base units across non-expired batches of a
    medicine, nearest expiry first. The result may fall short when total
    stock is insufficient; callers compare allocated to what they asked for.
    """
    batches = _fefo_candidates(name, shop_id, today or date.today())
    result = FefoResult(total_available=sum(b.quantity for b in batches))

    remaining = required_quantity
    for batch in batches:
        if remaining <= 0:
            break
        take = min(batch.quantity, remaining)
        result.batches.append({
            "id": batch.id,
            "batch_no": batch.batch_no,
            "quantity": take,
            "expiry_date": batch.expiry_date.isoformat() if batch.expiry_date else None,
        })
        remaining -= take

    return result


def best_batch_fefo(name: str, shop_id: int | None = None, today: date | None = None) -> Medicine | None:
    batches = _fefo_candidates(name, shop_id, today or date.today())
    return batches[0] if batches else None
