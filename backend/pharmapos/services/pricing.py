"""
Pricing & packaging resolution for sellable items.

Stock is always counted in base units (tablets, ml, pieces). A row sold
per pack is priced per pack and consumes units_per_pack base units for
each pack.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP

from ..models.catalog import SELLING_TYPE_PER_PACK, SELLING_TYPE_PER_UNIT, SELLING_TYPES


ZERO = Decimal("0")
CENT = Decimal("0.01")
RATE_QUANTUM = Decimal("0.0001")


class PricingError(ValueError):
    """Raised for an unknown selling mode."""


@dataclass(frozen=True)
class CatalogItem:
    """Read-only snapshot of a catalog row, as handed to the cart."""
    item_type: str
    id: int
    name: str
    batch_no: str
    quantity: int
    selling_price: Decimal
    purchase_price: Decimal
    selling_type: str = SELLING_TYPE_PER_UNIT
    units_per_pack: int | None = None
    price_per_pack: Decimal | None = None
    expiry_date: date | None = None
    is_fridge_item: bool = False
    is_controlled: bool = False


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round to cents, half-up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage(value) -> Decimal:
    """Discount percentages are stored with 2 decimal places."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def rate(value) -> Decimal:
    return to_decimal(value).quantize(RATE_QUANTUM, rounding=ROUND_HALF_UP)


def pack_size(item: CatalogItem) -> int:
    """units_per_pack, with a missing or non-positive size treated as 1."""
    size = item.units_per_pack or 1
    return size if size > 0 else 1


def default_mode(item: CatalogItem) -> str:
    if item.selling_type == SELLING_TYPE_PER_PACK:
        return SELLING_TYPE_PER_PACK
    return SELLING_TYPE_PER_UNIT


def resolve_unit_price(item: CatalogItem, mode: str) -> Decimal:
    """
    Price of one unit of the given selling mode.

    per_pack uses the item's pack price when it has one, otherwise the
    per-unit price times the pack size. Never negative.
    """
    if mode not in SELLING_TYPES:
        raise PricingError(f"Unknown selling mode: {mode}")

    if mode == SELLING_TYPE_PER_PACK:
        if item.price_per_pack is not None:
            price = to_decimal(item.price_per_pack)
        else:
            price = to_decimal(item.selling_price) * pack_size(item)
    else:
        price = to_decimal(item.selling_price)

    return max(price, ZERO)


def to_base_units(item: CatalogItem, mode: str, quantity: int) -> int:
    if mode == SELLING_TYPE_PER_PACK:
        return quantity * pack_size(item)
    return quantity


def packaging_breakdown(item: CatalogItem, mode: str, quantity: int) -> dict:
    """Packaging columns stored on a sale item."""
    if mode == SELLING_TYPE_PER_PACK:
        return {
            "units_per_pack": pack_size(item),
            "total_base_units": quantity * pack_size(item),
            "total_packs": quantity,
        }
    return {
        "units_per_pack": pack_size(item),
        "total_base_units": quantity,
        "total_packs": 0,
    }
