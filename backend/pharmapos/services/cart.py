"""
In-memory sale cart.

A cart is an ordered list of rows. A row is either an EmptyRow (a
placeholder the operator has not filled in yet) or a BoundRow carrying
an item snapshot, its selling mode, and the editable quantity/rate/total
triple. Editing any one of those keeps total_price == quantity x
unit_price. Nothing here touches the database; commit is handled by
sales_service.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Union

from .pricing import (
    CatalogItem,
    ZERO,
    default_mode,
    money,
    percentage,
    resolve_unit_price,
    to_base_units,
    to_decimal,
)


@dataclass(frozen=True)
class EmptyRow:
    """Placeholder row; ignored by every aggregate."""


@dataclass(frozen=True)
class BoundRow:
    item: CatalogItem
    mode: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    @property
    def base_units(self) -> int:
        return to_base_units(self.item, self.mode, self.quantity)

    @property
    def purchase_price(self) -> Decimal:
        """Cost of one unit of this row's selling mode."""
        return to_decimal(self.item.purchase_price) * to_base_units(self.item, self.mode, 1)

    @property
    def profit(self) -> Decimal:
        return self.quantity * (self.unit_price - self.purchase_price)


CartRow = Union[EmptyRow, BoundRow]


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    tax: Decimal
    total: Decimal
    total_profit: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount_percentage": str(self.discount_percentage),
            "discount_amount": str(self.discount_amount),
            "tax": str(self.tax),
            "total": str(self.total),
            "total_profit": str(self.total_profit),
        }


def compute_totals(rows, discount_percentage=0, tax=0) -> CartTotals:
    """
    Aggregates built from per-row amounts already rounded to cents, so
    they match the stored sale item columns exactly.
    """
    bound = [r for r in rows if isinstance(r, BoundRow)]
    subtotal = sum((money(r.total_price) for r in bound), ZERO)
    pct = percentage(discount_percentage)
    tax_amount = money(tax)
    discount_amount = money(subtotal * pct / 100)
    return CartTotals(
        subtotal=money(subtotal),
        discount_percentage=pct,
        discount_amount=discount_amount,
        tax=tax_amount,
        total=money(subtotal - discount_amount + tax_amount),
        total_profit=money(sum((money(r.profit) for r in bound), ZERO)),
    )


@dataclass
class Cart:
    rows: list = field(default_factory=list)

    # -------------------------------------------------------------------------
    # Row management
    # -------------------------------------------------------------------------

    def add_row(self) -> int:
        self.rows.append(EmptyRow())
        return len(self.rows) - 1

    def remove_row(self, index: int) -> None:
        del self.rows[index]

    def reset(self) -> None:
        self.rows.clear()

    @property
    def bound_rows(self) -> list[BoundRow]:
        return [r for r in self.rows if isinstance(r, BoundRow)]

    @property
    def is_empty(self) -> bool:
        return not self.bound_rows

    # -------------------------------------------------------------------------
    # Row edits
    # -------------------------------------------------------------------------

    def set_line_item(self, index: int, item: CatalogItem, mode: str | None = None) -> BoundRow:
        """Bind an item to a row at quantity 1 and its resolved price."""
        mode = mode or default_mode(item)
        price = resolve_unit_price(item, mode)
        row = BoundRow(item=item, mode=mode, quantity=1, unit_price=price, total_price=price)
        self.rows[index] = row
        return row

    def set_quantity(self, index: int, quantity: int) -> bool:
        row = self.rows[index]
        if not isinstance(row, BoundRow) or quantity < 1:
            return False
        self.rows[index] = replace(row, quantity=quantity, total_price=quantity * row.unit_price)
        return True

    def set_unit_price(self, index: int, unit_price) -> bool:
        row = self.rows[index]
        unit_price = to_decimal(unit_price)
        if not isinstance(row, BoundRow) or unit_price < 0:
            return False
        self.rows[index] = replace(row, unit_price=unit_price, total_price=row.quantity * unit_price)
        return True

    def set_total_price(self, index: int, total_price) -> bool:
        """Edit the line total directly; the rate is back-computed from it."""
        row = self.rows[index]
        total_price = to_decimal(total_price)
        if not isinstance(row, BoundRow) or total_price < 0 or row.quantity <= 0:
            return False
        self.rows[index] = replace(row, total_price=total_price, unit_price=total_price / row.quantity)
        return True

    # -------------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------------

    def totals(self, discount_percentage=0, tax=0) -> CartTotals:
        return compute_totals(self.rows, discount_percentage, tax)

    def stock_shortfalls(self) -> list[dict]:
        """
        Items whose requested base units exceed the stock cached on the
        snapshot. Advisory only; commit re-reads authoritative stock.
        """
        demand: dict[tuple[str, int], int] = {}
        items: dict[tuple[str, int], CatalogItem] = {}
        for row in self.bound_rows:
            key = (row.item.item_type, row.item.id)
            demand[key] = demand.get(key, 0) + row.base_units
            items[key] = row.item

        shortfalls = []
        for key, requested in demand.items():
            item = items[key]
            if requested > item.quantity:
                shortfalls.append({
                    "item_type": item.item_type,
                    "item_id": item.id,
                    "item_name": item.name,
                    "requested_quantity": requested,
                    "available": item.quantity,
                })
        return shortfalls
