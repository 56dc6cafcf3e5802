"""
Return/Exchange Service

Reverses part or all of a committed sale.

STATE MACHINES (both monotonic, no way back):
- SaleItem.return_status: none -> returned (once return_quantity >= quantity)
- Sale.return_status:     none -> partial -> full

RULES:
- Only sales inside the return window (RETURN_WINDOW_DAYS) can be processed
- Refrigerated and controlled items can never be returned or replaced
- A selection may not exceed the item's remaining returnable quantity
- "return" refunds unit_price x quantity and puts the base units back in
  stock; "replace" refunds nothing and leaves stock alone (the
  replacement goes out on its own sale)

ATOMICITY: every selection of a batch is validated before anything is
written, and the writes share one transaction. A failure part-way rolls
back the whole batch; nothing is left half-applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem, Return
from ..models.sales import (
    SALE_RETURN_NONE,
    SALE_RETURN_PARTIAL,
    SALE_RETURN_FULL,
    ITEM_RETURN_NONE,
    ITEM_RETURN_RETURNED,
)
from ..models.returns import RETURN_TYPE_RETURN, RETURN_TYPES
from pharmapos.time_utils import utcnow
from .pricing import ZERO, money, to_decimal
from .sales_service import loyalty_points_for
from .stock_service import increment_stock, reverse_loyalty_accrual
from .concurrency import lock_for_update, run_with_retry


MIN_LOOKUP_LENGTH = 3
LIKE_ESCAPE = "\\"


def contains_pattern(text: str) -> str:
    """LIKE pattern matching text anywhere, with its own wildcards taken literally."""
    escaped = (
        text.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"


class ReturnError(Exception):
    """Raised for return operation errors."""
    status_code = 400

    def __init__(self, message: str, code: str = "RETURN_ERROR", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class ReturnValidationError(ReturnError):
    """Selection rejected before anything is written."""


class ReturnPersistenceError(ReturnError):
    """The database rejected a write; the whole batch was rolled back."""
    status_code = 500


@dataclass(frozen=True)
class ReturnSelection:
    sale_item_id: int
    quantity: int
    return_type: str = RETURN_TYPE_RETURN


@dataclass
class ReturnOutcome:
    sale: Sale
    returns: list[Return] = field(default_factory=list)
    refund_total: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "sale": self.sale.to_dict(),
            "items": [item.to_dict() for item in self.sale.items],
            "returns": [r.to_dict() for r in self.returns],
            "refund_total": str(self.refund_total),
        }


@dataclass
class SaleLookup:
    sale: Sale
    within_return_window: bool

    def to_dict(self) -> dict:
        items = []
        for item in self.sale.items:
            data = item.to_dict()
            data["selectable"] = self.within_return_window and is_item_selectable(item)
            items.append(data)
        return {
            "sale": self.sale.to_dict(),
            "items": items,
            "within_return_window": self.within_return_window,
        }


# =============================================================================
# ELIGIBILITY
# =============================================================================

def return_window() -> timedelta:
    return timedelta(days=int(current_app.config.get("RETURN_WINDOW_DAYS", 7)))


def is_within_return_window(sale: Sale, now: datetime | None = None) -> bool:
    """
    Elapsed time since the sale, compared as an exact timedelta.

    A sale exactly RETURN_WINDOW_DAYS old is accepted; one a second older
    is not. Partial days are not rounded down to whole calendar days.
    """
    now = now or utcnow()
    return now - sale.sale_date <= return_window()


def is_item_selectable(item: SaleItem) -> bool:
    return not item.is_return_restricted and item.remaining_quantity > 0


def refund_for(item: SaleItem, quantity: int, return_type: str) -> Decimal:
    if return_type != RETURN_TYPE_RETURN:
        return money(0)
    return money(to_decimal(item.unit_price) * quantity)


def compute_sale_return_status(items) -> str:
    """
    Sale-level roll-up from item state alone, so it is idempotent.

    full    - every item fully returned
    partial - something returned or exchanged, but not everything
    none    - nothing yet
    """
    items = list(items)
    if items and all((i.return_quantity or 0) >= i.quantity for i in items):
        return SALE_RETURN_FULL
    if any((i.return_quantity or 0) > 0 for i in items):
        return SALE_RETURN_PARTIAL
    return SALE_RETURN_NONE


def validate_selections(sale: Sale, selections, now: datetime | None = None) -> list[tuple[SaleItem, ReturnSelection]]:
    """Check a whole batch against the sale. Returns (item, selection) pairs."""
    if not selections:
        raise ReturnValidationError("Please select items to return", code="NO_SELECTIONS")

    if not is_within_return_window(sale, now):
        raise ReturnValidationError(
            f"Sale {sale.receipt_number} is outside the {return_window().days}-day return window",
            code="RETURN_WINDOW_EXPIRED",
            details={"sale_id": sale.id, "sale_date": sale.sale_date.isoformat()},
        )

    items_by_id = {item.id: item for item in sale.items}
    seen: set[int] = set()
    pairs = []

    for selection in selections:
        item = items_by_id.get(selection.sale_item_id)
        if item is None:
            raise ReturnValidationError(
                f"Sale item {selection.sale_item_id} does not belong to sale {sale.receipt_number}",
                code="SALE_ITEM_NOT_FOUND",
                details={"sale_item_id": selection.sale_item_id},
            )
        if item.id in seen:
            raise ReturnValidationError(
                f"{item.item_name} was selected more than once",
                code="DUPLICATE_SELECTION",
                details={"sale_item_id": item.id},
            )
        seen.add(item.id)

        if item.is_return_restricted:
            raise ReturnValidationError(
                f"{item.item_name} is a refrigerated or controlled item and cannot be returned",
                code="ITEM_NOT_RETURNABLE",
                details={"sale_item_id": item.id},
            )
        if selection.return_type not in RETURN_TYPES:
            raise ReturnValidationError(
                f"Unknown return type: {selection.return_type}",
                code="INVALID_RETURN_TYPE",
                details={"sale_item_id": item.id, "return_type": selection.return_type},
            )
        if not isinstance(selection.quantity, int) or selection.quantity < 1:
            raise ReturnValidationError(
                f"Return quantity for {item.item_name} must be at least 1",
                code="INVALID_QUANTITY",
                details={"sale_item_id": item.id, "quantity": selection.quantity},
            )
        if selection.quantity > item.remaining_quantity:
            raise ReturnValidationError(
                f"Cannot return {selection.quantity} of {item.item_name}. "
                f"Sold: {item.quantity}, already returned: {item.return_quantity}, "
                f"available: {item.remaining_quantity}",
                code="QUANTITY_EXCEEDS_REMAINING",
                details={
                    "sale_item_id": item.id,
                    "requested_quantity": selection.quantity,
                    "remaining_quantity": item.remaining_quantity,
                },
            )

        pairs.append((item, selection))

    return pairs


# =============================================================================
# LOOKUP
# =============================================================================

def lookup_sales(fragment: str, shop_id: int | None = None, now: datetime | None = None) -> list[SaleLookup]:
    """
    Fuzzy receipt search for the return desk, most recent first.

    Sales outside the return window are still listed so the operator can
    see them, flagged as not selectable.
    """
    fragment = (fragment or "").strip()
    if len(fragment) < MIN_LOOKUP_LENGTH:
        return []

    query = db.session.query(Sale).filter(
        Sale.receipt_number.ilike(contains_pattern(fragment), escape=LIKE_ESCAPE)
    )
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)

    limit = int(current_app.config.get("SALE_LOOKUP_LIMIT", 10))
    sales = query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()
    return [SaleLookup(sale=s, within_return_window=is_within_return_window(s, now)) for s in sales]


# =============================================================================
# PROCESSING
# =============================================================================

def _apply_selection(
    sale: Sale,
    item: SaleItem,
    selection: ReturnSelection,
    reason: str | None,
    processed_by: str,
    processed_at: datetime,
) -> Return:
    refund = refund_for(item, selection.quantity, selection.return_type)

    record = Return(
        shop_id=sale.shop_id,
        sale_id=sale.id,
        sale_item_id=item.id,
        return_type=selection.return_type,
        quantity=selection.quantity,
        refund_amount=refund,
        reason=reason,
        processed_by=processed_by,
        processed_at=processed_at,
    )
    db.session.add(record)

    item.return_quantity = (item.return_quantity or 0) + selection.quantity
    item.return_status = ITEM_RETURN_RETURNED if item.return_quantity >= item.quantity else ITEM_RETURN_NONE
    item.return_date = processed_at

    if selection.return_type == RETURN_TYPE_RETURN:
        base_units = selection.quantity * item.base_units_per_unit
        if not increment_stock(item.item_type, item.item_id, base_units):
            raise ReturnValidationError(
                f"{item.item_name} is no longer in the catalog; stock cannot be restored",
                code="ITEM_NOT_FOUND",
                details={"item_type": item.item_type, "item_id": item.item_id},
            )

        if sale.customer_id and current_app.config.get("REVERSE_LOYALTY_ON_RETURN"):
            reverse_loyalty_accrual(sale.customer_id, loyalty_points_for(refund), refund)

    return record


def process_return(
    sale_id: int,
    selections,
    reason: str | None,
    processed_by: str,
    now: datetime | None = None,
) -> ReturnOutcome:
    """
    Validate and apply a batch of return/replace selections against one sale.

    Raises:
        ReturnValidationError: ineligible batch, nothing written
        ReturnPersistenceError: the database failed, whole batch rolled back
    """
    selections = list(selections or [])

    def _op():
        try:
            sale = lock_for_update(db.session.query(Sale).filter_by(id=sale_id)).first()
            if not sale:
                raise ReturnValidationError(f"Sale {sale_id} not found", code="SALE_NOT_FOUND")

            # Lock the lines so a concurrent return sees our quantities
            lock_for_update(db.session.query(SaleItem).filter_by(sale_id=sale.id)).all()

            pairs = validate_selections(sale, selections, now)
            processed_at = now or utcnow()

            outcome = ReturnOutcome(sale=sale)
            for item, selection in pairs:
                record = _apply_selection(sale, item, selection, reason, processed_by, processed_at)
                outcome.returns.append(record)
                outcome.refund_total += to_decimal(record.refund_amount)

            sale.return_status = compute_sale_return_status(sale.items)
            sale.return_date = processed_at
            sale.return_reason = reason
            sale.return_processed_by = processed_by

            db.session.commit()
            outcome.refund_total = money(outcome.refund_total)
            return outcome
        except ReturnError:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise ReturnPersistenceError(
            f"Failed to process return: {exc}",
            code="PERSISTENCE_FAILED",
        ) from exc


def refresh_sale_return_status(sale_id: int) -> Sale:
    """Recompute and store a sale's roll-up from its items. Safe to repeat."""
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise ReturnValidationError(f"Sale {sale_id} not found", code="SALE_NOT_FOUND")

    status = compute_sale_return_status(sale.items)
    if sale.return_status != status:
        sale.return_status = status
        db.session.commit()
    return sale


# =============================================================================
# QUERIES
# =============================================================================

def get_sale_returns(sale_id: int) -> list[Return]:
    return db.session.query(Return).filter_by(
        sale_id=sale_id
    ).order_by(Return.processed_at.desc(), Return.id.desc()).all()


def list_returns(
    shop_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    return_type: str | None = None,
    min_amount=None,
    max_amount=None,
    search: str | None = None,
) -> list[Return]:
    """Returns history, newest first. search matches the item name."""
    query = db.session.query(Return)
    if shop_id is not None:
        query = query.filter(Return.shop_id == shop_id)
    if date_from is not None:
        query = query.filter(Return.processed_at >= date_from)
    if date_to is not None:
        query = query.filter(Return.processed_at <= date_to)
    if return_type:
        query = query.filter(Return.return_type == return_type)
    if min_amount is not None:
        query = query.filter(Return.refund_amount >= to_decimal(min_amount))
    if max_amount is not None:
        query = query.filter(Return.refund_amount <= to_decimal(max_amount))
    if search:
        query = query.join(SaleItem, Return.sale_item_id == SaleItem.id).filter(
            SaleItem.item_name.ilike(contains_pattern(search.strip()), escape=LIKE_ESCAPE)
        )

    return query.order_by(Return.processed_at.desc(), Return.id.desc()).all()


def summarize_returns(returns) -> dict:
    returns = list(returns)
    by_type = {t: 0 for t in RETURN_TYPES}
    for r in returns:
        by_type[r.return_type] = by_type.get(r.return_type, 0) + 1

    return {
        "total_refunds": str(money(sum((to_decimal(r.refund_amount) for r in returns), ZERO))),
        "total_returns": len(returns),
        "by_type": by_type,
    }
