"""
Sale Commit Service

Turns a cart into a durable Sale with its SaleItems, takes the sold base
units out of stock and accrues customer loyalty. All of it happens in one
database transaction: either every write lands or none does.

VALIDATION ORDER (each failure has its own code):
1. EMPTY_CART
2. SALESMAN_REQUIRED / SALESMAN_NOT_FOUND (and CUSTOMER_NOT_FOUND)
3. Per row: INVALID_QUANTITY, INVALID_UNIT_PRICE, INVALID_TOTAL_PRICE, TOTAL_MISMATCH
4. ITEM_NOT_FOUND / INSUFFICIENT_STOCK against live stock
5. INVALID_DISCOUNT, INVALID_TAX

Stock is re-read at step 4, and the decrement itself is conditional, so a
sale racing another terminal for the last units fails with a stock
conflict instead of driving stock negative.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Sale, SaleItem, Salesman, Customer, Return
from pharmapos.time_utils import utcnow
from .cart import Cart, BoundRow, compute_totals
from .pricing import money, packaging_breakdown, percentage, rate, to_decimal
from .stock_service import apply_loyalty_accrual, decrement_stock_if_available, get_live_stock
from .concurrency import run_with_retry


class SaleError(Exception):
    """Raised for sale operation errors."""
    status_code = 400

    def __init__(self, message: str, code: str = "SALE_ERROR", details: dict | None = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class SaleValidationError(SaleError):
    """Input rejected before anything is written."""


class StockConflictError(SaleError):
    """Authoritative stock cannot cover the requested quantity."""
    status_code = 409


class SalePersistenceError(SaleError):
    """The database rejected a write; nothing from the sale was kept."""
    status_code = 500


# =============================================================================
# VALIDATION
# =============================================================================

def _price_tolerance() -> Decimal:
    return Decimal(str(current_app.config.get("PRICE_TOLERANCE", "0.01")))


def _resolve_salesman(salesman_id) -> Salesman:
    if not salesman_id:
        raise SaleValidationError("Please select a salesman", code="SALESMAN_REQUIRED")
    salesman = db.session.get(Salesman, salesman_id)
    if not salesman:
        raise SaleValidationError(
            f"Salesman {salesman_id} not found",
            code="SALESMAN_NOT_FOUND",
            details={"salesman_id": salesman_id},
        )
    return salesman


def _resolve_customer(customer_id) -> Customer | None:
    if customer_id is None:
        return None
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise SaleValidationError(
            f"Customer {customer_id} not found",
            code="CUSTOMER_NOT_FOUND",
            details={"customer_id": customer_id},
        )
    return customer


def _validate_rows(cart: Cart) -> None:
    tolerance = _price_tolerance()
    for index, row in enumerate(cart.rows):
        if not isinstance(row, BoundRow):
            continue
        row_info = {"row": index, "item_name": row.item.name}

        if not isinstance(row.quantity, int) or row.quantity < 1:
            raise SaleValidationError(
                f"Quantity for {row.item.name} must be at least 1",
                code="INVALID_QUANTITY",
                details={**row_info, "quantity": row.quantity},
            )
        if row.unit_price < 0:
            raise SaleValidationError(
                f"Unit price for {row.item.name} cannot be negative",
                code="INVALID_UNIT_PRICE",
                details={**row_info, "unit_price": str(row.unit_price)},
            )
        if row.total_price < 0:
            raise SaleValidationError(
                f"Total price for {row.item.name} cannot be negative",
                code="INVALID_TOTAL_PRICE",
                details={**row_info, "total_price": str(row.total_price)},
            )

        expected = row.quantity * row.unit_price
        if abs(row.total_price - expected) > tolerance:
            raise SaleValidationError(
                f"Total for {row.item.name} should be {money(expected)} "
                f"({row.quantity} x {rate(row.unit_price)}), got {money(row.total_price)}",
                code="TOTAL_MISMATCH",
                details={
                    **row_info,
                    "quantity": row.quantity,
                    "unit_price": str(rate(row.unit_price)),
                    "expected_total": str(money(expected)),
                    "actual_total": str(money(row.total_price)),
                },
            )


def _stock_demand(cart: Cart) -> dict[tuple[str, int], dict]:
    demand: dict[tuple[str, int], dict] = {}
    for row in cart.bound_rows:
        key = (row.item.item_type, row.item.id)
        entry = demand.setdefault(key, {"item_name": row.item.name, "quantity": 0})
        entry["quantity"] += row.base_units
    return demand


def _validate_live_stock(cart: Cart) -> None:
    insufficient = []
    for (item_type, item_id), entry in _stock_demand(cart).items():
        on_hand = get_live_stock(item_type, item_id)
        if on_hand is None:
            raise SaleValidationError(
                f"{entry['item_name']} is no longer in the catalog",
                code="ITEM_NOT_FOUND",
                details={"item_type": item_type, "item_id": item_id},
            )
        if on_hand < entry["quantity"]:
            insufficient.append({
                "item_type": item_type,
                "item_id": item_id,
                "item_name": entry["item_name"],
                "requested_quantity": entry["quantity"],
                "on_hand": on_hand,
            })

    if insufficient:
        names = ", ".join(
            f"{i['item_name']} (only {i['on_hand']} available)" for i in insufficient
        )
        raise StockConflictError(
            f"Insufficient stock: {names}",
            code="INSUFFICIENT_STOCK",
            details={"items": insufficient},
        )


def _validate_adjustments(discount_percentage: Decimal, tax: Decimal) -> None:
    if discount_percentage < 0 or discount_percentage > 100:
        raise SaleValidationError(
            "Discount percentage must be between 0 and 100",
            code="INVALID_DISCOUNT",
            details={"discount_percentage": str(discount_percentage)},
        )
    if tax < 0:
        raise SaleValidationError(
            "Tax cannot be negative",
            code="INVALID_TAX",
            details={"tax": str(tax)},
        )


def validate_cart(cart: Cart, salesman_id, customer_id=None, discount_percentage=0, tax=0):
    """Run every pre-write check in order. Returns (salesman, customer)."""
    if cart.is_empty:
        raise SaleValidationError("Add at least one item to the sale", code="EMPTY_CART")

    salesman = _resolve_salesman(salesman_id)
    customer = _resolve_customer(customer_id)

    _validate_rows(cart)
    _validate_live_stock(cart)
    _validate_adjustments(to_decimal(discount_percentage), to_decimal(tax))

    return salesman, customer


# =============================================================================
# COMMIT
# =============================================================================

def loyalty_points_for(total_amount: Decimal) -> int:
    divisor = int(current_app.config.get("LOYALTY_POINT_DIVISOR", 100))
    if total_amount <= 0:
        return 0
    return int(to_decimal(total_amount) // divisor)


def new_receipt_number() -> str:
    return f"RX-{uuid.uuid4().hex[:12].upper()}"


def _build_sale_item(sale: Sale, row: BoundRow) -> SaleItem:
    return SaleItem(
        sale_id=sale.id,
        shop_id=sale.shop_id,
        item_type=row.item.item_type,
        item_id=row.item.id,
        item_name=row.item.name,
        batch_no=row.item.batch_no,
        selling_mode=row.mode,
        quantity=row.quantity,
        unit_price=rate(row.unit_price),
        total_price=money(row.total_price),
        profit=money(row.profit),
        is_fridge_item=row.item.is_fridge_item,
        is_controlled=row.item.is_controlled,
        **packaging_breakdown(row.item, row.mode, row.quantity),
    )


def _write_sale(
    cart: Cart,
    salesman: Salesman,
    customer: Customer | None,
    discount_percentage: Decimal,
    tax: Decimal,
    shop_id: int | None,
) -> Sale:
    totals = compute_totals(cart.rows, discount_percentage, tax)
    points = loyalty_points_for(totals.total)

    sale = Sale(
        shop_id=shop_id,
        receipt_number=new_receipt_number(),
        salesman_id=salesman.id,
        salesman_name=salesman.name,
        customer_id=customer.id if customer else None,
        customer_name=customer.name if customer else None,
        sale_date=utcnow(),
        subtotal=totals.subtotal,
        discount_percentage=totals.discount_percentage,
        discount_amount=totals.discount_amount,
        tax=totals.tax,
        total_amount=totals.total,
        total_profit=totals.total_profit,
        loyalty_points_earned=points,
    )
    db.session.add(sale)
    db.session.flush()

    for row in cart.bound_rows:
        db.session.add(_build_sale_item(sale, row))

    for (item_type, item_id), entry in _stock_demand(cart).items():
        if not decrement_stock_if_available(item_type, item_id, entry["quantity"]):
            raise StockConflictError(
                f"Insufficient stock: {entry['item_name']} was sold elsewhere before this sale completed",
                code="INSUFFICIENT_STOCK",
                details={"items": [{
                    "item_type": item_type,
                    "item_id": item_id,
                    "item_name": entry["item_name"],
                    "requested_quantity": entry["quantity"],
                    "on_hand": get_live_stock(item_type, item_id),
                }]},
            )

    if customer is not None:
        apply_loyalty_accrual(customer.id, points, totals.total)

    return sale


def commit_sale(
    cart: Cart,
    salesman_id,
    customer_id=None,
    discount_percentage=0,
    tax=0,
    shop_id: int | None = None,
) -> Sale:
    """
    Validate and persist a cart as a Sale.

    Raises:
        SaleValidationError: bad input, nothing written
        StockConflictError: stock too low, nothing written
        SalePersistenceError: the database failed, transaction rolled back
    """
    discount_percentage = percentage(discount_percentage)
    tax = to_decimal(tax)
    salesman, customer = validate_cart(cart, salesman_id, customer_id, discount_percentage, tax)

    def _op():
        try:
            sale = _write_sale(cart, salesman, customer, discount_percentage, tax, shop_id)
            db.session.commit()
            return sale
        except SaleError:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise SalePersistenceError(
            f"Failed to save sale: {exc}",
            code="PERSISTENCE_FAILED",
        ) from exc


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale | None:
    return db.session.get(Sale, sale_id)


def get_sale_by_receipt(receipt_number: str) -> Sale | None:
    return db.session.query(Sale).filter_by(receipt_number=receipt_number).first()


def get_sale_summary(sale_id: int) -> dict:
    """Sale with its items and every return recorded against it."""
    sale = get_sale(sale_id)
    if not sale:
        raise SaleValidationError(f"Sale {sale_id} not found", code="SALE_NOT_FOUND")

    returns = db.session.query(Return).filter_by(sale_id=sale.id).order_by(Return.id.asc()).all()
    return {
        "sale": sale.to_dict(),
        "items": [item.to_dict() for item in sale.items],
        "returns": [r.to_dict() for r in returns],
    }


def list_sales(
    shop_id: int | None = None,
    customer_id: int | None = None,
    salesman_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    limit: int | None = 100,
) -> list[Sale]:
    """Most recent first. Date bounds are inclusive."""
    query = db.session.query(Sale)
    if shop_id is not None:
        query = query.filter(Sale.shop_id == shop_id)
    if customer_id is not None:
        query = query.filter(Sale.customer_id == customer_id)
    if salesman_id is not None:
        query = query.filter(Sale.salesman_id == salesman_id)
    if date_from is not None:
        query = query.filter(Sale.sale_date >= date_from)
    if date_to is not None:
        query = query.filter(Sale.sale_date <= date_to)

    query = query.order_by(Sale.sale_date.desc(), Sale.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def get_customer_purchase_history(customer_id: int) -> dict:
    customer = db.session.get(Customer, customer_id)
    if not customer:
        raise SaleValidationError(f"Customer {customer_id} not found", code="CUSTOMER_NOT_FOUND")

    sales = list_sales(customer_id=customer_id, limit=None)
    return {
        "customer": customer.to_dict(),
        "sales": [s.to_dict() for s in sales],
        "total_sales": len(sales),
        "total_amount": str(money(sum((to_decimal(s.total_amount) for s in sales), Decimal("0")))),
    }
