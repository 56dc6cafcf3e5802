# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/pharmapos/routes/sales.py
"""
Sales API routes.

POST /api/sales/ body:
{
    "salesman_id": 1,
    "customer_id": 7,             (optional)
    "shop_id": 1,                 (optional)
    "discount_percentage": "10",  (optional, default 0)
    "tax": "20",                  (optional, default 0)
    "items": [
        {
            "item_type": "medicine",
            "item_id": 12,
            "selling_mode": "per_pack",   (optional, item default)
            "quantity": 2,
            "unit_price": "120.00",       (optional, resolved price)
            "total_price": "240.00"       (optional, quantity x unit_price)
        },
        {}                                (empty placeholder rows are ignored)
    ]
}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.catalog import SELLING_TYPES, SELLING_TYPE_PER_UNIT
from ..services import catalog_service, sales_service
from ..services.cart import Cart, BoundRow, EmptyRow
from ..services.catalog_service import CatalogError
from ..services.pricing import CatalogItem, ZERO, default_mode, resolve_unit_price
from ..services.sales_service import SaleError
from ..validation import (
    ValidationError,
    parse_choice,
    parse_datetime,
    parse_decimal,
    parse_int,
    require_json,
)
from ..decorators import require_auth


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _missing_item(item_type: str, item_id: int) -> CatalogItem:
    """Stand-in for a catalog row that no longer exists; it has no stock."""
    return CatalogItem(
        item_type=item_type,
        id=item_id,
        name=f"{item_type} {item_id}",
        batch_no="",
        quantity=0,
        selling_price=ZERO,
        purchase_price=ZERO,
    )


def _row_from_payload(index: int, data) -> BoundRow | EmptyRow:
    if not isinstance(data, dict):
        raise ValidationError(f"items[{index}] must be an object")

    item_id = parse_int(data.get("item_id"), f"items[{index}].item_id")
    if item_id is None:
        return EmptyRow()

    item_type = data.get("item_type")
    try:
        item = catalog_service.load_catalog_item(item_type, item_id)
    except CatalogError as e:
        raise ValidationError(f"items[{index}]: {e}")
    if item is None:
        # Commit reports it as ITEM_NOT_FOUND after the cart and salesman checks
        item = _missing_item(item_type, item_id)

    mode = parse_choice(data.get("selling_mode"), f"items[{index}].selling_mode", SELLING_TYPES)
    if mode is None:
        mode = default_mode(item)
    elif item_type != catalog_service.ITEM_TYPE_MEDICINE and mode != SELLING_TYPE_PER_UNIT:
        raise ValidationError(f"items[{index}]: {item_type} can only be sold per unit")

    quantity = parse_int(data.get("quantity"), f"items[{index}].quantity")
    if quantity is None:
        quantity = 1
    unit_price = parse_decimal(data.get("unit_price"), f"items[{index}].unit_price")
    if unit_price is None:
        unit_price = resolve_unit_price(item, mode)
    total_price = parse_decimal(data.get("total_price"), f"items[{index}].total_price")
    if total_price is None:
        total_price = quantity * unit_price

    return BoundRow(item=item, mode=mode, quantity=quantity, unit_price=unit_price, total_price=total_price)


def build_cart_from_payload(items) -> Cart:
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ValidationError("items must be a list")
    return Cart(rows=[_row_from_payload(i, row) for i, row in enumerate(items)])


@sales_bp.post("/")
@require_auth
def commit_sale_route():
    """Commit a cart as a sale. 201 with the sale and its items."""
    try:
        data = require_json(request.get_json(silent=True))
        cart = build_cart_from_payload(data.get("items"))

        sale = sales_service.commit_sale(
            cart,
            salesman_id=parse_int(data.get("salesman_id"), "salesman_id"),
            customer_id=parse_int(data.get("customer_id"), "customer_id"),
            discount_percentage=parse_decimal(data.get("discount_percentage"), "discount_percentage", default=0),
            tax=parse_decimal(data.get("tax"), "tax", default=0),
            shop_id=parse_int(data.get("shop_id"), "shop_id"),
        )

        current_app.logger.info(
            "Sale %s committed by %s: total=%s items=%d",
            sale.receipt_number, g.current_user.display_name, sale.total_amount, len(sale.items),
        )
        return jsonify({
            "sale": sale.to_dict(),
            "items": [item.to_dict() for item in sale.items],
        }), 201

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Failed to commit sale")
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/preview")
def preview_totals_route():
    """Cart totals without committing anything."""
    try:
        data = require_json(request.get_json(silent=True))
        cart = build_cart_from_payload(data.get("items"))
        totals = cart.totals(
            parse_decimal(data.get("discount_percentage"), "discount_percentage", default=0),
            parse_decimal(data.get("tax"), "tax", default=0),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except SaleError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "totals": totals.to_dict(),
        "stock_shortfalls": cart.stock_shortfalls(),
    }), 200


@sales_bp.get("/")
def list_sales_route():
    """Sales history. Filters: shop_id, customer_id, salesman_id, date_from, date_to, limit."""
    try:
        sales = sales_service.list_sales(
            shop_id=parse_int(request.args.get("shop_id"), "shop_id"),
            customer_id=parse_int(request.args.get("customer_id"), "customer_id"),
            salesman_id=parse_int(request.args.get("salesman_id"), "salesman_id"),
            date_from=parse_datetime(request.args.get("date_from"), "date_from"),
            date_to=parse_datetime(request.args.get("date_to"), "date_to"),
            limit=parse_int(request.args.get("limit"), "limit", minimum=1) or 100,
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"sales": [s.to_dict() for s in sales]}), 200


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    """Sale with its items and returns."""
    try:
        summary = sales_service.get_sale_summary(sale_id)
    except SaleError as e:
        return jsonify(e.to_dict()), 404

    return jsonify(summary), 200
