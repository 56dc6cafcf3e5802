# Overview: Flask API routes for returns and exchanges; parses input and returns JSON responses.

# backend/pharmapos/routes/returns.py
"""
Return Processing API Routes

- Look up a sale by receipt fragment (expired sales listed but flagged)
- Process a batch of return/replace selections against one sale
- Returns history with filters and a refund summary

POST /api/returns/ body:
{
    "sale_id": 42,
    "reason": "Wrong strength",
    "selections": [
        {"sale_item_id": 101, "quantity": 3, "return_type": "return"},
        {"sale_item_id": 102, "quantity": 1, "return_type": "replace"}
    ]
}
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models.returns import RETURN_TYPES, RETURN_TYPE_RETURN
from ..services import return_service
from ..services.return_service import ReturnError, ReturnSelection
from ..validation import (
    ValidationError,
    parse_choice,
    parse_datetime,
    parse_decimal,
    parse_int,
    require_json,
)
from ..decorators import require_auth


returns_bp = Blueprint("returns", __name__, url_prefix="/api/returns")


def _selections_from_payload(items) -> list[ReturnSelection]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("selections must be a list")

    selections = []
    for i, data in enumerate(items):
        if not isinstance(data, dict):
            raise ValidationError(f"selections[{i}] must be an object")
        selections.append(ReturnSelection(
            sale_item_id=parse_int(data.get("sale_item_id"), f"selections[{i}].sale_item_id", required=True),
            quantity=parse_int(data.get("quantity"), f"selections[{i}].quantity", required=True),
            return_type=parse_choice(
                data.get("return_type"), f"selections[{i}].return_type", RETURN_TYPES,
                default=RETURN_TYPE_RETURN,
            ),
        ))
    return selections


@returns_bp.get("/lookup")
def lookup_route():
    """Receipt search. Query: q (3+ characters), shop_id."""
    try:
        shop_id = parse_int(request.args.get("shop_id"), "shop_id")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    results = return_service.lookup_sales(request.args.get("q", ""), shop_id=shop_id)
    return jsonify({"results": [r.to_dict() for r in results]}), 200


@returns_bp.post("/")
@require_auth
def process_return_route():
    """
    Process a return/exchange batch.

    Returns:
        200: updated sale, items, return records and refund total
        400: ineligible selection (nothing written)
        500: storage failure (nothing written)
    """
    try:
        data = require_json(request.get_json(silent=True))
        sale_id = parse_int(data.get("sale_id"), "sale_id", required=True)
        selections = _selections_from_payload(data.get("selections"))
        reason = (data.get("reason") or "").strip() or None

        outcome = return_service.process_return(
            sale_id=sale_id,
            selections=selections,
            reason=reason,
            processed_by=g.current_user.display_name,
        )

        current_app.logger.info(
            "Return on sale %s by %s: %d selection(s), refund=%s",
            outcome.sale.receipt_number, g.current_user.display_name,
            len(outcome.returns), outcome.refund_total,
        )
        return jsonify(outcome.to_dict()), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ReturnError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Failed to process return")
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process return")
        return jsonify({"error": "Internal server error"}), 500


@returns_bp.get("/")
def list_returns_route():
    """
    Returns history.

    Query: shop_id, date_from, date_to, return_type, min_amount, max_amount, search
    """
    try:
        returns = return_service.list_returns(
            shop_id=parse_int(request.args.get("shop_id"), "shop_id"),
            date_from=parse_datetime(request.args.get("date_from"), "date_from"),
            date_to=parse_datetime(request.args.get("date_to"), "date_to"),
            return_type=parse_choice(request.args.get("return_type"), "return_type", RETURN_TYPES),
            min_amount=parse_decimal(request.args.get("min_amount"), "min_amount"),
            max_amount=parse_decimal(request.args.get("max_amount"), "max_amount"),
            search=request.args.get("search"),
        )
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({
        "returns": [r.to_dict() for r in returns],
        "summary": return_service.summarize_returns(returns),
    }), 200


@returns_bp.get("/sale/<int:sale_id>")
def sale_returns_route(sale_id: int):
    returns = return_service.get_sale_returns(sale_id)
    return jsonify({
        "returns": [r.to_dict() for r in returns],
        "summary": return_service.summarize_returns(returns),
    }), 200
