# Overview: Flask API routes for catalog reads; parses input and returns JSON responses.

from flask import Blueprint, jsonify, request

from ..services import catalog_service
from ..services.catalog_service import CatalogError
from ..validation import ValidationError, parse_int


catalog_bp = Blueprint("catalog", __name__, url_prefix="/api/catalog")


@catalog_bp.get("/medicine/fefo")
def fefo_route():
    """
    FEFO batch allocation for a medicine name.

    Query: name (required), quantity (base units, default 1), shop_id
    """
    try:
        name = (request.args.get("name") or "").strip()
        if not name:
            return jsonify({"error": "name required"}), 400
        quantity = parse_int(request.args.get("quantity"), "quantity", minimum=1) or 1
        shop_id = parse_int(request.args.get("shop_id"), "shop_id")
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400

    result = catalog_service.select_batches_fefo(name, quantity, shop_id=shop_id)
    return jsonify({"name": name, "requested": quantity, **result.to_dict()}), 200


@catalog_bp.get("/<item_type>")
def list_items_route(item_type: str):
    """Sellable items (stock > 0) of one type, ordered by name."""
    try:
        shop_id = parse_int(request.args.get("shop_id"), "shop_id")
        items = catalog_service.list_sellable_items(item_type, shop_id=shop_id)
    except (CatalogError, ValidationError) as e:
        return jsonify({"error": str(e)}), 400

    return jsonify({"items": [item.to_dict() for item in items]}), 200


@catalog_bp.get("/<item_type>/<int:item_id>")
def get_item_route(item_type: str, item_id: int):
    try:
        item = catalog_service.get_item(item_type, item_id)
    except CatalogError as e:
        return jsonify({"error": str(e)}), 400

    if not item:
        return jsonify({"error": f"{item_type.capitalize()} not found"}), 404
    return jsonify({"item": item.to_dict()}), 200
