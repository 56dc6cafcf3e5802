# Overview: Flask API routes for customer purchase history.

from flask import Blueprint, jsonify

from ..services import sales_service
from ..services.sales_service import SaleError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("/<int:customer_id>/sales")
def customer_sales_route(customer_id: int):
    """Every sale for one customer, newest first, with lifetime totals."""
    try:
        history = sales_service.get_customer_purchase_history(customer_id)
    except SaleError as e:
        return jsonify(e.to_dict()), 404

    return jsonify(history), 200
