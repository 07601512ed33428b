# Overview: Flask API routes for sales operations; posting, voiding and sale reads.

"""
Sales routes.

Also served under /api/transactions for older POS clients.
"""

from flask import Blueprint, jsonify, request, g, current_app

from ..errors import ServiceError, error_response
from ..services import sales_service
from ..validation import parse_pagination
from ..decorators import require_auth

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.get("")
@require_auth
def list_sales_route():
    """
    Query params: limit (default 100), offset, startDate, endDate.
    """
    try:
        limit, offset = parse_pagination(request.args)
        return jsonify(sales_service.list_sales(
            g.owner_id,
            limit=limit,
            offset=offset,
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
        ))
    except ServiceError as e:
        return error_response(e)


@sales_bp.get("/stats/summary")
@require_auth
def sales_summary_route():
    try:
        return jsonify(sales_service.sales_summary(
            g.owner_id,
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
        ))
    except ServiceError as e:
        return error_response(e)


@sales_bp.get("/<int:sale_id>")
@require_auth
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(g.owner_id, sale_id).to_dict(include_lines=True))
    except ServiceError as e:
        return error_response(e)


@sales_bp.post("")
@require_auth
def post_sale_route():
    """
    Post a sale.

    Body: {items: [{product_id?, name, quantity, price, subtotal}], subtotal,
    discount, tax, total, payment_method, amount_paid, change_amount,
    notes?, cashier_id?}
    """
    payload = request.get_json(silent=True)
    try:
        sale = sales_service.post_sale(g.owner_id, payload)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post sale")
        return jsonify({"error": "Failed to create transaction"}), 500

    return jsonify(sale.to_dict(include_lines=True)), 201


@sales_bp.delete("/<int:sale_id>")
@require_auth
def void_sale_route(sale_id: int):
    """Void the sale and restore stock; 409 if it is already voided."""
    try:
        sales_service.void_sale(g.owner_id, sale_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to void sale %s", sale_id)
        return jsonify({"error": "Failed to void transaction"}), 500

    return jsonify({"message": "Transaction voided successfully"})
