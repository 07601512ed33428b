# Overview: Flask API routes for sale line items; per-line reads and product sales statistics.

from flask import Blueprint, jsonify, request, g

from ..errors import ServiceError, error_response
from ..services import reporting_service
from ..validation import parse_int, parse_pagination
from ..decorators import require_auth

sale_items_bp = Blueprint("sale_items", __name__, url_prefix="/api/sale-items")


@sale_items_bp.get("")
@require_auth
def list_sale_items_route():
    """Query params: sale_id, product_id, limit, offset."""
    try:
        limit, offset = parse_pagination(request.args)
        return jsonify(reporting_service.list_sale_items(
            g.owner_id,
            sale_id=parse_int(request.args.get("sale_id"), "sale_id"),
            product_id=parse_int(request.args.get("product_id"), "product_id"),
            limit=limit,
            offset=offset,
        ))
    except ServiceError as e:
        return error_response(e)


@sale_items_bp.get("/stats/top-selling")
@require_auth
def top_selling_route():
    try:
        limit = parse_int(request.args.get("limit"), "limit", default=10)
        return jsonify(reporting_service.top_selling(
            g.owner_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=max(1, min(limit, 100)),
        ))
    except ServiceError as e:
        return error_response(e)


@sale_items_bp.get("/stats/profit-by-product")
@require_auth
def profit_by_product_route():
    try:
        return jsonify(reporting_service.profit_by_product(
            g.owner_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        ))
    except ServiceError as e:
        return error_response(e)


@sale_items_bp.get("/by-sale/<int:sale_id>")
@sale_items_bp.get("/by-transaction/<int:sale_id>")
@require_auth
def items_by_sale_route(sale_id: int):
    try:
        return jsonify(reporting_service.items_for_sale(g.owner_id, sale_id))
    except ServiceError as e:
        return error_response(e)


@sale_items_bp.get("/by-product/<int:product_id>")
@require_auth
def items_by_product_route(product_id: int):
    try:
        limit, offset = parse_pagination(request.args)
        return jsonify(reporting_service.items_for_product(g.owner_id, product_id, limit=limit, offset=offset))
    except ServiceError as e:
        return error_response(e)
