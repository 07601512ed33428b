# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

MULTI-TENANT: All product operations are scoped to g.owner_id (set by
@require_auth). A product of another owner answers 404.
"""
from flask import Blueprint, jsonify, request, g

from ..errors import ServiceError, error_response
from ..services import products_service
from ..decorators import require_auth

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List active products ordered by name.

    Query params:
    - search: str (optional) - matches name, barcode or category
    """
    products = products_service.list_products(g.owner_id, request.args.get("search"))
    return jsonify([p.to_dict() for p in products])


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    try:
        return jsonify(products_service.get_product(g.owner_id, product_id).to_dict())
    except ServiceError as e:
        return error_response(e)


@products_bp.get("/barcode/<barcode>")
@require_auth
def get_product_by_barcode(barcode: str):
    try:
        return jsonify(products_service.get_product_by_barcode(g.owner_id, barcode).to_dict())
    except ServiceError as e:
        return error_response(e)


@products_bp.post("")
@require_auth
def create_product_route():
    """Create a product; 409 if the barcode is already in use."""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(g.owner_id, payload)
    except ServiceError as e:
        return error_response(e)
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(g.owner_id, product_id, payload)
    except ServiceError as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.patch("/<int:product_id>/stock")
@require_auth
def adjust_stock_route(product_id: int):
    """Body: {"quantity": <signed delta>}."""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.adjust_stock(g.owner_id, product_id, payload.get("quantity"))
    except ServiceError as e:
        return error_response(e)
    return jsonify(product.to_dict())


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(g.owner_id, product_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Product deleted successfully"})
