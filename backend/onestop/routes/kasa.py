# Overview: Flask API routes for kasa; expense products, daily balance sheets and kasa reports.

"""
Cash register ("kasa") routes.

Balance sheets are addressed by calendar date (YYYY-MM-DD); POST upserts
the sheet for that date and answers 201 on insert, 200 on update.
"""

from flask import Blueprint, jsonify, request, g

from ..errors import ServiceError, error_response
from ..services import kasa_service, reporting_service
from ..validation import parse_pagination
from ..decorators import require_auth

kasa_bp = Blueprint("kasa", __name__, url_prefix="/api/kasa")


# =============================================================================
# Expense products
# =============================================================================

@kasa_bp.get("/expense-products")
@require_auth
def list_expense_products_route():
    rows = kasa_service.list_expense_products(g.owner_id, request.args.get("category"))
    return jsonify([r.to_dict() for r in rows])


@kasa_bp.post("/expense-products")
@require_auth
def create_expense_product_route():
    try:
        row = kasa_service.create_expense_product(g.owner_id, request.get_json(silent=True) or {})
    except ServiceError as e:
        return error_response(e)
    return jsonify(row.to_dict()), 201


@kasa_bp.put("/expense-products/<int:product_id>")
@require_auth
def update_expense_product_route(product_id: int):
    try:
        row = kasa_service.update_expense_product(g.owner_id, product_id, request.get_json(silent=True) or {})
    except ServiceError as e:
        return error_response(e)
    return jsonify(row.to_dict())


@kasa_bp.delete("/expense-products/<int:product_id>")
@require_auth
def delete_expense_product_route(product_id: int):
    try:
        kasa_service.delete_expense_product(g.owner_id, product_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Expense product deleted successfully"})


# =============================================================================
# Balance sheets
# =============================================================================

@kasa_bp.get("/balance-sheets")
@require_auth
def list_balance_sheets_route():
    try:
        limit, offset = parse_pagination(request.args)
        return jsonify(kasa_service.list_balance_sheets(
            g.owner_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
            limit=limit,
            offset=offset,
        ))
    except ServiceError as e:
        return error_response(e)


@kasa_bp.get("/balance-sheets/<sheet_date>")
@require_auth
def get_balance_sheet_route(sheet_date: str):
    try:
        return jsonify(kasa_service.get_balance_sheet(g.owner_id, sheet_date).to_dict())
    except ServiceError as e:
        return error_response(e)


@kasa_bp.post("/balance-sheets")
@require_auth
def upsert_balance_sheet_route():
    try:
        sheet, created = kasa_service.upsert_balance_sheet(g.owner_id, request.get_json(silent=True))
    except ServiceError as e:
        return error_response(e)
    return jsonify(sheet.to_dict()), 201 if created else 200


@kasa_bp.delete("/balance-sheets/<sheet_date>")
@require_auth
def delete_balance_sheet_route(sheet_date: str):
    try:
        kasa_service.delete_balance_sheet(g.owner_id, sheet_date)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Balance sheet deleted successfully"})


# =============================================================================
# Reports
# =============================================================================

@kasa_bp.get("/reports/daily-profit")
@require_auth
def daily_profit_route():
    try:
        return jsonify(reporting_service.kasa_daily_profit(
            g.owner_id,
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        ))
    except ServiceError as e:
        return error_response(e)


@kasa_bp.get("/reports/summary")
@require_auth
def summary_route():
    try:
        return jsonify(reporting_service.kasa_summary(g.owner_id, request.args.get("date")))
    except ServiceError as e:
        return error_response(e)
