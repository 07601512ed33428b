# Overview: Flask API routes for store credit ("verisiye"); customers, ledger postings and credit reports.

"""
Store credit routes.

Three blueprints share this module: customers, ledger transactions and
reports. Each is also served under /api/verisiye/... for older clients.
"""

from flask import Blueprint, jsonify, request, g, current_app

from ..errors import ServiceError, error_response
from ..services import credit_service, reporting_service
from ..validation import parse_pagination
from ..decorators import require_auth

credit_customers_bp = Blueprint("credit_customers", __name__, url_prefix="/api/credit-customers")
credit_transactions_bp = Blueprint("credit_transactions", __name__, url_prefix="/api/credit-transactions")
credit_reports_bp = Blueprint("credit_reports", __name__, url_prefix="/api/credit-reports")


# =============================================================================
# Customers
# =============================================================================

@credit_customers_bp.get("")
@require_auth
def list_customers_route():
    """Active customers ordered by name; ?search= matches name, house_no or phone."""
    customers = credit_service.list_customers(g.owner_id, request.args.get("search"))
    return jsonify([c.to_dict() for c in customers])


@credit_customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    try:
        return jsonify(credit_service.get_customer(g.owner_id, customer_id).to_dict())
    except ServiceError as e:
        return error_response(e)


@credit_customers_bp.post("")
@require_auth
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = credit_service.create_customer(g.owner_id, payload)
    except ServiceError as e:
        return error_response(e)
    return jsonify(customer.to_dict()), 201


@credit_customers_bp.put("/<int:customer_id>")
@require_auth
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = credit_service.update_customer(g.owner_id, customer_id, payload)
    except ServiceError as e:
        return error_response(e)
    return jsonify(customer.to_dict())


@credit_customers_bp.delete("/<int:customer_id>")
@require_auth
def delete_customer_route(customer_id: int):
    try:
        credit_service.deactivate_customer(g.owner_id, customer_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"message": "Customer deleted successfully"})


# =============================================================================
# Ledger transactions
# =============================================================================

@credit_transactions_bp.get("")
@require_auth
def list_entries_route():
    """Query params: customer_id, house_no, name, start_date, end_date, limit, offset."""
    try:
        limit, offset = parse_pagination(request.args)
        return jsonify(credit_service.list_entries(g.owner_id, filters=request.args, limit=limit, offset=offset))
    except ServiceError as e:
        return error_response(e)


@credit_transactions_bp.get("/<int:entry_id>")
@require_auth
def get_entry_route(entry_id: int):
    try:
        return jsonify(credit_service.get_entry(g.owner_id, entry_id).to_dict(with_customer=True))
    except ServiceError as e:
        return error_response(e)


@credit_transactions_bp.post("")
@require_auth
def post_entry_route():
    """
    Post a credit or payment.

    Body: {customer_id, type: "credit"|"payment", amount, description?, reference_id?}
    """
    payload = request.get_json(silent=True)
    try:
        entry = credit_service.post_credit_transaction(g.owner_id, payload)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to post credit transaction")
        return jsonify({"error": "Failed to create transaction"}), 500

    return jsonify(entry.to_dict(with_customer=True)), 201


@credit_transactions_bp.delete("/<int:entry_id>")
@require_auth
def reverse_entry_route(entry_id: int):
    try:
        credit_service.reverse_credit_transaction(g.owner_id, entry_id)
    except ServiceError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to reverse credit transaction %s", entry_id)
        return jsonify({"error": "Failed to delete transaction"}), 500

    return jsonify({"message": "Transaction deleted successfully"})


# =============================================================================
# Reports
# =============================================================================

@credit_reports_bp.get("/daily")
@require_auth
def daily_report_route():
    try:
        return jsonify(reporting_service.credit_daily(g.owner_id, request.args.get("date")))
    except ServiceError as e:
        return error_response(e)


@credit_reports_bp.get("/by-customer")
@require_auth
def by_customer_report_route():
    try:
        return jsonify(reporting_service.credit_by_customer(
            g.owner_id,
            house_no=request.args.get("house_no"),
            name=request.args.get("name"),
            start_date=request.args.get("start_date"),
            end_date=request.args.get("end_date"),
        ))
    except ServiceError as e:
        return error_response(e)


@credit_reports_bp.get("/reconciliation")
@require_auth
def reconciliation_route():
    """Compare cached balances with the ledger; report only, nothing is rewritten."""
    try:
        return jsonify(credit_service.reconcile_balances(owner_id=g.owner_id, fix=False))
    except ServiceError as e:
        return error_response(e)
