# Overview: Flask API routes for credit payment reminders.

from flask import Blueprint, jsonify, request, g

from ..errors import ServiceError, error_response
from ..services import reminder_service
from ..decorators import require_auth

reminders_bp = Blueprint("credit_reminders", __name__, url_prefix="/api/credit-reminders")


@reminders_bp.post("/send/<int:customer_id>")
@require_auth
def send_reminder_route(customer_id: int):
    """Prepare the reminder text for one customer; 400 if they have no phone."""
    try:
        result = reminder_service.prepare_reminder(g.owner_id, customer_id)
    except ServiceError as e:
        return error_response(e)
    return jsonify({"success": True, "message": "Reminder message prepared", **result})


@reminders_bp.post("/send-bulk")
@require_auth
def send_bulk_route():
    """Body: {customer_ids?: [int], min_credit_amount?: number}."""
    try:
        return jsonify(reminder_service.prepare_bulk_reminders(g.owner_id, request.get_json(silent=True) or {}))
    except ServiceError as e:
        return error_response(e)
