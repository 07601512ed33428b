# Overview: Flask API routes for system health.

"""
System health endpoint.

Used by the hosting platform's health probe and by the POS front end to
detect a sleeping backend.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a trivial query and time it."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        db.session.rollback()
        return {
            "status": "connected",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
        }
    except Exception:
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "error",
            "latency_ms": round((time.time() - start_time) * 1000, 2),
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "connected"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "database": database["status"],
        "latency_ms": database["latency_ms"],
        "timestamp": to_utc_z(utcnow()),
    }
    return body, 200 if healthy else 503
