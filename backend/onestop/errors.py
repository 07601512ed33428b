# Overview: Error taxonomy shared by services and routes.

"""
Service errors and their HTTP mapping.

Business errors (ValidationError, NotFoundError, ConflictError) are never
retried. ConcurrencyError and DatastoreFault are raised only after a
transaction has been rolled back and are safe for the caller to retry.
"""

from __future__ import annotations

from flask import jsonify


class ServiceError(Exception):
    """Base class for errors a route can report to the client."""
    status_code = 500
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        if self.retryable:
            body["retryable"] = True
        return body


class ValidationError(ServiceError, ValueError):
    """400-level input problem."""
    status_code = 400


class AuthError(ServiceError):
    """401-level credential problem."""
    status_code = 401


class NotFoundError(ServiceError, LookupError):
    """Row is absent or belongs to another owner."""
    status_code = 404


class ConflictError(ServiceError, ValueError):
    """409-level business rule conflict (duplicate barcode, sale already voided)."""
    status_code = 409


class ConcurrencyError(ConflictError):
    """Lock timeout or concurrent update race that outlived the retry budget."""
    retryable = True
    retry_after_seconds = 1


class DatastoreFault(ServiceError):
    """Connection loss or constraint violation after the transaction began."""
    retryable = True

    def to_dict(self) -> dict:
        # Driver messages can leak schema details
        return {"error": "Database error", "retryable": True}


def error_response(exc: ServiceError):
    """Flask response tuple for a ServiceError."""
    if isinstance(exc, ConcurrencyError):
        return jsonify(exc.to_dict()), exc.status_code, {"Retry-After": str(exc.retry_after_seconds)}
    return jsonify(exc.to_dict()), exc.status_code
