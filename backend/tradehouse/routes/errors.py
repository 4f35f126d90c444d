# Overview: Maps service-layer exceptions onto JSON error responses.

from __future__ import annotations

from flask import current_app, jsonify

from ..extensions import db
from ..services.aggregate_service import OverpaymentError
from ..services.inventory_service import InsufficientInventoryError
from ..services.invoice_service import InvoiceError
from ..validation import ConflictError, NotFoundError, ValidationError


# Errors a caller can act on; anything else is a 500.
SERVICE_ERRORS = (
    ValidationError,
    ConflictError,
    NotFoundError,
    InsufficientInventoryError,
    InvoiceError,
    OverpaymentError,
)


def error_status(exc: Exception) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConflictError):
        return 409
    return 400


def error_response(exc: Exception):
    """{"error": message, "details": {...}} with the matching status code."""
    body = {"error": str(exc)}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), error_status(exc)


def internal_error(action: str):
    db.session.rollback()
    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
