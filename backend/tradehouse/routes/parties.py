# Overview: Flask API routes for parties and broker/commissioner running totals.

from flask import Blueprint, request, jsonify

from ..services import aggregate_service
from ..validation import ValidationError, datetime_field, optional_text, parse_payment
from .errors import SERVICE_ERRORS, error_response, internal_error


parties_bp = Blueprint("parties", __name__, url_prefix="/api/parties")


@parties_bp.post("/<kind>")
def create_party_route(kind: str):
    """
    Create a customer, vendor, broker or commissioner.

    Request body: {"name": "...", "phone": "...", "city": "..."}
    """
    data = request.get_json(silent=True) or {}
    try:
        party = aggregate_service.create_party(
            kind,
            name=data.get("name"),
            phone=optional_text(data.get("phone")),
            city=optional_text(data.get("city")),
        )
        return jsonify(party.to_dict()), 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"create {kind}")


@parties_bp.get("/<kind>/<int:party_id>")
def get_party_route(kind: str, party_id: int):
    try:
        party = aggregate_service.get_party(kind, party_id)
        return jsonify(party.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)


@parties_bp.post("/<kind>/<int:party_id>/payments")
def add_party_payment_route(kind: str, party_id: int):
    """
    Pay a broker or commissioner.

    Amount must be a positive whole number no larger than total_remaining.
    """
    data = request.get_json(silent=True) or {}
    try:
        payment = parse_payment(data, whole_only=True)
        party = aggregate_service.add_party_payment(kind, party_id, payment)
        return jsonify(party.to_dict()), 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"record payment for {kind} {party_id}")


@parties_bp.patch("/<kind>/<int:party_id>/due-date")
def set_party_due_date_route(kind: str, party_id: int):
    data = request.get_json(silent=True) or {}
    try:
        if "due_date" not in data:
            raise ValidationError("due_date is required (null to clear)")
        due_date = datetime_field(data.get("due_date"), "due_date")
        party = aggregate_service.set_party_due_date(kind, party_id, due_date)
        return jsonify(party.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"set due date for {kind} {party_id}")


@parties_bp.post("/<kind>/<int:party_id>/recalculate")
def recalculate_party_route(kind: str, party_id: int):
    """Rebuild total_commission from every referencing invoice."""
    try:
        party = aggregate_service.recalculate_party(kind, party_id)
        return jsonify(party.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"recalculate {kind} {party_id}")
