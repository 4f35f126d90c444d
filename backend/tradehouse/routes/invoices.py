# Overview: Flask API routes for customer, vendor and commissioner invoices; parses input and returns JSON responses.

"""
Invoice Routes

<kind> is one of: customer, vendor, commissioner.

Every write goes through invoice_service, which validates stock before
touching it and commits once. Error bodies carry a details object (item
name, bucket, available vs. required, overpayment amount) so the operator
can correct the request.
"""

from flask import Blueprint, request, jsonify

from ..services import invoice_service
from ..validation import ValidationError, datetime_field, parse_invoice_payload, parse_payment
from .errors import SERVICE_ERRORS, error_response, internal_error


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("/<kind>")
def list_invoices_route(kind: str):
    """
    List invoices of one kind, newest first.

    Query parameters:
    - party_id: customer/vendor/commissioner id
    - status: unpaid, partial, paid, overdue
    - limit: Maximum results (default: 100)
    - offset: Pagination offset (default: 0)
    """
    party_id = request.args.get("party_id", type=int)
    status = request.args.get("status")
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    try:
        rows, total = invoice_service.list_invoices(
            kind, party_id=party_id, status=status, limit=limit, offset=offset,
        )
    except SERVICE_ERRORS as e:
        return error_response(e)

    return jsonify({
        "items": [invoice.to_dict() for invoice in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })


@invoices_bp.post("/<kind>")
def create_invoice_route(kind: str):
    """
    Create an invoice and apply its stock effect.

    Request body (customer example):
    {
        "customer_id": 1,               // or customer_name
        "broker_id": 2,                 // optional
        "broker_commission_percentage": 5,
        "invoice_date": "...",          // optional, ISO-8601
        "due_date": "...",              // optional, must be after invoice_date
        "labour_transport_cost": 200,
        "lines": [{"item_id": 1, "quantity": 20, "net_weight": 200,
                   "gross_weight": 220, "unit_price": 50, "packaging_cost": 5}],
        "payments": [{"amount": 400, "payment_method": "cash"}]
    }
    Vendor lines may add "storage_type": "shop" | "cold".
    Commissioner bodies may send "paid_amount" instead of payments.
    """
    data = request.get_json(silent=True) or {}
    try:
        draft = parse_invoice_payload(kind, data)
        invoice = invoice_service.create_invoice(kind, draft)
        return jsonify(invoice.to_dict()), 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"create {kind} invoice")


@invoices_bp.get("/<kind>/<int:invoice_id>")
def get_invoice_route(kind: str, invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(kind, invoice_id)
        return jsonify(invoice.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)


@invoices_bp.put("/<kind>/<int:invoice_id>")
def update_invoice_route(kind: str, invoice_id: int):
    """
    Replace header fields and the full line set.

    Same body as create; payments in the body are ignored (use the payments
    endpoint).
    """
    data = request.get_json(silent=True) or {}
    try:
        draft = parse_invoice_payload(kind, data)
        invoice = invoice_service.update_invoice(kind, invoice_id, draft)
        return jsonify(invoice.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"update {kind} invoice {invoice_id}")


@invoices_bp.delete("/<kind>/<int:invoice_id>")
def delete_invoice_route(kind: str, invoice_id: int):
    try:
        invoice_service.delete_invoice(kind, invoice_id)
        return jsonify({"deleted": True, "id": invoice_id})
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"delete {kind} invoice {invoice_id}")


@invoices_bp.post("/<kind>/<int:invoice_id>/payments")
def add_payment_route(kind: str, invoice_id: int):
    """
    Append a payment.

    Request body:
    {
        "amount": 400,                  // required, > 0
        "payment_method": "cash",       // cash, online, cheque
        "payment_date": "..."           // optional, ISO-8601
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        payment = parse_payment(data)
        invoice = invoice_service.add_invoice_payment(kind, invoice_id, payment)
        return jsonify(invoice.to_dict()), 201
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"add payment to {kind} invoice {invoice_id}")


@invoices_bp.patch("/<kind>/<int:invoice_id>/due-date")
def update_due_date_route(kind: str, invoice_id: int):
    """Request body: {"due_date": "..."} (null clears it)."""
    data = request.get_json(silent=True) or {}
    try:
        if "due_date" not in data:
            raise ValidationError("due_date is required (null to clear)")
        due_date = datetime_field(data.get("due_date"), "due_date")
        invoice = invoice_service.update_invoice_due_date(kind, invoice_id, due_date)
        return jsonify(invoice.to_dict())
    except SERVICE_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error(f"update due date of {kind} invoice {invoice_id}")
