from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .models.invoices import STORAGE_SHOP, STORAGE_TYPES
from .models.parties import PAYMENT_METHOD_CASH, PAYMENT_METHODS
from .pricing import round_money
from .time_utils import parse_iso_datetime


# Upper bound for money inputs; keeps integer columns sane.
MAX_MONEY = 999_999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate invoice number)."""


class NotFoundError(LookupError):
    """404-level: a referenced invoice, item or party does not exist."""


# =============================================================================
# Drafts: validated, typed request data handed to services
# =============================================================================

@dataclass(frozen=True)
class LineDraft:
    item_name: str
    quantity: float
    net_weight: float
    gross_weight: float
    unit_price: int
    packaging_cost: int = 0
    item_id: Optional[int] = None
    storage_type: str = STORAGE_SHOP


@dataclass(frozen=True)
class PaymentDraft:
    amount: int
    payment_method: str = PAYMENT_METHOD_CASH
    payment_date: Optional[datetime] = None


@dataclass
class InvoiceDraft:
    """
    Parsed create/update body.

    header holds only the fields the client sent, so an update can tell
    "not provided" from "cleared".
    """
    header: dict[str, Any]
    lines: list[LineDraft]
    payments: list[PaymentDraft] = field(default_factory=list)


# Per-kind header layout: which id, text and percentage fields a body may carry.
INVOICE_HEADER_FIELDS = {
    "customer": {
        "ids": ("customer_id", "broker_id"),
        "texts": ("customer_name", "broker_name"),
        "percentages": ("broker_commission_percentage",),
        "money": ("labour_transport_cost",),
        "due_date": True,
        "storage": False,
    },
    "vendor": {
        "ids": ("vendor_id", "broker_id"),
        "texts": ("vendor_name", "broker_name"),
        "percentages": (),
        "money": ("labour_transport_cost",),
        "due_date": True,
        "storage": True,
    },
    "commissioner": {
        "ids": ("commissioner_id",),
        "texts": ("commissioner_name", "buyer_name", "customer_name"),
        "percentages": ("commissioner_percentage",),
        "money": (),
        "due_date": False,
        "storage": False,
    },
}


# =============================================================================
# Field coercion
# =============================================================================

def _number(value: Any, name: str, *, allow_none: bool = False) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        if allow_none:
            return None
        raise ValidationError(f"{name} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")
    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError(f"{name} must be a finite number")
    return number


def non_negative(value: Any, name: str, *, default: float | None = None) -> float:
    if value is None and default is not None:
        return default
    number = _number(value, name)
    if number < 0:
        raise ValidationError(f"{name} cannot be negative")
    return number


def money(value: Any, name: str, *, default: int | None = None) -> int:
    """Non-negative amount rounded to a whole currency unit."""
    if value is None and default is not None:
        return default
    amount = round_money(non_negative(value, name))
    if amount > MAX_MONEY:
        raise ValidationError(f"{name} is too large")
    return amount


def percentage(value: Any, name: str) -> float:
    if value is None:
        return 0.0
    pct = non_negative(value, name)
    if pct > 100:
        raise ValidationError(f"{name} cannot exceed 100")
    return pct


def optional_id(value: Any, name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        ident = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    if ident <= 0 or (isinstance(value, float) and value != ident):
        raise ValidationError(f"{name} must be a positive integer")
    return ident


def optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def datetime_field(value: Any, name: str) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 datetime")


# =============================================================================
# Payload parsers
# =============================================================================

def parse_payment(payload: Any, *, whole_only: bool = False) -> PaymentDraft:
    """
    Validate one payment body.

    whole_only rejects fractional amounts instead of rounding them; party
    ledgers accept whole currency units only.
    """
    if not isinstance(payload, dict):
        raise ValidationError("payment must be an object")

    raw = _number(payload.get("amount"), "amount")
    if raw <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if whole_only and raw != int(raw):
        raise ValidationError("Payment amount must be a positive whole number")
    amount = round_money(raw)
    if amount <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if amount > MAX_MONEY:
        raise ValidationError("amount is too large")

    method = (optional_text(payload.get("payment_method")) or PAYMENT_METHOD_CASH).lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    return PaymentDraft(
        amount=amount,
        payment_method=method,
        payment_date=datetime_field(payload.get("payment_date"), "payment_date"),
    )


# Lines may name the price generically or after the trade they record.
PRICE_KEYS = ("unit_price", "selling_price", "purchase_price", "sale_price")


def _first_present(payload: dict, keys) -> Any:
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None


def parse_line(payload: Any, *, index: int, with_storage: bool) -> LineDraft:
    if not isinstance(payload, dict):
        raise ValidationError(f"lines[{index}] must be an object")

    item_id = optional_id(payload.get("item_id"), f"lines[{index}].item_id")
    item_name = optional_text(payload.get("item_name"))
    if not item_name and item_id is None:
        raise ValidationError(f"lines[{index}].item_name is required")

    storage_type = STORAGE_SHOP
    if with_storage:
        storage_type = (optional_text(payload.get("storage_type")) or STORAGE_SHOP).lower()
        if storage_type not in STORAGE_TYPES:
            raise ValidationError(
                f"lines[{index}].storage_type must be one of: {', '.join(STORAGE_TYPES)}"
            )

    return LineDraft(
        item_id=item_id,
        item_name=item_name or "",
        quantity=non_negative(payload.get("quantity"), f"lines[{index}].quantity"),
        net_weight=non_negative(payload.get("net_weight"), f"lines[{index}].net_weight"),
        gross_weight=non_negative(payload.get("gross_weight"), f"lines[{index}].gross_weight", default=0.0),
        unit_price=money(_first_present(payload, PRICE_KEYS), f"lines[{index}].unit_price", default=0),
        packaging_cost=money(payload.get("packaging_cost"), f"lines[{index}].packaging_cost", default=0),
        storage_type=storage_type,
    )


def parse_invoice_payload(kind: str, payload: Any) -> InvoiceDraft:
    """
    Validate a create/update body for one invoice kind.

    Rules:
    - at least one line
    - amounts and weights non-negative, money rounded to whole units
    - due_date (when both are given) later than invoice_date
    - payments optional; commissioner bodies may send paid_amount instead
    """
    layout = INVOICE_HEADER_FIELDS.get(kind)
    if layout is None:
        raise ValidationError(f"Unknown invoice type: {kind}")
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")

    header: dict[str, Any] = {}
    for key in layout["ids"]:
        if key in payload:
            header[key] = optional_id(payload.get(key), key)
    for key in layout["texts"]:
        if key in payload:
            header[key] = optional_text(payload.get(key))
    for key in layout["percentages"]:
        if key in payload:
            header[key] = percentage(payload.get(key), key)
    for key in layout["money"]:
        if key in payload:
            header[key] = money(payload.get(key), key, default=0)

    if "invoice_number" in payload:
        header["invoice_number"] = optional_text(payload.get("invoice_number"))
    if "notes" in payload:
        header["notes"] = optional_text(payload.get("notes"))
    if "invoice_date" in payload:
        header["invoice_date"] = datetime_field(payload.get("invoice_date"), "invoice_date")
    if layout["due_date"] and "due_date" in payload:
        header["due_date"] = datetime_field(payload.get("due_date"), "due_date")

    invoice_date = header.get("invoice_date")
    due_date = header.get("due_date")
    if invoice_date is not None and due_date is not None and due_date <= invoice_date:
        raise ValidationError("due_date must be after invoice_date")

    raw_lines = payload.get("lines")
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("At least one line item is required")
    lines = [
        parse_line(line, index=i, with_storage=layout["storage"])
        for i, line in enumerate(raw_lines)
    ]

    raw_payments = payload.get("payments") or []
    if not isinstance(raw_payments, list):
        raise ValidationError("payments must be a list")
    payments = [parse_payment(p) for p in raw_payments]

    if kind == "commissioner" and payload.get("paid_amount") not in (None, "", 0):
        paid = money(payload.get("paid_amount"), "paid_amount")
        if paid > 0:
            payments.append(PaymentDraft(
                amount=paid,
                payment_method=(optional_text(payload.get("payment_method")) or PAYMENT_METHOD_CASH).lower(),
            ))
            if payments[-1].payment_method not in PAYMENT_METHODS:
                raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    return InvoiceDraft(header=header, lines=lines, payments=payments)
