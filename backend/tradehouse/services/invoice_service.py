# Overview: Invoice reconciliation; keeps stock, invoice documents and party totals consistent.

# backend/tradehouse/services/invoice_service.py
"""
Invoice Reconciliation Service

WHY: every invoice moves stock. Creating, editing or deleting one must move
exactly the right amount, or refuse to move anything.

SEQUENCE (per operation, one database transaction):
1. Build a StockPlan from the lines (and, for edits/deletes, the reversal of
   the persisted lines).
2. Validate the whole plan against current stock. Nothing is written yet.
3. Apply the plan to the item counters.
4. Persist the invoice; the flush hook rederives totals and status.
5. Commit.
6. Refresh broker/commissioner totals (best effort, after commit).

Any failure before the commit rolls back steps 3-4 (run_with_retry).

DIRECTION:
- vendor:       +1 into the line's storage_type bucket
- customer:     -1 out of the shop bucket
- commissioner: -1 out of the shop bucket
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Commissioner,
    CommissionerInvoice,
    CommissionerInvoiceLine,
    CommissionerPayment,
    CustomerInvoice,
    CustomerInvoiceLine,
    CustomerInvoicePayment,
    VendorInvoice,
    VendorInvoiceLine,
    VendorInvoicePayment,
)
from ..time_utils import utcnow
from ..validation import (
    ConflictError,
    InvoiceDraft,
    LineDraft,
    NotFoundError,
    PaymentDraft,
    ValidationError,
)
from .aggregate_service import (
    PARTY_BROKER,
    PARTY_COMMISSIONER,
    OverpaymentError,
    commission_total,
    get_party,
    refresh_party_totals,
)
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import (
    STOCK_LABELS,
    InsufficientInventoryError,
    StockPlan,
)
from .sequence_service import next_invoice_number


STOCK_IN = 1
STOCK_OUT = -1


class InvoiceError(Exception):
    """Raised when an invoice operation is rejected by a business rule."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CannotDeleteError(InvoiceError):
    """Reversing the invoice's stock effect would drive an item negative."""


class NegativeBalanceProjectionError(InvoiceError):
    """Removing a commissioner invoice would leave the commissioner owing a negative balance."""


@dataclass(frozen=True)
class InvoiceKind:
    """How one invoice variant maps onto tables, stock and parties."""
    name: str
    model: type
    line_model: type
    payment_model: type
    direction: int
    prefix: str
    # (party type, id field, name field); the first entry is the invoice's own party
    parties: tuple
    # party whose commission totals depend on this invoice, and its id field
    aggregate_party: Optional[str] = None
    aggregate_field: Optional[str] = None
    has_due_date: bool = True


INVOICE_KINDS = {
    "customer": InvoiceKind(
        name="customer",
        model=CustomerInvoice,
        line_model=CustomerInvoiceLine,
        payment_model=CustomerInvoicePayment,
        direction=STOCK_OUT,
        prefix="CIN",
        parties=(("customer", "customer_id", "customer_name"), (PARTY_BROKER, "broker_id", "broker_name")),
        aggregate_party=PARTY_BROKER,
        aggregate_field="broker_id",
    ),
    "vendor": InvoiceKind(
        name="vendor",
        model=VendorInvoice,
        line_model=VendorInvoiceLine,
        payment_model=VendorInvoicePayment,
        direction=STOCK_IN,
        prefix="VIN",
        parties=(("vendor", "vendor_id", "vendor_name"), (PARTY_BROKER, "broker_id", "broker_name")),
    ),
    "commissioner": InvoiceKind(
        name="commissioner",
        model=CommissionerInvoice,
        line_model=CommissionerInvoiceLine,
        payment_model=CommissionerPayment,
        direction=STOCK_OUT,
        prefix="COM",
        parties=((PARTY_COMMISSIONER, "commissioner_id", "commissioner_name"),),
        aggregate_party=PARTY_COMMISSIONER,
        aggregate_field="commissioner_id",
        has_due_date=False,
    ),
}


def get_kind(name: str) -> InvoiceKind:
    kind = INVOICE_KINDS.get(name)
    if kind is None:
        raise ValidationError(f"Unknown invoice type: {name}. Must be one of: {', '.join(INVOICE_KINDS)}")
    return kind


# =============================================================================
# Reads
# =============================================================================

def get_invoice(kind_name: str, invoice_id: int):
    kind = get_kind(kind_name)
    invoice = db.session.get(kind.model, invoice_id)
    if invoice is None:
        raise NotFoundError(f"{kind.name.capitalize()} invoice {invoice_id} not found")
    return invoice


def list_invoices(
    kind_name: str,
    *,
    party_id: int | None = None,
    status: str | None = None,
    limit: int = 100,
    offset: int = 0,
):
    """Newest first. party_id filters on the invoice's own party."""
    kind = get_kind(kind_name)
    model = kind.model
    query = db.session.query(model)
    if party_id is not None:
        query = query.filter(getattr(model, kind.parties[0][1]) == party_id)
    if status:
        query = query.filter(model.status == status)

    total = query.count()
    rows = (
        query.order_by(model.invoice_date.desc(), model.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 500))
        .all()
    )
    return rows, total


def _load_locked(kind: InvoiceKind, invoice_id: int):
    invoice = lock_for_update(db.session.query(kind.model).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise NotFoundError(f"{kind.name.capitalize()} invoice {invoice_id} not found")
    return invoice


# =============================================================================
# Helpers
# =============================================================================

def _resolve_header(kind: InvoiceKind, header: dict, invoice=None) -> dict:
    """
    Fill denormalized party names from ids and check required fields.

    An id without a name takes the party's stored name; an id with a name
    only has to exist.
    """
    resolved = {k: v for k, v in header.items() if not (v is None and k in ("invoice_date", "invoice_number"))}

    for index, (party_kind, id_field, name_field) in enumerate(kind.parties):
        party_id = resolved.get(id_field)
        if party_id is None:
            # Detaching an optional party (broker) clears its name too.
            if index and id_field in resolved and name_field not in resolved:
                resolved[name_field] = None
            continue
        party = get_party(party_kind, party_id)
        if not resolved.get(name_field):
            resolved[name_field] = party.name

    _, _, required_name = kind.parties[0]
    if required_name in resolved:
        final_name = resolved[required_name]
    else:
        final_name = getattr(invoice, required_name, None) if invoice is not None else None
    if not final_name:
        raise ValidationError(f"{required_name} is required")

    return resolved


def _check_dates(invoice_date, due_date) -> None:
    if due_date is not None and invoice_date is not None and due_date <= invoice_date:
        raise ValidationError("due_date must be after invoice_date")


def _ensure_unique_number(kind: InvoiceKind, number: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(kind.model.id).filter(kind.model.invoice_number == number)
    if exclude_id is not None:
        query = query.filter(kind.model.id != exclude_id)
    if query.first():
        raise ConflictError(f"Invoice number {number} already exists")


def _build_lines(kind: InvoiceKind, drafts: list[LineDraft], items: dict) -> list:
    lines = []
    price_field = kind.line_model.UNIT_PRICE_FIELD
    for draft in drafts:
        item = items.get(draft.item_id) if draft.item_id is not None else None
        fields = {
            "item_id": draft.item_id,
            "item_name": draft.item_name or (item.name if item is not None else ""),
            "quantity": draft.quantity,
            "net_weight": draft.net_weight,
            "gross_weight": draft.gross_weight,
            "packaging_cost": draft.packaging_cost,
            price_field: draft.unit_price,
        }
        if kind.line_model is VendorInvoiceLine:
            fields["storage_type"] = draft.storage_type
        lines.append(kind.line_model(**fields))
    return lines


def _new_payment(kind: InvoiceKind, invoice, payment: PaymentDraft):
    fields = {
        "amount": payment.amount,
        "payment_method": payment.payment_method,
        "payment_date": payment.payment_date or utcnow(),
    }
    if kind.payment_model is CommissionerPayment:
        fields["commissioner"] = invoice.commissioner
    return kind.payment_model(**fields)


def _aggregate_id(kind: InvoiceKind, invoice) -> Optional[int]:
    if kind.aggregate_field is None or invoice is None:
        return None
    return getattr(invoice, kind.aggregate_field)


def _refresh_aggregates(kind: InvoiceKind, *party_ids) -> None:
    if kind.aggregate_party == PARTY_BROKER:
        refresh_party_totals(broker_ids=party_ids)
    elif kind.aggregate_party == PARTY_COMMISSIONER:
        refresh_party_totals(commissioner_ids=party_ids)


def _cannot_delete(exc: InsufficientInventoryError) -> CannotDeleteError:
    d = exc.details
    label = STOCK_LABELS.get(d.get("field"), d.get("field"))
    reason = (
        f'Item "{d.get("item_name")}" {d.get("bucket")} {label} would become negative '
        f'(Current: {d.get("current")}, Required: {d.get("required")})'
    )
    return CannotDeleteError(
        f"Cannot delete: {reason}",
        details={
            "reason": reason,
            "item_name": d.get("item_name"),
            "bucket": d.get("bucket"),
            "field": d.get("field"),
            "current": d.get("current"),
            "required": d.get("required"),
        },
    )


# =============================================================================
# Create / update / delete
# =============================================================================

def create_invoice(kind_name: str, draft: InvoiceDraft):
    """
    Create an invoice and apply its stock effect atomically.

    Raises:
        ValidationError, ConflictError, NotFoundError, InsufficientInventoryError
    """
    kind = get_kind(kind_name)

    def _op():
        header = _resolve_header(kind, draft.header)
        if "invoice_date" in header:
            _check_dates(header["invoice_date"], header.get("due_date"))

        plan = StockPlan()
        for line in draft.lines:
            plan.add_line(line, direction=kind.direction)
        items = plan.validate()

        number = header.pop("invoice_number", None)
        if number:
            _ensure_unique_number(kind, number)
        else:
            number = next_invoice_number(model=kind.model, invoice_type=kind.name, prefix=kind.prefix)

        plan.apply()

        invoice = kind.model(invoice_number=number, **header)
        with db.session.no_autoflush:
            # Pending before any payment is attached to the commissioner.
            db.session.add(invoice)
            invoice.lines = _build_lines(kind, draft.lines, items)
            if isinstance(invoice, CommissionerInvoice) and invoice.commissioner_id is not None:
                invoice.commissioner = db.session.get(Commissioner, invoice.commissioner_id)

            for payment in draft.payments:
                if isinstance(invoice, CommissionerInvoice):
                    # Initial paid amount never exceeds the commission.
                    invoice.recompute_totals()
                    amount = min(payment.amount, invoice.remaining_amount)
                    if amount < payment.amount:
                        current_app.logger.info(
                            "Capped initial commissioner payment %s to %s on %s",
                            payment.amount, amount, number,
                        )
                    if amount <= 0:
                        continue
                    payment = PaymentDraft(amount, payment.payment_method, payment.payment_date)
                invoice.payments.append(_new_payment(kind, invoice, payment))

        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Invoice number {number} already exists")

        current_app.logger.info(
            "Created %s invoice %s (total %s, status %s)",
            kind.name, invoice.invoice_number, invoice.total, invoice.status,
        )
        return invoice

    invoice = run_with_retry(_op)
    _refresh_aggregates(kind, _aggregate_id(kind, invoice))
    return invoice


def update_invoice(kind_name: str, invoice_id: int, draft: InvoiceDraft):
    """
    Replace an invoice's header fields and line set.

    The new lines are validated as if the old invoice never existed: the
    persisted lines are reversed and the new ones applied within one plan.
    Payments are kept. Both the previous and the new broker/commissioner are
    refreshed afterwards.
    """
    kind = get_kind(kind_name)

    def _op():
        invoice = _load_locked(kind, invoice_id)
        previous_party_id = _aggregate_id(kind, invoice)
        header = _resolve_header(kind, draft.header, invoice=invoice)

        number = header.pop("invoice_number", None)
        if number and number != invoice.invoice_number:
            _ensure_unique_number(kind, number, exclude_id=invoice.id)
            invoice.invoice_number = number

        if "invoice_date" in header:
            _check_dates(header["invoice_date"], header.get("due_date", getattr(invoice, "due_date", None)))

        plan = StockPlan()
        for line in invoice.lines:
            plan.add_line(line, direction=kind.direction, reverse=True)
        for line in draft.lines:
            plan.add_line(line, direction=kind.direction)
        items = plan.validate()

        for key, value in header.items():
            setattr(invoice, key, value)
        invoice.lines = _build_lines(kind, draft.lines, items)

        if isinstance(invoice, CommissionerInvoice) and invoice.commissioner_id != previous_party_id:
            new_commissioner = (
                db.session.get(Commissioner, invoice.commissioner_id)
                if invoice.commissioner_id is not None else None
            )
            invoice.commissioner = new_commissioner
            for payment in invoice.payments:
                payment.commissioner = new_commissioner

        plan.apply()
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Invoice number {number} already exists")

        current_app.logger.info(
            "Updated %s invoice %s (total %s, status %s)",
            kind.name, invoice.invoice_number, invoice.total, invoice.status,
        )
        return invoice, previous_party_id

    invoice, previous_party_id = run_with_retry(_op)
    _refresh_aggregates(kind, previous_party_id, _aggregate_id(kind, invoice))
    return invoice


def _check_commissioner_projection(invoice: CommissionerInvoice) -> None:
    """
    Refuse a delete that would leave the commissioner with a negative balance.

    The invoice takes its commission and its linked payments with it; direct
    payments to the commissioner stay.
    """
    commissioner = lock_for_update(
        db.session.query(Commissioner).filter_by(id=invoice.commissioner_id)
    ).first()
    if commissioner is None:
        return

    linked_paid = sum(p.amount or 0 for p in invoice.payments)
    projected_commission = commission_total(PARTY_COMMISSIONER, commissioner.id) - (invoice.commissioner_amount or 0)
    projected_paid = sum(p.amount or 0 for p in commissioner.payments) - linked_paid
    projected_remaining = projected_commission - projected_paid

    if projected_remaining < 0:
        raise NegativeBalanceProjectionError(
            f"Cannot delete invoice: it would leave a negative balance of "
            f"{abs(projected_remaining)} for {commissioner.name}",
            details={
                "commissioner_id": commissioner.id,
                "commissioner_name": commissioner.name,
                "projected_remaining": projected_remaining,
                "negative_amount": abs(projected_remaining),
            },
        )


def delete_invoice(kind_name: str, invoice_id: int) -> None:
    """
    Delete an invoice after reversing its stock effect.

    The full reversal is simulated first; a shortfall raises CannotDeleteError
    and leaves everything untouched.
    """
    kind = get_kind(kind_name)

    def _op():
        invoice = _load_locked(kind, invoice_id)

        plan = StockPlan()
        for line in invoice.lines:
            plan.add_line(line, direction=kind.direction, reverse=True)
        try:
            plan.validate()
        except InsufficientInventoryError as exc:
            raise _cannot_delete(exc) from exc

        if isinstance(invoice, CommissionerInvoice) and invoice.commissioner_id is not None:
            _check_commissioner_projection(invoice)

        party_id = _aggregate_id(kind, invoice)
        number = invoice.invoice_number

        plan.apply()
        db.session.delete(invoice)
        db.session.commit()

        current_app.logger.info("Deleted %s invoice %s", kind.name, number)
        return party_id

    party_id = run_with_retry(_op)
    _refresh_aggregates(kind, party_id)


# =============================================================================
# Payments and due dates
# =============================================================================

def add_invoice_payment(kind_name: str, invoice_id: int, payment: PaymentDraft):
    """
    Append a payment and rederive totals.

    Customer and vendor invoices accept overpayment (remaining goes
    negative, status stays paid). Commissioner invoices refuse any amount
    above the outstanding commission.
    """
    kind = get_kind(kind_name)

    def _op():
        invoice = _load_locked(kind, invoice_id)

        if isinstance(invoice, CommissionerInvoice):
            invoice.recompute_totals()
            if payment.amount > invoice.remaining_amount:
                raise OverpaymentError(
                    f"Payment amount ({payment.amount}) exceeds remaining commission "
                    f"({invoice.remaining_amount})",
                    details={
                        "amount": payment.amount,
                        "remaining_amount": invoice.remaining_amount,
                        "overpayment": payment.amount - invoice.remaining_amount,
                    },
                )

        invoice.payments.append(_new_payment(kind, invoice, payment))
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    _refresh_aggregates(kind, _aggregate_id(kind, invoice))
    return invoice


def update_invoice_due_date(kind_name: str, invoice_id: int, due_date):
    """Set or clear the due date; status is rederived on flush."""
    kind = get_kind(kind_name)
    if not kind.has_due_date:
        raise ValidationError(f"{kind.name.capitalize()} invoices have no due date")

    def _op():
        invoice = _load_locked(kind, invoice_id)
        invoice.due_date = due_date
        db.session.commit()
        return invoice

    invoice = run_with_retry(_op)
    _refresh_aggregates(kind, _aggregate_id(kind, invoice))
    return invoice
