# Overview: Invoice number allocation backed by per-type counter rows.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InvoiceSequence
from .concurrency import RetryableConflict


class InvoiceSequenceError(Exception):
    """Raised when invoice sequence operations fail."""
    pass


def next_sequence_value(invoice_type: str) -> int:
    """
    Atomically allocate the next counter value for an invoice type.

    Runs inside the caller's transaction. The counter row is bumped with a
    single UPDATE; the first allocation for a type inserts the row, and a
    concurrent first insert surfaces as RetryableConflict so the caller's
    run_with_retry replays the whole operation.
    """
    if not invoice_type:
        raise InvoiceSequenceError("invoice_type is required")

    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.invoice_type == invoice_type)
        .values(next_number=InvoiceSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(InvoiceSequence.next_number)
            .filter_by(invoice_type=invoice_type)
            .scalar()
        )
        return current - 1

    seq = InvoiceSequence(invoice_type=invoice_type, next_number=2)
    db.session.add(seq)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise RetryableConflict(f"Sequence {invoice_type} created concurrently") from exc
    return 1


def next_invoice_number(*, model, invoice_type: str, prefix: str, pad: int = 4, max_attempts: int = 100) -> str:
    """
    Allocate a number like CIN0001 that no invoice of this model uses yet.

    Client-supplied numbers share the namespace, so allocated values already
    taken by hand are skipped.
    """
    for _ in range(max_attempts):
        number = f"{prefix}{next_sequence_value(invoice_type):0{pad}d}"
        taken = (
            db.session.query(model.id)
            .filter(model.invoice_number == number)
            .first()
        )
        if not taken:
            return number
    raise InvoiceSequenceError(f"Unable to allocate an invoice number for {invoice_type}")
