# Overview: Due-date sweep; promotes past-due customer and vendor invoices to overdue.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..models import CustomerInvoice, VendorInvoice
from ..pricing import STATUS_OVERDUE
from ..time_utils import start_of_day, to_utc_z, utcnow
from .concurrency import run_with_retry


SWEPT_INVOICES = (
    ("customer", CustomerInvoice),
    ("vendor", VendorInvoice),
)


def _mark_overdue(model, cutoff: datetime) -> int:
    stmt = (
        update(model)
        .where(
            model.remaining_amount > 0,
            model.due_date.isnot(None),
            model.due_date < cutoff,
            model.status != STATUS_OVERDUE,
        )
        .values(status=STATUS_OVERDUE)
        .execution_options(synchronize_session="fetch")
    )
    return db.session.execute(stmt).rowcount or 0


def mark_overdue_invoices(today: datetime | None = None) -> dict:
    """
    Bulk-set status=overdue on unpaid invoices whose due date is before today.

    Idempotent: rows already overdue are excluded, so a second run the same
    day changes nothing. Commissioner invoices have no due date and are
    never swept.

    Returns:
        {"customer": n, "vendor": n, "ran_at": "...Z"}
    """
    cutoff = start_of_day(today)

    def _op() -> dict:
        counts = {name: _mark_overdue(model, cutoff) for name, model in SWEPT_INVOICES}
        db.session.commit()
        return counts

    counts = run_with_retry(_op)
    result = dict(counts)
    result["ran_at"] = to_utc_z(utcnow())

    current_app.logger.info(
        "Invoice status sweep: %s customer and %s vendor invoices marked overdue",
        counts["customer"], counts["vendor"],
    )
    return result
