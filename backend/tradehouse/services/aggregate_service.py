# Overview: Broker and commissioner running totals; full-rescan recalculation and party payments.

"""
Aggregate Recalculator

WHY: total_commission on a broker or commissioner is a cache of the
commission fields on the invoices that reference the party. Incrementing
and decrementing it on every invoice event drifts the first time a code
path forgets; a full rescan cannot drift, at O(invoices per party) cost.

DESIGN:
- total_commission is written here and nowhere else.
- total_paid / total_remaining / status are derived from the party's own
  payments by the flush hook (see models.events).
- Invoice services call refresh_party_totals() after their own commit; a
  failure there is logged, never raised, because the invoice is already
  correct and the cache can be rebuilt with recalculate_party().

Recalculation triggers: invoice create, update (old and new party), delete,
invoice payment, due-date change, party payment, explicit recalculate.
"""

from __future__ import annotations

from typing import Iterable

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import (
    Broker,
    BrokerPayment,
    Commissioner,
    CommissionerInvoice,
    CommissionerPayment,
    Customer,
    CustomerInvoice,
    Vendor,
)
from ..validation import NotFoundError, PaymentDraft, ValidationError
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry


PARTY_BROKER = "broker"
PARTY_COMMISSIONER = "commissioner"

# Parties that carry commission totals
AGGREGATE_PARTIES = {
    PARTY_BROKER: Broker,
    PARTY_COMMISSIONER: Commissioner,
}

# Every party identity that can be created
PARTY_MODELS = {
    "customer": Customer,
    "vendor": Vendor,
    **AGGREGATE_PARTIES,
}


class OverpaymentError(Exception):
    """Raised when a payment exceeds the outstanding balance."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def _aggregate_model(kind: str):
    model = AGGREGATE_PARTIES.get(kind)
    if model is None:
        raise ValidationError(f"Unknown party type: {kind}. Must be one of: {', '.join(AGGREGATE_PARTIES)}")
    return model


def get_party(kind: str, party_id: int):
    model = PARTY_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Unknown party type: {kind}")
    party = db.session.get(model, party_id)
    if party is None:
        raise NotFoundError(f"{kind.capitalize()} {party_id} not found")
    return party


def create_party(kind: str, *, name: str, phone: str | None = None, city: str | None = None):
    """Create a customer, vendor, broker or commissioner identity."""
    model = PARTY_MODELS.get(kind)
    if model is None:
        raise ValidationError(f"Unknown party type: {kind}")
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    def _op():
        party = model(name=name, phone=phone, city=city)
        db.session.add(party)
        db.session.commit()
        return party

    return run_with_retry(_op)


def commission_total(kind: str, party_id: int) -> int:
    """Sum the commission fields of every invoice that references the party."""
    if kind == PARTY_BROKER:
        column, owner = CustomerInvoice.broker_commission_amount, CustomerInvoice.broker_id
    elif kind == PARTY_COMMISSIONER:
        column, owner = CommissionerInvoice.commissioner_amount, CommissionerInvoice.commissioner_id
    else:
        raise ValidationError(f"Unknown party type: {kind}")

    total = db.session.query(func.coalesce(func.sum(column), 0)).filter(owner == party_id).scalar()
    return int(total or 0)


def _load_locked(kind: str, party_id: int):
    model = _aggregate_model(kind)
    party = lock_for_update(db.session.query(model).filter_by(id=party_id)).first()
    if party is None:
        raise NotFoundError(f"{kind.capitalize()} {party_id} not found")
    return party


def recalculate_party(kind: str, party_id: int):
    """Rescan, rederive and persist one party's totals."""
    def _op():
        party = _load_locked(kind, party_id)
        party.total_commission = commission_total(kind, party_id)
        party.recompute_totals(now=utcnow())
        db.session.commit()
        return party

    return run_with_retry(_op)


def recalculate_broker(broker_id: int) -> Broker:
    return recalculate_party(PARTY_BROKER, broker_id)


def recalculate_commissioner(commissioner_id: int) -> Commissioner:
    return recalculate_party(PARTY_COMMISSIONER, commissioner_id)


def refresh_party_totals(
    *,
    broker_ids: Iterable[int | None] = (),
    commissioner_ids: Iterable[int | None] = (),
) -> None:
    """
    Best-effort recalculation after an invoice operation has committed.

    Failures are logged and swallowed: the invoice write stands and the
    cache can be rebuilt later with recalculate_party().
    """
    targets = [(PARTY_BROKER, pid) for pid in dict.fromkeys(broker_ids) if pid is not None]
    targets += [(PARTY_COMMISSIONER, pid) for pid in dict.fromkeys(commissioner_ids) if pid is not None]

    for kind, party_id in targets:
        try:
            recalculate_party(kind, party_id)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("Failed to recalculate %s %s totals", kind, party_id)


def add_party_payment(kind: str, party_id: int, payment: PaymentDraft):
    """
    Record a payment made to a broker or commissioner.

    The balance is rederived first so the overpayment check never runs
    against a stale cache.
    """
    def _op():
        party = _load_locked(kind, party_id)
        party.total_commission = commission_total(kind, party_id)
        party.recompute_totals(now=utcnow())

        if payment.amount > party.total_remaining:
            raise OverpaymentError(
                f"Payment amount ({payment.amount}) exceeds remaining balance ({party.total_remaining})",
                details={
                    "amount": payment.amount,
                    "total_remaining": party.total_remaining,
                    "overpayment": payment.amount - party.total_remaining,
                },
            )

        fields = {
            "amount": payment.amount,
            "payment_method": payment.payment_method,
            "payment_date": payment.payment_date or utcnow(),
        }
        if kind == PARTY_BROKER:
            party.payments.append(BrokerPayment(**fields))
        else:
            party.payments.append(CommissionerPayment(**fields))
        db.session.commit()

        current_app.logger.info(
            "Recorded %s payment of %s for %s %s (remaining %s)",
            payment.payment_method, payment.amount, kind, party_id, party.total_remaining,
        )
        return party

    return run_with_retry(_op)


def set_party_due_date(kind: str, party_id: int, due_date):
    def _op():
        party = _load_locked(kind, party_id)
        party.due_date = due_date
        party.recompute_totals(now=utcnow())
        db.session.commit()
        return party

    return run_with_retry(_op)
