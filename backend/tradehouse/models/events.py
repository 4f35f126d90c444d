# Overview: Session hook that keeps derived invoice and party fields current on every flush.

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import Session

from ..time_utils import utcnow


def _collect_targets(session) -> list:
    """Objects owning recompute_totals() that this flush touches, parents included."""
    targets = []
    seen = set()
    for obj in list(session.new) + list(session.dirty):
        candidates = [obj]
        if hasattr(obj, "recompute_targets"):
            candidates.extend(obj.recompute_targets())
        for target in candidates:
            if target is None or not hasattr(target, "recompute_totals"):
                continue
            if id(target) in seen or target in session.deleted:
                continue
            seen.add(id(target))
            targets.append(target)
    return targets


@event.listens_for(Session, "before_flush")
def recompute_derived_fields(session, flush_context, instances):
    """
    Rederive totals and status before anything is written.

    WHY: no code path may persist an invoice or party whose subtotal, paid,
    remaining or status disagree with its lines and payments.
    """
    now = utcnow()
    for target in _collect_targets(session):
        target.recompute_totals(now=now)
