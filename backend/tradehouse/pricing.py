# Overview: Pure money and status rules shared by invoices and party aggregates.

"""
Derived-field rules.

Everything here is a pure function of its arguments so the same rules can be
applied from the ORM flush hook, from services, and from tests without a
database.

Money is whole currency units (int). Weights and quantities stay float.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable, Optional


STATUS_UNPAID = "unpaid"
STATUS_PARTIAL = "partial"
STATUS_PAID = "paid"
STATUS_OVERDUE = "overdue"

INVOICE_STATUSES = (STATUS_UNPAID, STATUS_PARTIAL, STATUS_PAID, STATUS_OVERDUE)


def round_money(value) -> int:
    """Round half-up to a whole currency unit (2.5 -> 3, -2.5 -> -2)."""
    if value is None:
        return 0
    return int(math.floor(float(value) + 0.5))


def line_total(unit_price, net_weight, packaging_cost, quantity) -> float:
    """unit_price x net_weight + packaging_cost x quantity (unrounded)."""
    return (
        float(unit_price or 0) * float(net_weight or 0)
        + float(packaging_cost or 0) * float(quantity or 0)
    )


def sum_money(values: Iterable) -> int:
    return round_money(sum(float(v or 0) for v in values))


def compute_commission(total, percentage) -> int:
    """Commission on a total; zero unless a positive percentage is set."""
    if percentage is None or float(percentage) <= 0:
        return 0
    return round_money(float(total) * float(percentage) / 100)


def compute_invoice_status(
    *,
    remaining: float,
    total_paid: float,
    due_date: Optional[datetime],
    now: datetime,
) -> str:
    """
    Customer/vendor invoice status.

    Order matters: a settled invoice is paid even when its due date has
    passed, and an overdue balance outranks a partial payment.
    """
    if remaining <= 0:
        return STATUS_PAID
    if due_date is not None and now > due_date:
        return STATUS_OVERDUE
    if total_paid > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


def compute_commissioner_status(*, commission: int, paid: int, remaining: int) -> str:
    """Commissioner invoices have no due date, so they never go overdue."""
    if remaining <= 0 and commission > 0:
        return STATUS_PAID
    if paid > 0 and remaining > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID


def compute_party_status(
    *,
    commission: int,
    paid: int,
    remaining: int,
    due_date: Optional[datetime],
    now: datetime,
) -> str:
    """Broker/commissioner running status."""
    if remaining <= 0:
        return STATUS_PAID if commission > 0 else STATUS_UNPAID
    if due_date is not None and now > due_date:
        return STATUS_OVERDUE
    if paid > 0:
        return STATUS_PARTIAL
    return STATUS_UNPAID
