# Overview: Service-layer operations for item stock; validates and applies bucket deltas.

# backend/tradehouse/services/inventory_service.py

from __future__ import annotations

from collections import defaultdict

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Item, STORAGE_SHOP, STORAGE_TYPES
from ..validation import ConflictError, NotFoundError, ValidationError, non_negative
from .concurrency import lock_for_update, run_with_retry
"""
Inventory Store invariants (authoritative)

Buckets:
- Every item tracks quantity, net weight and gross weight in two buckets:
  shop and cold. Counters are floats; quantity is a count, weights are mass.

Business invariants:
- No counter may go negative. Validation always happens before mutation;
  adjust_stock additionally clamps at zero as a last line of defence.
- All deltas produced by one invoice operation are collected in a StockPlan
  and validated together, so a failure on the third line cannot leave the
  first two applied.

Item codes:
- 5-digit integers. New codes are found by linear probing from
  ITEM_CODE_START upward, bounded by ITEM_CODE_MAX_ATTEMPTS.
"""


BUCKET_SHOP = STORAGE_SHOP
BUCKETS = STORAGE_TYPES

STOCK_FIELDS = ("quantity", "net_weight", "gross_weight")
STOCK_LABELS = {"quantity": "quantity", "net_weight": "net weight", "gross_weight": "gross weight"}

# Float tolerance for weight comparisons
EPSILON = 1e-9

ITEM_CODE_MIN = 10000
ITEM_CODE_MAX = 99999


class InsufficientInventoryError(Exception):
    """Raised when requested stock exceeds what a bucket holds."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def format_amount(value: float):
    """Whole numbers print without a trailing .0."""
    value = float(value)
    if value.is_integer():
        return int(value)
    return round(value, 3)


def _check_bucket(bucket: str) -> str:
    if bucket not in BUCKETS:
        raise ValidationError(f"bucket must be one of: {', '.join(BUCKETS)}")
    return bucket


# =============================================================================
# Items
# =============================================================================

def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")
    return item


def list_items() -> list[Item]:
    return db.session.query(Item).order_by(Item.item_code.asc()).all()


def generate_item_code(*, start: int | None = None, max_attempts: int | None = None) -> int:
    """
    Find the first unused 5-digit code at or after start.

    One query fetches the taken codes inside the probe window; the probe then
    walks that window in order.
    """
    start = start if start is not None else current_app.config.get("ITEM_CODE_START", ITEM_CODE_MIN)
    max_attempts = max_attempts or current_app.config.get("ITEM_CODE_MAX_ATTEMPTS", 1000)

    end = min(start + max_attempts, ITEM_CODE_MAX + 1)
    taken = {
        code for (code,) in db.session.query(Item.item_code)
        .filter(Item.item_code >= start, Item.item_code < end)
        .all()
    }
    for candidate in range(start, end):
        if candidate not in taken:
            return candidate
    raise ConflictError("Unable to generate a unique item code")


def create_item(
    *,
    name: str,
    item_code: int | None = None,
    description: str | None = None,
    **counters,
) -> Item:
    """
    Create an item with optional opening stock.

    counters accepts shop_/cold_ quantity, net_weight and gross_weight.
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")

    opening = {}
    for bucket in BUCKETS:
        for field in STOCK_FIELDS:
            key = f"{bucket}_{field}"
            opening[key] = non_negative(counters.pop(key, None), key, default=0.0)
    if counters:
        raise ValidationError(f"Unknown item fields: {', '.join(sorted(counters))}")

    def _op() -> Item:
        if db.session.query(Item.id).filter(Item.name == name).first():
            raise ConflictError(f'Item "{name}" already exists')

        if item_code is None:
            code = generate_item_code()
        else:
            code = int(item_code)
            if not ITEM_CODE_MIN <= code <= ITEM_CODE_MAX:
                raise ValidationError("item_code must be a 5-digit number")
            if db.session.query(Item.id).filter(Item.item_code == code).first():
                raise ConflictError(f"Item code {code} already in use")

        item = Item(name=name, item_code=code, description=description, **opening)
        db.session.add(item)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f'Item "{name}" or code {code} already exists')
        return item

    return run_with_retry(_op)


# =============================================================================
# Stock checks and adjustments
# =============================================================================

def validate_stock(
    item: Item,
    bucket: str,
    quantity: float,
    net_weight: float,
    gross_weight: float,
    *,
    released: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> None:
    """
    Raise InsufficientInventoryError if the bucket cannot cover the request.

    released is stock handed back by the same operation (e.g. the old lines
    of an invoice being edited) and counts as available. Never mutates.
    """
    _check_bucket(bucket)
    current = item.stock(bucket)
    required = (quantity, net_weight, gross_weight)

    for field, have, back, need in zip(STOCK_FIELDS, current, released, required):
        available = have + back
        if need > available + EPSILON:
            label = STOCK_LABELS[field]
            raise InsufficientInventoryError(
                f'Insufficient {bucket} {label} for item "{item.name}". '
                f"Available: {format_amount(available)}, Required: {format_amount(need)}",
                details={
                    "item_id": item.id,
                    "item_name": item.name,
                    "bucket": bucket,
                    "field": field,
                    "current": format_amount(have),
                    "available": format_amount(available),
                    "required": format_amount(need),
                },
            )


def adjust_stock(item_id: int, bucket: str, d_quantity: float, d_net: float, d_gross: float) -> Item:
    """
    Apply a delta to one bucket, clamping each counter at zero.

    Does not commit; callers run it inside their own transaction.
    """
    _check_bucket(bucket)
    item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
    if item is None:
        raise NotFoundError(f"Item {item_id} not found")

    quantity, net, gross = item.stock(bucket)
    item.set_stock(
        bucket,
        max(0.0, quantity + d_quantity),
        max(0.0, net + d_net),
        max(0.0, gross + d_gross),
    )
    return item


def transfer_stock(
    item_id: int,
    *,
    from_bucket: str,
    to_bucket: str,
    quantity: float,
    net_weight: float,
    gross_weight: float = 0.0,
) -> Item:
    """Move stock between shop and cold storage in one transaction."""
    _check_bucket(from_bucket)
    _check_bucket(to_bucket)
    if from_bucket == to_bucket:
        raise ValidationError("Cannot transfer within the same bucket")
    quantity = non_negative(quantity, "quantity")
    net_weight = non_negative(net_weight, "net_weight")
    gross_weight = non_negative(gross_weight, "gross_weight", default=0.0)
    if quantity <= 0 and net_weight <= 0 and gross_weight <= 0:
        raise ValidationError("Transfer amounts must be greater than zero")

    def _op() -> Item:
        item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")

        validate_stock(item, from_bucket, quantity, net_weight, gross_weight)
        adjust_stock(item_id, from_bucket, -quantity, -net_weight, -gross_weight)
        adjust_stock(item_id, to_bucket, quantity, net_weight, gross_weight)
        db.session.commit()

        current_app.logger.info(
            "Transferred %s x %s (%s net) of item %s from %s to %s",
            format_amount(quantity), item.name, format_amount(net_weight), item.item_code,
            from_bucket, to_bucket,
        )
        return item

    return run_with_retry(_op)


class StockPlan:
    """
    Net stock effect of one reconciliation call, grouped by (item, bucket).

    Released stock (returned by a reversal or received from a vendor) and
    consumed stock (sold, or taken back from a vendor purchase) are tracked
    separately so a shortfall can report what was available versus required.

    Usage:
        plan = StockPlan()
        plan.add_line(line, direction=-1)                 # new sale line
        plan.add_line(old_line, direction=-1, reverse=True)
        plan.validate()                                   # raises, mutates nothing
        plan.apply()
    """

    def __init__(self):
        self._released = defaultdict(lambda: [0.0, 0.0, 0.0])
        self._consumed = defaultdict(lambda: [0.0, 0.0, 0.0])
        self._names: dict[int, str] = {}

    def keys(self) -> list[tuple[int, str]]:
        return sorted(set(self._released) | set(self._consumed))

    def add(self, item_id: int, bucket: str, quantity: float, net_weight: float, gross_weight: float) -> None:
        """Record a signed delta; positive adds stock, negative removes it."""
        _check_bucket(bucket)
        key = (item_id, bucket)
        for i, delta in enumerate((quantity, net_weight, gross_weight)):
            if delta > 0:
                self._released[key][i] += delta
            elif delta < 0:
                self._consumed[key][i] += -delta

    def add_line(self, line, *, direction: int, reverse: bool = False) -> None:
        """
        Record a line's stock effect.

        direction is +1 for lines that bring stock in (vendor purchases) and
        -1 for lines that take stock out. reverse undoes the effect instead.
        Lines without an item never touch inventory.
        """
        if line.item_id is None:
            return
        sign = -direction if reverse else direction
        self._names.setdefault(line.item_id, line.item_name)
        self.add(
            line.item_id,
            getattr(line, "bucket", None) or getattr(line, "storage_type", None) or BUCKET_SHOP,
            sign * (line.quantity or 0.0),
            sign * (line.net_weight or 0.0),
            sign * (line.gross_weight or 0.0),
        )

    def net(self, key: tuple[int, str]) -> tuple[float, float, float]:
        released = self._released.get(key, (0.0, 0.0, 0.0))
        consumed = self._consumed.get(key, (0.0, 0.0, 0.0))
        return tuple(r - c for r, c in zip(released, consumed))

    def validate(self) -> dict[int, Item]:
        """
        Check every (item, bucket) before anything is written.

        Returns the locked items keyed by id for apply().
        """
        items: dict[int, Item] = {}
        for item_id, bucket in self.keys():
            if item_id not in items:
                item = lock_for_update(db.session.query(Item).filter_by(id=item_id)).first()
                if item is None:
                    name = self._names.get(item_id)
                    raise NotFoundError(f'Item {item_id}{f" ({name})" if name else ""} not found')
                items[item_id] = item

            consumed = self._consumed.get((item_id, bucket))
            if not consumed:
                continue
            released = tuple(self._released.get((item_id, bucket), (0.0, 0.0, 0.0)))
            validate_stock(items[item_id], bucket, *consumed, released=released)
        return items

    def apply(self) -> None:
        for item_id, bucket in self.keys():
            d_quantity, d_net, d_gross = self.net((item_id, bucket))
            if abs(d_quantity) <= EPSILON and abs(d_net) <= EPSILON and abs(d_gross) <= EPSILON:
                continue
            adjust_stock(item_id, bucket, d_quantity, d_net, d_gross)
