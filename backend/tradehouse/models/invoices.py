from __future__ import annotations

from sqlalchemy.orm import declared_attr

from ..extensions import db
from ..pricing import (
    STATUS_UNPAID,
    compute_commission,
    compute_commissioner_status,
    compute_invoice_status,
    line_total,
    round_money,
    sum_money,
)
from ..time_utils import to_utc_z, utcnow
from .parties import PAYMENT_METHOD_CASH


STORAGE_SHOP = "shop"
STORAGE_COLD = "cold"
STORAGE_TYPES = (STORAGE_SHOP, STORAGE_COLD)


# =============================================================================
# Line items
# =============================================================================

class _LineMixin:
    """
    Columns shared by every invoice line.

    item_id is optional: a NULL item is a free-text line that never touches
    inventory. Each variant names its unit price column after the trade it
    records (selling, purchase, sale).
    """
    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Float, nullable=False, default=0)
    net_weight = db.Column(db.Float, nullable=False, default=0)
    gross_weight = db.Column(db.Float, nullable=False, default=0)
    packaging_cost = db.Column(db.Integer, nullable=False, default=0)
    total_price = db.Column(db.Float, nullable=False, default=0)

    UNIT_PRICE_FIELD = ""
    ROUND_LINE_TOTAL = True

    @declared_attr
    def item_id(cls):
        return db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True, index=True)

    @property
    def unit_price(self):
        return getattr(self, self.UNIT_PRICE_FIELD) or 0

    @property
    def bucket(self) -> str:
        return STORAGE_SHOP

    def recompute_total(self) -> None:
        raw = line_total(self.unit_price, self.net_weight, self.packaging_cost, self.quantity)
        self.total_price = round_money(raw) if self.ROUND_LINE_TOTAL else raw

    def recompute_targets(self):
        return (self.invoice,)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "net_weight": self.net_weight,
            "gross_weight": self.gross_weight,
            "packaging_cost": self.packaging_cost,
            self.UNIT_PRICE_FIELD: self.unit_price,
            "total_price": self.total_price,
        }


class CustomerInvoiceLine(_LineMixin, db.Model):
    __tablename__ = "customer_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    UNIT_PRICE_FIELD = "selling_price"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("customer_invoices.id"), nullable=False, index=True)
    selling_price = db.Column(db.Integer, nullable=False, default=0)

    invoice = db.relationship("CustomerInvoice", back_populates="lines")
    item = db.relationship("Item")


class VendorInvoiceLine(_LineMixin, db.Model):
    """Vendor lines keep raw totals and choose the bucket they stock."""
    __tablename__ = "vendor_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    UNIT_PRICE_FIELD = "purchase_price"
    ROUND_LINE_TOTAL = False

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("vendor_invoices.id"), nullable=False, index=True)
    purchase_price = db.Column(db.Integer, nullable=False, default=0)
    storage_type = db.Column(db.String(8), nullable=False, default=STORAGE_SHOP)

    invoice = db.relationship("VendorInvoice", back_populates="lines")
    item = db.relationship("Item")

    @property
    def bucket(self) -> str:
        return self.storage_type or STORAGE_SHOP

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["storage_type"] = self.storage_type
        return data


class CommissionerInvoiceLine(_LineMixin, db.Model):
    __tablename__ = "commissioner_invoice_lines"
    __table_args__ = {"sqlite_autoincrement": True}

    UNIT_PRICE_FIELD = "sale_price"

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("commissioner_invoices.id"), nullable=False, index=True)
    sale_price = db.Column(db.Integer, nullable=False, default=0)

    invoice = db.relationship("CommissionerInvoice", back_populates="lines")
    item = db.relationship("Item")


# =============================================================================
# Invoice payments
# =============================================================================

class _InvoicePaymentMixin:
    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def recompute_targets(self):
        return (self.invoice,)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
        }


class CustomerInvoicePayment(_InvoicePaymentMixin, db.Model):
    __tablename__ = "customer_invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("customer_invoices.id"), nullable=False, index=True)

    invoice = db.relationship("CustomerInvoice", back_populates="payments")


class VendorInvoicePayment(_InvoicePaymentMixin, db.Model):
    __tablename__ = "vendor_invoice_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("vendor_invoices.id"), nullable=False, index=True)

    invoice = db.relationship("VendorInvoice", back_populates="payments")


# =============================================================================
# Invoices
# =============================================================================

class _InvoiceMixin:
    """
    Header columns and derived totals common to all invoice variants.

    Derived fields (subtotal, total, paid, remaining, status) are never set
    by callers; recompute_totals() rewrites them on every flush.
    """
    invoice_number = db.Column(db.String(32), nullable=False, unique=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    subtotal = db.Column(db.Integer, nullable=False, default=0)
    total = db.Column(db.Integer, nullable=False, default=0)
    remaining_amount = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STATUS_UNPAID, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def _recompute_lines(self) -> None:
        for line in self.lines:
            line.recompute_total()

    def header_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "invoice_date": to_utc_z(self.invoice_date),
            "notes": self.notes,
            "subtotal": self.subtotal,
            "total": self.total,
            "remaining_amount": self.remaining_amount,
            "status": self.status,
            "version_id": self.version_id,
            "lines": [line.to_dict() for line in self.lines],
            "payments": [p.to_dict() for p in self.payments],
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class _TradeInvoiceMixin(_InvoiceMixin):
    """Customer and vendor invoices: due dates, labour cost, overdue status."""
    due_date = db.Column(db.DateTime(timezone=True), nullable=True, index=True)
    labour_transport_cost = db.Column(db.Integer, nullable=False, default=0)
    total_paid_amount = db.Column(db.Integer, nullable=False, default=0)

    def _apply_payment_totals(self, now) -> None:
        self.total_paid_amount = sum_money(p.amount for p in self.payments)
        self.remaining_amount = self.total - self.total_paid_amount
        self.status = compute_invoice_status(
            remaining=self.remaining_amount,
            total_paid=self.total_paid_amount,
            due_date=self.due_date,
            now=now or utcnow(),
        )

    def trade_dict(self) -> dict:
        data = self.header_dict()
        data.update({
            "due_date": to_utc_z(self.due_date),
            "labour_transport_cost": self.labour_transport_cost,
            "total_paid_amount": self.total_paid_amount,
        })
        return data


class CustomerInvoice(_TradeInvoiceMixin, db.Model):
    """
    Sale to a customer; draws stock from the shop bucket.

    A broker earns broker_commission_percentage of total when a broker name
    is present. Line totals are rounded per line before summing.
    """
    __tablename__ = "customer_invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    broker_id = db.Column(db.Integer, db.ForeignKey("brokers.id"), nullable=True, index=True)
    broker_name = db.Column(db.String(255), nullable=True)
    broker_commission_percentage = db.Column(db.Float, nullable=False, default=0)
    broker_commission_amount = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "CustomerInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="CustomerInvoiceLine.id",
    )
    payments = db.relationship(
        "CustomerInvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="CustomerInvoicePayment.id",
    )
    customer = db.relationship("Customer")
    broker = db.relationship("Broker")

    __mapper_args__ = {"version_id_col": version_id}

    def recompute_totals(self, now=None) -> None:
        self._recompute_lines()
        self.subtotal = sum_money(line.total_price for line in self.lines)
        self.total = self.subtotal + round_money(self.labour_transport_cost)
        if self.broker_name:
            self.broker_commission_amount = compute_commission(self.total, self.broker_commission_percentage)
        else:
            self.broker_commission_amount = 0
        self._apply_payment_totals(now)

    def to_dict(self) -> dict:
        data = self.trade_dict()
        data.update({
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "broker_id": self.broker_id,
            "broker_name": self.broker_name,
            "broker_commission_percentage": self.broker_commission_percentage,
            "broker_commission_amount": self.broker_commission_amount,
        })
        return data


class VendorInvoice(_TradeInvoiceMixin, db.Model):
    """
    Purchase from a vendor; each line stocks the bucket named by storage_type.

    Line totals are summed raw and the sum is rounded once.
    """
    __tablename__ = "vendor_invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.Integer, db.ForeignKey("vendors.id"), nullable=True, index=True)
    vendor_name = db.Column(db.String(255), nullable=False)
    broker_id = db.Column(db.Integer, db.ForeignKey("brokers.id"), nullable=True, index=True)
    broker_name = db.Column(db.String(255), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "VendorInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="VendorInvoiceLine.id",
    )
    payments = db.relationship(
        "VendorInvoicePayment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="VendorInvoicePayment.id",
    )
    vendor = db.relationship("Vendor")
    broker = db.relationship("Broker")

    __mapper_args__ = {"version_id_col": version_id}

    def recompute_totals(self, now=None) -> None:
        self._recompute_lines()
        self.subtotal = sum_money(line.total_price for line in self.lines)
        self.total = self.subtotal + round_money(self.labour_transport_cost)
        self._apply_payment_totals(now)

    def to_dict(self) -> dict:
        data = self.trade_dict()
        data.update({
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "broker_id": self.broker_id,
            "broker_name": self.broker_name,
        })
        return data


class CommissionerInvoice(_InvoiceMixin, db.Model):
    """
    Goods sold through a commissioner; draws stock from the shop bucket.

    Only the commission is owed, so paid/remaining track commissioner_amount
    rather than total. paid_amount never exceeds the commission and the
    status has no overdue state.
    """
    __tablename__ = "commissioner_invoices"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    commissioner_id = db.Column(db.Integer, db.ForeignKey("commissioners.id"), nullable=True, index=True)
    commissioner_name = db.Column(db.String(255), nullable=False)
    buyer_name = db.Column(db.String(255), nullable=True)
    customer_name = db.Column(db.String(255), nullable=True)
    commissioner_percentage = db.Column(db.Float, nullable=False, default=0)
    commissioner_amount = db.Column(db.Integer, nullable=False, default=0)
    paid_amount = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    lines = db.relationship(
        "CommissionerInvoiceLine",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="CommissionerInvoiceLine.id",
    )
    # Rows may also belong to the commissioner, so no delete-orphan here.
    payments = db.relationship(
        "CommissionerPayment",
        back_populates="invoice",
        cascade="all",
        order_by="CommissionerPayment.id",
    )
    commissioner = db.relationship("Commissioner")

    __mapper_args__ = {"version_id_col": version_id}

    def recompute_totals(self, now=None) -> None:
        self._recompute_lines()
        self.subtotal = sum_money(line.total_price for line in self.lines)
        self.total = self.subtotal
        self.commissioner_amount = compute_commission(self.total, self.commissioner_percentage)

        paid = max(0, sum_money(p.amount for p in self.payments))
        self.paid_amount = min(paid, self.commissioner_amount)
        self.remaining_amount = max(0, self.commissioner_amount - self.paid_amount)
        self.status = compute_commissioner_status(
            commission=self.commissioner_amount,
            paid=self.paid_amount,
            remaining=self.remaining_amount,
        )

    def to_dict(self) -> dict:
        data = self.header_dict()
        data.update({
            "commissioner_id": self.commissioner_id,
            "commissioner_name": self.commissioner_name,
            "buyer_name": self.buyer_name,
            "customer_name": self.customer_name,
            "commissioner_percentage": self.commissioner_percentage,
            "commissioner_amount": self.commissioner_amount,
            "paid_amount": self.paid_amount,
        })
        return data


# =============================================================================
# Numbering
# =============================================================================

class InvoiceSequence(db.Model):
    """
    Atomic per-type invoice number counters.

    WHY: two invoices created at the same time must never draw the same
    number; the counter row is bumped with a single UPDATE.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("invoice_type", name="uq_invoice_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
