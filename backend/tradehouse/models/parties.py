from __future__ import annotations

from ..extensions import db
from ..pricing import STATUS_UNPAID, compute_party_status, round_money
from ..time_utils import to_utc_z, utcnow


PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_ONLINE = "online"
PAYMENT_METHOD_CHEQUE = "cheque"
PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_ONLINE, PAYMENT_METHOD_CHEQUE)


class _ContactMixin:
    name = db.Column(db.String(255), nullable=False, index=True)
    phone = db.Column(db.String(64), nullable=True)
    city = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def contact_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "city": self.city,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(_ContactMixin, db.Model):
    """Buyer identity. Invoices keep a denormalized copy of the name."""
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    def to_dict(self) -> dict:
        return self.contact_dict()


class Vendor(_ContactMixin, db.Model):
    """Supplier identity."""
    __tablename__ = "vendors"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    def to_dict(self) -> dict:
        return self.contact_dict()


class _PartyTotalsMixin:
    """
    Running commission totals for brokers and commissioners.

    total_commission is a cache: only aggregate_service writes it, always from
    a full rescan of the invoices that reference the party. total_paid,
    total_remaining and status are derived on every flush from the party's
    own payments list.
    """
    total_commission = db.Column(db.Integer, nullable=False, default=0)
    total_paid = db.Column(db.Integer, nullable=False, default=0)
    total_remaining = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=STATUS_UNPAID)
    due_date = db.Column(db.DateTime(timezone=True), nullable=True)

    def recompute_totals(self, now=None) -> None:
        commission = round_money(self.total_commission)
        paid = max(0, round_money(sum(p.amount or 0 for p in self.payments)))
        remaining = max(0, commission - paid)

        self.total_commission = commission
        self.total_paid = paid
        self.total_remaining = remaining
        self.status = compute_party_status(
            commission=commission,
            paid=paid,
            remaining=remaining,
            due_date=self.due_date,
            now=now or utcnow(),
        )

    def totals_dict(self) -> dict:
        return {
            "total_commission": self.total_commission,
            "total_paid": self.total_paid,
            "total_remaining": self.total_remaining,
            "status": self.status,
            "due_date": to_utc_z(self.due_date),
            "version_id": self.version_id,
            "payments": [p.to_dict() for p in self.payments],
        }


class Broker(_ContactMixin, _PartyTotalsMixin, db.Model):
    """Middleman earning a percentage on customer invoices."""
    __tablename__ = "brokers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payments = db.relationship(
        "BrokerPayment",
        back_populates="broker",
        cascade="all, delete-orphan",
        order_by="BrokerPayment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        data = self.contact_dict()
        data.update(self.totals_dict())
        return data


class Commissioner(_ContactMixin, _PartyTotalsMixin, db.Model):
    """
    Agent selling on the house's behalf for a percentage.

    Payments recorded against a commissioner invoice also land in this
    party's payments list (commissioner_invoice_id set), so total_paid
    counts them.
    """
    __tablename__ = "commissioners"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    payments = db.relationship(
        "CommissionerPayment",
        back_populates="commissioner",
        order_by="CommissionerPayment.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        data = self.contact_dict()
        data.update(self.totals_dict())
        return data


class _PaymentMixin:
    amount = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False, default=PAYMENT_METHOD_CASH)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def payment_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "payment_date": to_utc_z(self.payment_date),
        }


class BrokerPayment(_PaymentMixin, db.Model):
    __tablename__ = "broker_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    broker_id = db.Column(db.Integer, db.ForeignKey("brokers.id"), nullable=False, index=True)

    broker = db.relationship("Broker", back_populates="payments")

    def recompute_targets(self):
        return (self.broker,)

    def to_dict(self) -> dict:
        data = self.payment_dict()
        data["broker_id"] = self.broker_id
        return data


class CommissionerPayment(_PaymentMixin, db.Model):
    """
    Payment to a commissioner, optionally tied to one commissioner invoice.

    Rows tied to an invoice are deleted with it; direct payments are not.
    """
    __tablename__ = "commissioner_payments"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    commissioner_id = db.Column(db.Integer, db.ForeignKey("commissioners.id"), nullable=True, index=True)
    commissioner_invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("commissioner_invoices.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    commissioner = db.relationship("Commissioner", back_populates="payments")
    invoice = db.relationship("CommissionerInvoice", back_populates="payments")

    def recompute_targets(self):
        return (self.invoice, self.commissioner)

    def to_dict(self) -> dict:
        data = self.payment_dict()
        data["commissioner_id"] = self.commissioner_id
        data["commissioner_invoice_id"] = self.commissioner_invoice_id
        return data
