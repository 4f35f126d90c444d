# Tradehouse Tests - Commissioner Invoices
#
# Commissioner invoices owe only the commission: paid is capped at it,
# overpayment is refused, and deleting one must not leave the commissioner
# with a negative balance.

import warnings

import pytest
from sqlalchemy.exc import SAWarning

from conftest import line
from tradehouse.extensions import db
from tradehouse.models import Commissioner, CommissionerPayment, Item
from tradehouse.services import aggregate_service, invoice_service
from tradehouse.services.aggregate_service import OverpaymentError
from tradehouse.services.invoice_service import NegativeBalanceProjectionError
from tradehouse.validation import PaymentDraft, ValidationError, parse_invoice_payload


def create(body):
    return invoice_service.create_invoice("commissioner", parse_invoice_payload("commissioner", body))


def commission_body(commissioner, *, value=10000, percentage=10, **extra):
    """One free-text line worth `value`; commission is `percentage` of it."""
    body = {
        "commissioner_id": commissioner.id,
        "commissioner_percentage": percentage,
        "buyer_name": "Bazaar stall 7",
        "lines": [line(quantity=1, net_weight=value / 10, unit_price=10)],
    }
    body.update(extra)
    return body


@pytest.mark.invoices
class TestCommissionerTotals:
    def test_commission_and_unpaid_status(self, commissioner):
        invoice = create(commission_body(commissioner))

        assert invoice.invoice_number == "COM0001"
        assert invoice.total == 10000
        assert invoice.commissioner_amount == 1000
        assert invoice.paid_amount == 0
        assert invoice.remaining_amount == 1000
        assert invoice.status == "unpaid"
        assert invoice.commissioner_name == "Kamal Agent"

    def test_initial_payment_is_capped_at_commission(self, commissioner):
        invoice = create(commission_body(commissioner, paid_amount=1500))

        assert invoice.paid_amount == 1000
        assert invoice.remaining_amount == 0
        assert invoice.status == "paid"
        assert [p.amount for p in invoice.payments] == [1000]

        party = db.session.get(Commissioner, commissioner.id)
        assert party.total_commission == 1000
        assert party.total_paid == 1000
        assert party.total_remaining == 0
        assert party.status == "paid"

    def test_initial_payment_attaches_without_warnings(self, commissioner):
        """
        SCENARIO: Commissioner invoice created with an initial payment
        EXPECTED: no SQLAlchemy warning; the payment lands on the commissioner
        """
        with warnings.catch_warnings():
            warnings.simplefilter("error", SAWarning)
            invoice = create(commission_body(commissioner, paid_amount=400))

        payment = db.session.query(CommissionerPayment).one()
        assert payment.commissioner_id == commissioner.id
        assert payment.commissioner_invoice_id == invoice.id

    def test_recalculate_commissioner_repairs_drift(self, commissioner):
        create(commission_body(commissioner))
        party = db.session.get(Commissioner, commissioner.id)
        party.total_commission = 1
        db.session.commit()

        party = aggregate_service.recalculate_commissioner(commissioner.id)
        assert party.total_commission == 1000
        assert party.total_remaining == 1000

    def test_overpayment_rejected(self, commissioner):
        invoice = create(commission_body(commissioner, paid_amount=300))
        assert invoice.status == "partial"

        with pytest.raises(OverpaymentError) as exc:
            invoice_service.add_invoice_payment("commissioner", invoice.id, PaymentDraft(800))
        assert exc.value.details["overpayment"] == 100

        invoice = invoice_service.add_invoice_payment("commissioner", invoice.id, PaymentDraft(700))
        assert invoice.paid_amount == 1000
        assert invoice.status == "paid"

    def test_payments_count_toward_commissioner(self, commissioner):
        invoice = create(commission_body(commissioner))
        invoice_service.add_invoice_payment("commissioner", invoice.id, PaymentDraft(250, "cheque"))

        party = db.session.get(Commissioner, commissioner.id)
        assert party.total_paid == 250
        assert party.total_remaining == 750
        assert party.status == "partial"

    def test_no_due_date(self, commissioner):
        invoice = create(commission_body(commissioner))
        with pytest.raises(ValidationError):
            invoice_service.update_invoice_due_date("commissioner", invoice.id, None)

    def test_sale_draws_from_shop(self, commissioner, make_item):
        item = make_item("Mango", shop_quantity=10, shop_net_weight=100)
        create({
            "commissioner_id": commissioner.id,
            "commissioner_percentage": 5,
            "lines": [line(item, quantity=4, net_weight=40, unit_price=20)],
        })
        assert db.session.get(Item, item.id).stock("shop") == (6, 60, 0)


@pytest.mark.invoices
class TestCommissionerDelete:
    def test_delete_that_would_go_negative_is_refused(self, commissioner):
        """
        SCENARIO: Two invoices of 100 commission each; 150 paid directly to the commissioner
        EXPECTED: deleting one would leave 100 earned vs. 150 paid, so it is refused
        """
        first = create(commission_body(commissioner, value=1000))
        create(commission_body(commissioner, value=1000))
        aggregate_service.add_party_payment("commissioner", commissioner.id, PaymentDraft(150))

        with pytest.raises(NegativeBalanceProjectionError) as exc:
            invoice_service.delete_invoice("commissioner", first.id)

        assert exc.value.details["negative_amount"] == 50
        assert "negative balance of 50" in str(exc.value)
        assert invoice_service.get_invoice("commissioner", first.id).id == first.id

    def test_delete_takes_linked_payments_along(self, commissioner):
        first = create(commission_body(commissioner, value=1000, paid_amount=100))
        create(commission_body(commissioner, value=1000))

        invoice_service.delete_invoice("commissioner", first.id)

        assert db.session.query(CommissionerPayment).count() == 0
        party = db.session.get(Commissioner, commissioner.id)
        assert party.total_commission == 100
        assert party.total_paid == 0
        assert party.total_remaining == 100

    def test_direct_payments_survive_delete(self, commissioner):
        first = create(commission_body(commissioner, value=1000))
        create(commission_body(commissioner, value=1000))
        aggregate_service.add_party_payment("commissioner", commissioner.id, PaymentDraft(60))

        invoice_service.delete_invoice("commissioner", first.id)

        party = db.session.get(Commissioner, commissioner.id)
        assert party.total_commission == 100
        assert party.total_paid == 60
        assert party.total_remaining == 40


@pytest.mark.invoices
class TestCommissionerReassignment:
    def test_linked_payments_follow_new_commissioner(self, commissioner):
        other = aggregate_service.create_party("commissioner", name="Second Agent")
        invoice = create(commission_body(commissioner, paid_amount=300))

        invoice = invoice_service.update_invoice("commissioner", invoice.id, parse_invoice_payload(
            "commissioner", commission_body(other),
        ))

        assert invoice.commissioner_name == "Second Agent"
        assert [p.commissioner_id for p in invoice.payments] == [other.id]

        old = db.session.get(Commissioner, commissioner.id)
        new = db.session.get(Commissioner, other.id)
        assert (old.total_commission, old.total_paid, old.total_remaining) == (0, 0, 0)
        assert (new.total_commission, new.total_paid, new.total_remaining) == (1000, 300, 700)
        assert new.status == "partial"
