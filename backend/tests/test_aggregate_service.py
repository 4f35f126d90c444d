# Tradehouse Tests - Broker and Commissioner Running Totals

from datetime import timedelta

import pytest

from conftest import line
from tradehouse.extensions import db
from tradehouse.models import Broker
from tradehouse.services import aggregate_service, invoice_service
from tradehouse.services.aggregate_service import OverpaymentError
from tradehouse.time_utils import utcnow
from tradehouse.validation import NotFoundError, PaymentDraft, ValidationError, parse_invoice_payload, parse_payment


def brokered_sale(customer, broker, value):
    """Customer invoice worth `value` with a 10% broker commission."""
    return invoice_service.create_invoice("customer", parse_invoice_payload("customer", {
        "customer_id": customer.id,
        "broker_id": broker.id,
        "broker_commission_percentage": 10,
        "lines": [line(quantity=1, net_weight=value, unit_price=1)],
    }))


@pytest.fixture
def broker_with_three_sales(customer, broker):
    for value in (1000, 2000, 3000):
        brokered_sale(customer, broker, value)
    return broker


@pytest.mark.parties
class TestBrokerTotals:
    def test_commission_sum_and_payments(self, broker_with_three_sales):
        """
        SCENARIO: Commissions of 100, 200, 300 and broker payments of 150
        EXPECTED: total 600, paid 150, remaining 450
        """
        broker = broker_with_three_sales
        party = aggregate_service.add_party_payment("broker", broker.id, PaymentDraft(100))
        party = aggregate_service.add_party_payment("broker", broker.id, PaymentDraft(50, "online"))

        assert party.total_commission == 600
        assert party.total_paid == 150
        assert party.total_remaining == 450
        assert party.status == "partial"

    def test_overpayment_rejected_with_amount(self, broker_with_three_sales):
        broker = broker_with_three_sales
        aggregate_service.add_party_payment("broker", broker.id, PaymentDraft(150))

        with pytest.raises(OverpaymentError) as exc:
            aggregate_service.add_party_payment("broker", broker.id, PaymentDraft(451))

        assert exc.value.details == {"amount": 451, "total_remaining": 450, "overpayment": 1}
        assert db.session.get(Broker, broker.id).total_paid == 150

    def test_settling_in_full(self, broker_with_three_sales):
        party = aggregate_service.add_party_payment("broker", broker_with_three_sales.id, PaymentDraft(600))
        assert party.total_remaining == 0
        assert party.status == "paid"

    def test_recalculate_repairs_drift(self, broker_with_three_sales, db_session):
        broker = db_session.get(Broker, broker_with_three_sales.id)
        broker.total_commission = 999
        db_session.commit()

        party = aggregate_service.recalculate_broker(broker.id)
        assert party.total_commission == 600
        assert party.total_remaining == 600

    def test_past_due_date_makes_party_overdue(self, broker_with_three_sales):
        party = aggregate_service.set_party_due_date(
            "broker", broker_with_three_sales.id, utcnow() - timedelta(days=1),
        )
        assert party.status == "overdue"

        party = aggregate_service.set_party_due_date("broker", broker_with_three_sales.id, None)
        assert party.status == "unpaid"

    def test_broker_without_invoices(self, broker):
        party = aggregate_service.recalculate_party("broker", broker.id)
        assert (party.total_commission, party.total_paid, party.total_remaining) == (0, 0, 0)
        assert party.status == "unpaid"

        with pytest.raises(OverpaymentError):
            aggregate_service.add_party_payment("broker", broker.id, PaymentDraft(1))


@pytest.mark.parties
class TestPartyLookups:
    def test_unknown_party(self, db_session):
        with pytest.raises(NotFoundError):
            aggregate_service.add_party_payment("broker", 404, PaymentDraft(1))

    def test_customers_carry_no_totals(self, customer):
        with pytest.raises(ValidationError):
            aggregate_service.recalculate_party("customer", customer.id)

    def test_create_requires_name(self, db_session):
        with pytest.raises(ValidationError):
            aggregate_service.create_party("vendor", name="  ")
        with pytest.raises(ValidationError):
            aggregate_service.create_party("supplier", name="Acme")

    def test_party_payments_are_whole_numbers(self):
        with pytest.raises(ValidationError):
            parse_payment({"amount": 10.5}, whole_only=True)
        assert parse_payment({"amount": 10.5}).amount == 11


@pytest.mark.parties
class TestBestEffortRefresh:
    def test_refresh_failure_is_logged_not_raised(self, broker, monkeypatch, caplog):
        def boom(kind, party_id):
            raise RuntimeError("database went away")

        monkeypatch.setattr(aggregate_service, "recalculate_party", boom)
        aggregate_service.refresh_party_totals(broker_ids=[broker.id, None])

        assert "Failed to recalculate broker" in caplog.text

    def test_refresh_skips_missing_ids(self, db_session):
        aggregate_service.refresh_party_totals(broker_ids=[None], commissioner_ids=())
