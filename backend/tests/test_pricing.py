# Tradehouse Tests - Money and Status Rules
#
# Pure functions; no database needed.

from datetime import datetime, timedelta

from tradehouse.pricing import (
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PARTIAL,
    STATUS_UNPAID,
    compute_commission,
    compute_commissioner_status,
    compute_invoice_status,
    compute_party_status,
    line_total,
    round_money,
    sum_money,
)


NOW = datetime(2026, 3, 15, 12, 0, 0)


class TestRounding:
    def test_round_half_up(self):
        assert round_money(2.5) == 3
        assert round_money(2.4999) == 2
        assert round_money(3.5) == 4
        assert round_money(None) == 0

    def test_negative_half_rounds_toward_positive(self):
        assert round_money(-2.5) == -2

    def test_line_total_is_price_times_weight_plus_packaging_per_unit(self):
        assert line_total(10, 500, 2, 50) == 5100
        assert line_total(None, 10, None, 3) == 0

    def test_sum_money_rounds_once(self):
        # Per-line rounding would give 2 + 2 = 4
        assert sum_money([1.5, 1.4]) == 3


class TestCommission:
    def test_percentage_of_total(self):
        assert compute_commission(12000, 5) == 600

    def test_zero_or_missing_percentage(self):
        assert compute_commission(12000, 0) == 0
        assert compute_commission(12000, None) == 0

    def test_commission_is_rounded(self):
        assert compute_commission(1010, 2.5) == 25


class TestInvoiceStatus:
    def test_unpaid(self):
        assert compute_invoice_status(remaining=1000, total_paid=0, due_date=None, now=NOW) == STATUS_UNPAID

    def test_partial(self):
        assert compute_invoice_status(remaining=600, total_paid=400, due_date=None, now=NOW) == STATUS_PARTIAL

    def test_paid_when_remaining_is_zero_or_negative(self):
        assert compute_invoice_status(remaining=0, total_paid=1000, due_date=None, now=NOW) == STATUS_PAID
        assert compute_invoice_status(remaining=-50, total_paid=1050, due_date=None, now=NOW) == STATUS_PAID

    def test_overdue_outranks_partial(self):
        yesterday = NOW - timedelta(days=1)
        assert compute_invoice_status(remaining=600, total_paid=400, due_date=yesterday, now=NOW) == STATUS_OVERDUE

    def test_paid_outranks_overdue(self):
        """
        SCENARIO: Invoice fully paid but its due date passed long ago
        EXPECTED: paid, never overdue
        """
        long_ago = NOW - timedelta(days=90)
        assert compute_invoice_status(remaining=0, total_paid=1000, due_date=long_ago, now=NOW) == STATUS_PAID

    def test_future_due_date_is_not_overdue(self):
        tomorrow = NOW + timedelta(days=1)
        assert compute_invoice_status(remaining=1000, total_paid=0, due_date=tomorrow, now=NOW) == STATUS_UNPAID


class TestCommissionerStatus:
    def test_zero_commission_is_unpaid(self):
        assert compute_commissioner_status(commission=0, paid=0, remaining=0) == STATUS_UNPAID

    def test_partial_and_paid(self):
        assert compute_commissioner_status(commission=1000, paid=300, remaining=700) == STATUS_PARTIAL
        assert compute_commissioner_status(commission=1000, paid=1000, remaining=0) == STATUS_PAID


class TestPartyStatus:
    def test_nothing_owed_and_nothing_earned_is_unpaid(self):
        assert compute_party_status(commission=0, paid=0, remaining=0, due_date=None, now=NOW) == STATUS_UNPAID

    def test_settled(self):
        assert compute_party_status(commission=600, paid=600, remaining=0, due_date=None, now=NOW) == STATUS_PAID

    def test_overdue_then_partial(self):
        past = NOW - timedelta(days=2)
        assert compute_party_status(commission=600, paid=150, remaining=450, due_date=past, now=NOW) == STATUS_OVERDUE
        assert compute_party_status(commission=600, paid=150, remaining=450, due_date=None, now=NOW) == STATUS_PARTIAL
