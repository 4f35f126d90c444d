# Tradehouse Tests - Inventory Store
#
# Tests for:
# - Item code probing and duplicate names
# - validate_stock / adjust_stock semantics
# - Shop <-> cold transfers
# - StockPlan all-or-nothing validation

import pytest

from tradehouse.models import Item
from tradehouse.services import inventory_service
from tradehouse.services.inventory_service import InsufficientInventoryError, StockPlan
from tradehouse.validation import ConflictError, NotFoundError, ValidationError


@pytest.mark.inventory
class TestItems:
    def test_codes_probe_upward_from_start(self, make_item):
        first = make_item("Mango")
        second = make_item("Guava")
        assert first.item_code == 10000
        assert second.item_code == 10001

    def test_probe_skips_taken_codes(self, make_item):
        inventory_service.create_item(name="Apple", item_code=10000)
        inventory_service.create_item(name="Banana", item_code=10002)
        assert make_item("Cherry").item_code == 10001
        assert make_item("Date").item_code == 10003

    def test_probe_gives_up_after_max_attempts(self, make_item):
        inventory_service.create_item(name="Apple", item_code=10000)
        inventory_service.create_item(name="Banana", item_code=10001)
        with pytest.raises(ConflictError):
            inventory_service.generate_item_code(start=10000, max_attempts=2)

    def test_duplicate_name_conflicts(self, make_item):
        make_item("Mango")
        with pytest.raises(ConflictError):
            make_item("Mango")

    def test_code_must_have_five_digits(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_item(name="Lime", item_code=999)

    def test_negative_opening_stock_rejected(self, db_session):
        with pytest.raises(ValidationError):
            inventory_service.create_item(name="Lime", shop_quantity=-1)


@pytest.mark.inventory
class TestValidateAndAdjust:
    def test_validate_reports_bucket_and_amounts(self, make_item):
        item = make_item("Mango", shop_quantity=10, shop_net_weight=100)

        with pytest.raises(InsufficientInventoryError) as exc:
            inventory_service.validate_stock(item, "shop", 12, 50, 0)

        assert exc.value.details["item_name"] == "Mango"
        assert exc.value.details["bucket"] == "shop"
        assert exc.value.details["field"] == "quantity"
        assert exc.value.details["available"] == 10
        assert exc.value.details["required"] == 12
        assert "Available: 10, Required: 12" in str(exc.value)

    def test_validate_checks_each_bucket_separately(self, make_item):
        item = make_item("Mango", cold_quantity=10, cold_net_weight=100)
        with pytest.raises(InsufficientInventoryError):
            inventory_service.validate_stock(item, "shop", 1, 0, 0)
        inventory_service.validate_stock(item, "cold", 10, 100, 0)

    def test_validate_counts_released_stock(self, make_item):
        item = make_item("Mango", shop_quantity=5)
        inventory_service.validate_stock(item, "shop", 8, 0, 0, released=(3.0, 0.0, 0.0))

    def test_adjust_clamps_at_zero(self, make_item, db_session):
        item = make_item("Mango", shop_quantity=5, shop_net_weight=50)

        inventory_service.adjust_stock(item.id, "shop", -8, -20, 0)
        db_session.commit()

        item = db_session.get(Item, item.id)
        assert item.shop_quantity == 0
        assert item.shop_net_weight == 30

    def test_adjust_missing_item(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(424242, "shop", 1, 1, 1)

    def test_unknown_bucket(self, make_item):
        item = make_item("Mango")
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(item.id, "freezer", 1, 0, 0)


@pytest.mark.inventory
class TestTransfers:
    def test_transfer_moves_stock_between_buckets(self, make_item, db_session):
        item = make_item("Mango", shop_quantity=20, shop_net_weight=200, shop_gross_weight=220)

        inventory_service.transfer_stock(
            item.id, from_bucket="shop", to_bucket="cold",
            quantity=5, net_weight=50, gross_weight=55,
        )

        item = db_session.get(Item, item.id)
        assert item.stock("shop") == (15, 150, 165)
        assert item.stock("cold") == (5, 50, 55)

    def test_transfer_shortfall_changes_nothing(self, make_item, db_session):
        item = make_item("Mango", shop_quantity=2, shop_net_weight=20)

        with pytest.raises(InsufficientInventoryError):
            inventory_service.transfer_stock(
                item.id, from_bucket="shop", to_bucket="cold", quantity=5, net_weight=10,
            )

        item = db_session.get(Item, item.id)
        assert item.stock("shop") == (2, 20, 0)
        assert item.stock("cold") == (0, 0, 0)

    def test_transfer_within_same_bucket_rejected(self, make_item):
        item = make_item("Mango", shop_quantity=2)
        with pytest.raises(ValidationError):
            inventory_service.transfer_stock(item.id, from_bucket="shop", to_bucket="shop", quantity=1, net_weight=0)


@pytest.mark.inventory
class TestStockPlan:
    def test_validate_fails_before_any_write(self, make_item, db_session):
        """
        SCENARIO: Plan removes stock from two items; the second is short
        EXPECTED: validate() raises and the first item is untouched
        """
        mango = make_item("Mango", shop_quantity=10, shop_net_weight=100)
        guava = make_item("Guava", shop_quantity=1, shop_net_weight=10)

        plan = StockPlan()
        plan.add(mango.id, "shop", -5, -50, 0)
        plan.add(guava.id, "shop", -3, -30, 0)

        with pytest.raises(InsufficientInventoryError) as exc:
            plan.validate()
        db_session.rollback()

        assert exc.value.details["item_name"] == "Guava"
        assert db_session.get(Item, mango.id).shop_quantity == 10

    def test_released_stock_offsets_consumed_stock(self, make_item, db_session):
        item = make_item("Mango", shop_quantity=4, shop_net_weight=40)

        plan = StockPlan()
        plan.add(item.id, "shop", 6, 60, 0)     # old line handed back
        plan.add(item.id, "shop", -8, -80, 0)   # new line taken out
        plan.validate()
        plan.apply()
        db_session.commit()

        assert db_session.get(Item, item.id).stock("shop") == (2, 20, 0)

    def test_missing_item_is_not_found(self, db_session):
        plan = StockPlan()
        plan.add(999, "shop", -1, 0, 0)
        with pytest.raises(NotFoundError):
            plan.validate()

    def test_empty_plan(self):
        assert StockPlan().validate() == {}
