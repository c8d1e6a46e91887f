"""Tests for product creation, receipts, total-imported edits and deletion."""

from decimal import Decimal

import pytest

from inventory_kernel.domain.ledger import OrderStatus
from inventory_kernel.domain.stock import history_total
from inventory_kernel.exceptions import (
    DuplicateProductError,
    NegativeTotalImportedError,
    ProductNotFoundError,
)


class TestCreateProduct:

    def test_id_derived_from_name(self, ledger, deterministic_clock):
        product = ledger.create_product("Gạo ST25 (5kg)", selling_price=Decimal("25"))

        assert product.id == "GAO-ST25-5KG"
        assert product.name == "Gạo ST25 (5kg)"
        assert product.stock_quantity == 0
        assert product.total_imported == 0
        assert product.created_at == deterministic_clock.now()

    def test_initial_stock_recorded_as_receipt(self, ledger):
        product = ledger.create_product("Muối", import_price=Decimal("4"), initial_stock=10)

        assert product.stock_quantity == 10
        assert product.total_imported == 10
        (record,) = product.import_history
        assert record.quantity == 10
        assert record.note == "initial stock"
        assert record.unit_cost == Decimal("4")

    def test_duplicate_name_rejected(self, ledger):
        ledger.create_product("Nước mắm")
        with pytest.raises(DuplicateProductError) as exc_info:
            ledger.create_product("NUOC MAM")
        assert exc_info.value.product_id == "NUOC-MAM"

    def test_force_picks_free_suffix(self, ledger):
        ledger.create_product("Trà")
        second = ledger.create_product("tra", force=True)
        third = ledger.create_product("TRA", force=True)

        assert (second.id, third.id) == ("TRA-2", "TRA-3")

    @pytest.mark.parametrize("name", ["", "   ", None])
    def test_empty_name_rejected(self, ledger, name):
        with pytest.raises(ValueError):
            ledger.create_product(name)

    def test_negative_initial_stock_rejected(self, ledger):
        with pytest.raises(ValueError):
            ledger.create_product("X", initial_stock=-1)
        assert ledger.get_product("X") is None


class TestImportStock:

    def test_receipt_adds_stock_and_history(self, ledger, make_product):
        make_product("A", stock=1, history=[3], import_price=Decimal("5"))

        product = ledger.import_stock("A", 4, unit_cost=Decimal("5"), note="restock")

        assert product.stock_quantity == 5
        assert product.total_imported == 7
        assert product.import_history[-1].note == "restock"
        assert product.import_price == Decimal("5")

    def test_new_unit_cost_updates_import_price(self, ledger, make_product):
        make_product("A", stock=0, history=[3], import_price=Decimal("5"))

        product = ledger.import_stock("A", 2, unit_cost=Decimal("6.25"))

        assert product.import_price == Decimal("6.25")
        assert ledger.get_product("A").import_price == Decimal("6.25")
        assert product.stock_quantity == 2

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_quantity_rejected(self, ledger, make_product, quantity):
        make_product("A", stock=1)
        with pytest.raises(ValueError):
            ledger.import_stock("A", quantity)

    def test_unknown_product(self, ledger):
        with pytest.raises(ProductNotFoundError):
            ledger.import_stock("missing", 1)


class TestSetTotalImported:

    def test_increase_keeps_units_sold(self, ledger, make_product):
        make_product("A", stock=4, history=[10])

        product = ledger.set_total_imported("A", 15)

        assert product.total_imported == 15
        assert product.stock_quantity == 9
        assert history_total(product.import_history) == 15
        assert product.import_history[-1].note == "total imported set to 15"

    def test_decrease_keeps_units_sold(self, ledger, make_product):
        make_product("A", stock=4, history=[10])

        product = ledger.set_total_imported("A", 8)

        assert product.total_imported == 8
        assert product.stock_quantity == 2
        assert product.import_history[-1].quantity == -2

    def test_decrease_below_units_sold_floors_stock(self, ledger, make_product):
        make_product("A", stock=4, history=[10])

        product = ledger.set_total_imported("A", 3)

        assert product.total_imported == 3
        assert product.stock_quantity == 0

    def test_unchanged_total_is_a_no_op(self, ledger, make_product):
        before = make_product("A", stock=4, history=[10])
        assert ledger.set_total_imported("A", 10).version == before.version

    def test_negative_total_rejected(self, ledger, make_product):
        make_product("A", stock=4, history=[10])
        with pytest.raises(NegativeTotalImportedError):
            ledger.set_total_imported("A", -1)


class TestUpdateAndDelete:

    def test_update_reports_pending_orders_to_sync(self, ledger, make_product, make_order):
        make_product("A", selling_price=Decimal("10"))
        make_order("P1", [("A", 1)])
        make_order("P2", [("B", 1)])
        make_order("D1", [("A", 1)], status=OrderStatus.DELIVERED)

        update = ledger.update_product_details("A", selling_price=Decimal("11"))

        assert update.product.selling_price == Decimal("11")
        assert update.pending_order_ids == ("P1",)
        assert ledger.get_order("P1").items[0].price == Decimal("10")

    def test_update_never_touches_stock(self, ledger, make_product):
        make_product("A", stock=3, history=[5])

        product = ledger.update_product_details("A", name="Renamed", import_price=None).product

        assert product.name == "Renamed"
        assert product.import_price is None
        assert (product.stock_quantity, product.total_imported) == (3, 5)

    def test_update_rejects_blank_name(self, ledger, make_product):
        make_product("A")
        with pytest.raises(ValueError):
            ledger.update_product_details("A", name=" ")

    def test_delete_keeps_order_lines(self, ledger, make_product, make_order):
        make_product("A")
        make_order("O1", [("A", 2)])
        make_order("O2", [("B", 1)])

        deletion = ledger.delete_product("A")

        assert deletion.referencing_order_ids == ("O1",)
        assert ledger.get_product("A") is None
        assert ledger.get_order("O1").items[0].product_id == "A"

    def test_delete_unknown_product(self, ledger):
        with pytest.raises(ProductNotFoundError):
            ledger.delete_product("missing")
