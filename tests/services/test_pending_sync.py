"""Tests for pushing product name/price changes to PENDING orders."""

from decimal import Decimal

from inventory_kernel.domain.ledger import OrderStatus


class TestSyncProductToPendingOrders:

    def test_only_pending_orders_rewritten(self, ledger, make_product, make_order):
        make_product("A", name="Old name", selling_price=Decimal("10"))
        make_order("P1", [("A", 2)])
        make_order("D1", [("A", 2)], status=OrderStatus.DELIVERED)
        make_order("T1", [("A", 2)], status=OrderStatus.IN_TRANSIT)
        product = ledger.update_product_details(
            "A", name="New name", selling_price=Decimal("12")
        ).product

        result = ledger.sync_product_to_pending_orders(product)

        assert result.order_ids == ("P1",)
        pending = ledger.get_order("P1")
        assert pending.items[0].name == "New name"
        assert pending.items[0].price == Decimal("12")
        assert pending.total_price == Decimal("24")
        for order_id in ("D1", "T1"):
            line = ledger.get_order(order_id).items[0]
            assert (line.name, line.price) == ("A", Decimal("10"))

    def test_other_lines_untouched(self, ledger, make_product, make_order):
        product = make_product("A", name="Alpha", selling_price=Decimal("3"))
        make_order("P1", [("A", 1, Decimal("1")), ("B", 1, Decimal("7"))])

        ledger.sync_product_to_pending_orders(product)

        items = ledger.get_order("P1").items
        assert (items[0].name, items[0].price) == ("Alpha", Decimal("3"))
        assert (items[1].name, items[1].price) == ("B", Decimal("7"))

    def test_already_matching_orders_skipped(self, ledger, make_product, make_order):
        product = make_product("A", name="A", selling_price=Decimal("10"))
        before = make_order("P1", [("A", 1)])

        result = ledger.sync_product_to_pending_orders(product)

        assert result.updated_count == 0
        assert ledger.get_order("P1").version == before.version

    def test_stock_not_touched(self, ledger, make_product, make_order):
        product = make_product("A", stock=4, selling_price=Decimal("11"))
        make_order("P1", [("A", 3)])

        ledger.sync_product_to_pending_orders(product)

        assert ledger.get_product("A").stock_quantity == 4
