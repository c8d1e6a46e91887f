"""
Hypothesis-based fuzzing of the stock ledger.

Property-based testing using Hypothesis to generate adjustment sequences
and order books, and verify the ledger invariants hold after every step.

Boundaries fuzzed here:
- Adjustments: any mix of receipts, sales, restores and corrections
- Reconciliation: arbitrary order books over a handful of products
- Naming: arbitrary unicode product names
"""

from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.domain.ledger import (
    AdjustmentKind,
    AdjustmentMeta,
    Order,
    OrderItem,
    OrderStatus,
    Product,
)
from inventory_kernel.domain.naming import generate_product_id, normalize_name
from inventory_kernel.domain.stock import authoritative_total_imported, history_total
from inventory_kernel.exceptions import NegativeTotalImportedError
from inventory_kernel.services.ledger_service import InventoryLedgerService
from inventory_kernel.store.memory import InMemoryLedgerStore

pytestmark = pytest.mark.fuzzing

# conftest resets LogContext in a function-scoped autouse fixture.
SUPPRESSED = [HealthCheck.too_slow, HealthCheck.function_scoped_fixture]

adjustments = st.lists(
    st.tuples(
        st.sampled_from(list(AdjustmentKind)),
        st.integers(min_value=1, max_value=500),
    ),
    max_size=40,
)

product_names = st.text(
    alphabet=st.sampled_from(list("abcxyzABCXYZ0123456789 \t-_()/.ạăâđêôơưĐÁỗựế")),
    max_size=40,
)

order_books = st.lists(
    st.tuples(
        st.sampled_from(["A", "B", "C", "GONE"]),
        st.integers(min_value=1, max_value=50),
        st.sampled_from(list(OrderStatus)),
    ),
    max_size=25,
)


def _ledger(*products: Product) -> InventoryLedgerService:
    return InventoryLedgerService(
        InMemoryLedgerStore(list(products)), LedgerSettings(), DeterministicClock()
    )


def _assert_invariants(product: Product) -> None:
    total = authoritative_total_imported(product)
    assert product.stock_quantity >= 0
    assert product.stock_quantity <= total
    assert total >= 0
    if product.import_history:
        assert history_total(product.import_history) == product.total_imported


class TestAdjustmentSequences:

    @given(steps=adjustments, opening=st.integers(min_value=0, max_value=200))
    @settings(max_examples=150, suppress_health_check=SUPPRESSED)
    def test_invariants_hold_after_every_adjustment(self, steps, opening):
        ledger = _ledger(
            Product(id="P", name="P", stock_quantity=opening, total_imported=opening)
        )

        for kind, magnitude in steps:
            negative = kind in (AdjustmentKind.SALE, AdjustmentKind.CORRECTION)
            delta = -magnitude if negative else magnitude
            try:
                product = ledger.adjust_stock("P", delta, AdjustmentMeta(kind=kind))
            except NegativeTotalImportedError:
                product = ledger.get_product("P")
                assert kind is AdjustmentKind.CORRECTION
                assert authoritative_total_imported(product) < magnitude
            _assert_invariants(product)


class TestReconciliationProperties:

    @given(book=order_books)
    @settings(max_examples=100, suppress_health_check=SUPPRESSED)
    def test_reconciliation_is_idempotent_and_exact(self, book):
        ledger = _ledger(
            Product(id="A", name="A", stock_quantity=3, total_imported=40),
            Product(id="B", name="B", stock_quantity=90, total_imported=None),
            Product(id="C", name="C", stock_quantity=0, total_imported=0),
        )
        for index, (pid, quantity, status) in enumerate(book):
            ledger.store.upsert(
                Order(
                    id=f"O{index}",
                    status=status,
                    items=(
                        OrderItem(
                            id=f"O{index}-1",
                            name=pid,
                            quantity=quantity,
                            price=Decimal("1"),
                            product_id=pid,
                        ),
                    ),
                )
            )

        ledger.recalculate_inventory_from_orders()
        second = ledger.recalculate_inventory_from_orders()

        assert second.updated_count == 0
        for product in ledger.store.list_products():
            sold = sum(
                quantity
                for pid, quantity, status in book
                if pid == product.id and status is not OrderStatus.CANCELLED
            )
            total = authoritative_total_imported(product)
            assert product.stock_quantity == max(0, total - sold)
            _assert_invariants(product)


class TestNamingProperties:

    @given(name=product_names)
    @settings(suppress_health_check=SUPPRESSED)
    def test_normalize_is_idempotent(self, name):
        once = normalize_name(name)
        assert normalize_name(once) == once

    @given(name=product_names)
    @settings(suppress_health_check=SUPPRESSED)
    def test_generated_ids_are_slugs(self, name):
        product_id = generate_product_id(name)
        assert product_id
        assert not product_id.startswith("-")
        assert not product_id.endswith("-")
        assert product_id == generate_product_id(normalize_name(name))
