"""
Tests for the JSON log lines the ledger writes.

Every ledger call binds an operation, an actor and a correlation id; the
lines logged underneath (adjustments, order events, subscriber failures)
carry them along with their own fields.
"""

import json
import logging
from datetime import datetime
from decimal import Decimal
from io import StringIO

import pytest

from inventory_kernel.domain.ledger import Collection, ItemFailure, OrderStatus
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


def _lines(captured_logs, message: str) -> list[dict]:
    return [r for r in captured_logs() if r["message"] == message]


# ---------------------------------------------------------------------------
# Ledger event lines
# ---------------------------------------------------------------------------


class TestLedgerEventLines:

    def test_adjustment_line(self, ledger, make_product, captured_logs):
        make_product("P", stock=2, history=[10])

        ledger.adjust_stock("P", 4)

        (record,) = _lines(captured_logs, "stock_adjusted")
        assert record["level"] == "INFO"
        assert record["logger"] == "inventory_kernel.services.stock_adjuster"
        assert datetime.fromisoformat(record["ts"]).utcoffset() is not None
        assert record["operation"] == "adjust_stock"
        assert record["actor_id"] == "test-actor"
        assert record["product_id"] == "P"
        assert (record["kind"], record["delta"]) == ("receipt", 4)
        assert (record["old_stock"], record["new_stock"], record["total_imported"]) == (2, 6, 14)

    def test_one_correlation_id_per_call(self, ledger, make_product, order_draft, captured_logs):
        make_product("A", stock=10, history=[10])
        make_product("B", stock=10, history=[10])

        ledger.create_order_and_deduct_stock(order_draft("O1", [("A", 1), ("B", 2)]))
        ledger.adjust_stock("A", -1)

        logs = captured_logs()
        create_ids = {r["correlation_id"] for r in logs if r.get("operation") == "create_order"}
        adjust_ids = {r["correlation_id"] for r in logs if r.get("operation") == "adjust_stock"}
        assert len(create_ids) == 1
        assert len(adjust_ids) == 1
        assert create_ids != adjust_ids
        assert LogContext.get_all() == {}

    def test_caller_correlation_id_kept(self, ledger, make_product, make_order, captured_logs):
        make_product("A", stock=2, history=[5])
        make_order("O1", [("A", 3)])

        with LogContext.bind(correlation_id="req-42"):
            ledger.delete_order_and_restore_stock("O1")

        (adjusted,) = _lines(captured_logs, "stock_adjusted")
        (deleted,) = _lines(captured_logs, "order_deleted")
        for record in (adjusted, deleted):
            assert record["correlation_id"] == "req-42"
            assert record["order_id"] == "O1"
            assert record["operation"] == "delete_order"
        assert deleted["restored_products"] == 1

    def test_order_total_logged_as_decimal_text(self, ledger, make_product, order_draft, captured_logs):
        make_product("A", stock=10, history=[10])

        ledger.create_order_and_deduct_stock(order_draft("O1", [("A", 3, Decimal("2.50"))]))

        (record,) = _lines(captured_logs, "order_created")
        assert isinstance(record["total_price"], str)
        assert Decimal(record["total_price"]) == Decimal("7.50")


# ---------------------------------------------------------------------------
# Errors in log lines
# ---------------------------------------------------------------------------


class TestKernelErrorLines:

    def test_failing_subscriber_line_carries_error_fields(
        self, ledger, make_product, make_order, captured_logs
    ):
        make_product("A", stock=2, history=[5])
        make_order("O1", [("A", 3)])
        ledger.store.subscribe(
            Collection.PRODUCTS, lambda change: ledger.delete_order_and_restore_stock("O1")
        )

        ledger.delete_order_and_restore_stock("O1")

        (record,) = _lines(captured_logs, "subscriber_failed")
        assert record["level"] == "ERROR"
        assert record["exc_type"] == "OrderNotFoundError"
        assert record["exc_code"] == "ORDER_NOT_FOUND"
        assert record["exc_order_id"] == "O1"
        assert "Traceback" in record["traceback"]
        assert record["operation"] == "delete_order"
        assert ledger.get_product("A").stock_quantity == 5

    def test_line_failure_reports_code(self, ledger, make_order, captured_logs):
        make_order("O1", [("GONE", 1)])

        ledger.delete_order_and_restore_stock("O1")

        (record,) = _lines(captured_logs, "order_line_adjustment_failed")
        assert record["level"] == "WARNING"
        assert record["product_id"] == "GONE"
        assert record["error_code"] == "PRODUCT_NOT_FOUND"


# ---------------------------------------------------------------------------
# Ledger values in ``extra``
# ---------------------------------------------------------------------------


class TestLedgerValues:

    def test_dtos_enums_and_sets(self, captured_logs):
        failure = ItemFailure("O9", "ORDER_NOT_FOUND", "Order not found: O9")

        get_logger("services.reporting").warning(
            "bulk_summary",
            extra={
                "failures": (failure,),
                "status": OrderStatus.CANCELLED,
                "product_ids": frozenset({"B", "A"}),
                "restored": {"A": 2},
            },
        )

        (record,) = _lines(captured_logs, "bulk_summary")
        assert record["failures"] == [
            {"entity_id": "O9", "code": "ORDER_NOT_FOUND", "message": "Order not found: O9"}
        ]
        assert record["status"] == OrderStatus.CANCELLED.value
        assert record["product_ids"] == ["A", "B"]
        assert record["restored"] == {"A": 2}

    def test_bound_id_wins_over_extra(self, captured_logs):
        with LogContext.bind(product_id="BOUND"):
            get_logger("services.reporting").info("clash", extra={"product_id": "EXTRA"})

        (record,) = _lines(captured_logs, "clash")
        assert record["product_id"] == "BOUND"

    def test_no_context_outside_a_ledger_call(self, captured_logs):
        get_logger("services.reporting").info("idle")

        (record,) = _lines(captured_logs, "idle")
        assert not set(record) & {"correlation_id", "operation", "order_id"}


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_nested_operations_unwind(self):
        with LogContext.bind(operation="bulk_delete_orders", correlation_id="c1"):
            with LogContext.bind(operation="delete_order", order_id="O1"):
                assert LogContext.get_all() == {
                    "correlation_id": "c1",
                    "operation": "delete_order",
                    "order_id": "O1",
                }
            assert LogContext.get_all() == {
                "correlation_id": "c1",
                "operation": "bulk_delete_orders",
            }
        assert LogContext.get_all() == {}

    def test_none_leaves_field_alone(self):
        LogContext.set(actor_id="clerk-1")
        with LogContext.bind(actor_id=None, product_id="P"):
            assert LogContext.get_all() == {"actor_id": "clerk-1", "product_id": "P"}
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="batch_id"):
            LogContext.set(batch_id="B1")
        with pytest.raises(TypeError, match="batch_id"):
            LogContext.bind(batch_id="B1")


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def _fresh_logging(self):
        reset_logging()
        yield
        reset_logging()
        configure_logging(level=logging.DEBUG)

    def _handler(self) -> tuple[logging.Handler, StringIO]:
        stream = StringIO()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(StructuredFormatter())
        return handler, stream

    def test_second_call_keeps_first_handler(self):
        first, _ = self._handler()
        second, _ = self._handler()

        configure_logging(handler=first)
        configure_logging(handler=second)

        assert logging.getLogger("inventory_kernel").handlers == [first]

    def test_level_by_name_filters_adjuster_lines(self):
        handler, stream = self._handler()
        configure_logging(handler=handler, level="warning")
        adjuster_logger = get_logger("services.stock_adjuster")

        adjuster_logger.info("stock_adjusted")
        adjuster_logger.warning("stock_floor_applied", extra={"product_id": "P"})

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [(r["message"], r["logger"]) for r in lines] == [
            ("stock_floor_applied", "inventory_kernel.services.stock_adjuster")
        ]
