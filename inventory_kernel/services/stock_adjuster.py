"""
StockAdjuster -- the single mutation primitive for product stock.

Responsibility:
    Changes a product's stock by a signed delta, keeping the import ledger
    (history, ``total_imported``, ``last_import_date``) in step, and writes
    the result back through the store.  Every order-linked stock change in
    the kernel is a call into ``adjust_stock``.

Architecture position:
    Kernel > Services -- imperative shell over ``domain.stock``.

Invariants enforced:
    NON_NEGATIVE_STOCK    -- new stock is floored at zero; the floor is logged.
    STOCK_WITHIN_IMPORTED -- RESTORE is capped at the authoritative total.
    NON_NEGATIVE_IMPORTED -- CORRECTION below zero raises, never clamps.
    SERIALIZED_ADJUSTMENT -- per-product RLock plus compare-and-swap on the
                             store version with bounded re-read retries.

Failure modes:
    - ProductNotFoundError: the id does not resolve (terminal).
    - NegativeTotalImportedError / CorruptImportHistoryError: the result
      would break the ledger arithmetic (terminal).
    - ConcurrentModificationError: retries exhausted; nothing was written.
    - ValueError: the requested kind contradicts the sign of the delta.

Kind semantics:
    RECEIPT     delta > 0   +stock, +total, appends ImportRecord(+delta)
    SALE        delta < 0   -stock (floored), ledger untouched
    RESTORE     delta > 0   +stock (capped at total), ledger untouched
    CORRECTION  delta < 0   -stock (floored), -total, appends ImportRecord(delta)

    A product with no stored total_imported has it pinned to the
    authoritative total by whichever adjustment touches it first.
"""

from __future__ import annotations

from contextlib import contextmanager
from threading import Lock, RLock
from typing import Iterator
from uuid import uuid4

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import (
    AdjustmentKind,
    AdjustmentMeta,
    ImportRecord,
    Product,
)
from inventory_kernel.domain.stock import (
    authoritative_total_imported,
    history_with_opening_balance,
    validate_ledger,
)
from inventory_kernel.exceptions import (
    ConcurrentModificationError,
    NegativeTotalImportedError,
    OptimisticLockError,
    ProductNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.stock_adjuster")

_POSITIVE_KINDS = frozenset({AdjustmentKind.RECEIPT, AdjustmentKind.RESTORE})
_NEGATIVE_KINDS = frozenset({AdjustmentKind.SALE, AdjustmentKind.CORRECTION})


class KeyedLockRegistry:
    """One re-entrant lock per key, created on first use."""

    def __init__(self):
        self._guard = Lock()
        self._locks: dict[str, RLock] = {}

    def lock_for(self, key: str) -> RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = RLock()
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield


def resolve_kind(delta: int, kind: AdjustmentKind | None) -> AdjustmentKind:
    """Default the kind from the sign of ``delta`` and check they agree."""
    if kind is None:
        return AdjustmentKind.RECEIPT if delta > 0 else AdjustmentKind.SALE
    kind = AdjustmentKind(kind)
    if delta > 0 and kind not in _POSITIVE_KINDS:
        raise ValueError(f"{kind.value} adjustments take a negative delta, got {delta}")
    if delta < 0 and kind not in _NEGATIVE_KINDS:
        raise ValueError(f"{kind.value} adjustments take a positive delta, got {delta}")
    return kind


class StockAdjuster(BaseService):
    """
    Serialized, ledger-aware stock adjustment.

    Contract:
        ``adjust_stock`` either writes exactly one new version of the
        product and returns it, or raises and writes nothing.

    Guarantees:
        - Two adjustments of the same product in this process never
          interleave (keyed RLock).
        - An adjustment racing a writer in another process, or one of the
          full-record overwrite paths, re-reads and re-applies the delta to
          the fresh record (compare-and-swap).
    """

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: KeyedLockRegistry | None = None,
    ):
        super().__init__(store, settings, clock)
        self.locks = locks or KeyedLockRegistry()

    def adjust_stock(
        self,
        product_id: str,
        delta: int,
        meta: AdjustmentMeta | None = None,
    ) -> Product:
        """
        Change stock of ``product_id`` by ``delta``.

        Args:
            product_id: Product to adjust.
            delta: Signed unit count; 0 returns the product unchanged.
            meta: Unit cost, note, date and kind of the adjustment.

        Returns:
            The stored product after the adjustment.
        """
        meta = meta or AdjustmentMeta()
        delta = int(delta)
        kind = resolve_kind(delta, meta.kind) if delta else None
        max_attempts = self.settings.max_adjust_retries

        with self.locks.hold(product_id):
            for attempt in range(1, max_attempts + 1):
                product = self.store.get_product(product_id)
                if product is None:
                    raise ProductNotFoundError(product_id)
                if delta == 0:
                    return product

                updated = self._apply(product, delta, kind, meta)
                validate_ledger(updated)

                try:
                    stored = self.store.upsert(updated, expected_version=product.version)
                except OptimisticLockError:
                    logger.warning(
                        "stock_adjust_conflict",
                        extra={
                            "product_id": product_id,
                            "attempt": attempt,
                            "max_attempts": max_attempts,
                        },
                    )
                    continue

                logger.info(
                    "stock_adjusted",
                    extra={
                        "product_id": product_id,
                        "delta": delta,
                        "kind": kind.value,
                        "old_stock": product.stock_quantity,
                        "new_stock": stored.stock_quantity,
                        "total_imported": stored.total_imported,
                        "reference_id": meta.reference_id,
                        "attempt": attempt,
                    },
                )
                return stored

        logger.error(
            "stock_adjust_retries_exhausted",
            extra={"product_id": product_id, "attempts": max_attempts},
        )
        raise ConcurrentModificationError(product_id, max_attempts)

    def _apply(
        self,
        product: Product,
        delta: int,
        kind: AdjustmentKind,
        meta: AdjustmentMeta,
    ) -> Product:
        total = authoritative_total_imported(product)
        stock = max(0, int(product.stock_quantity or 0))
        when = meta.date or self.clock.now()
        # Legacy records get their total pinned before stock moves away from it.
        pinned = {"total_imported": total} if product.total_imported is None else {}

        if kind is AdjustmentKind.SALE:
            return product.with_changes(
                stock_quantity=self._floor(product.id, stock, delta), **pinned
            )

        if kind is AdjustmentKind.RESTORE:
            new_stock = stock + delta
            if new_stock > total:
                logger.warning(
                    "stock_restore_capped",
                    extra={
                        "product_id": product.id,
                        "requested_stock": new_stock,
                        "total_imported": total,
                    },
                )
                new_stock = total
            return product.with_changes(stock_quantity=max(stock, new_stock), **pinned)

        new_total = total + delta
        if new_total < 0:
            raise NegativeTotalImportedError(product.id, new_total)

        record = ImportRecord(
            id=str(uuid4()),
            date=when,
            quantity=delta,
            unit_cost=meta.unit_cost,
            note=meta.note,
        )
        history = history_with_opening_balance(product, when) + (record,)

        if kind is AdjustmentKind.RECEIPT:
            return product.with_changes(
                stock_quantity=stock + delta,
                total_imported=new_total,
                import_history=history,
                last_import_date=when,
            )

        # CORRECTION
        return product.with_changes(
            stock_quantity=min(self._floor(product.id, stock, delta), new_total),
            total_imported=new_total,
            import_history=history,
        )

    @staticmethod
    def _floor(product_id: str, stock: int, delta: int) -> int:
        new_stock = stock + delta
        if new_stock < 0:
            logger.warning(
                "stock_floor_applied",
                extra={"product_id": product_id, "stock": stock, "delta": delta},
            )
            return 0
        return new_stock
