"""
MergeService -- fold duplicate product records into one survivor.

Responsibility:
    Finds products whose names are equal after normalization, merges each
    group's ledgers into a deterministic survivor, re-points every order
    line that referenced a removed duplicate, and deletes the duplicates.

Architecture position:
    Kernel > Services -- full-record overwrite path.  Holds the per-product
    locks of every group member for the duration of the group so in-process
    adjustments cannot interleave with the merge.

Invariants enforced:
    STOCK_WITHIN_IMPORTED -- each member contributes its clamped stock, so
        the merged stock never exceeds the merged total.
    HISTORY_AUTHORITATIVE -- legacy members without history contribute a
        synthetic opening-balance record; the merged history always sums to
        the merged total.
    WEAK_PRODUCT_REFERENCE -- only ``product_id`` of order lines changes;
        name and price snapshots are left as recorded.

Survivor rule (``merge_survivor_rule``):
    most_imported     largest authoritative total imported, then earliest
                      created_at, then smallest id   (default)
    earliest_created  earliest created_at, then largest total, then
                      smallest id
    Records without created_at sort after dated ones.

Failure modes:
    - A group whose writes fail is rolled back from snapshots and reported
      in ``failures``; the remaining groups are still processed.
    - PartialMergeError when the rollback itself fails: the group may be
      half-merged and needs attention.
"""

from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from inventory_config.schema import LedgerSettings, MergeSurvivorRule
from inventory_kernel.domain.clock import Clock
from inventory_kernel.domain.ledger import Collection, ItemFailure, Order, Product
from inventory_kernel.domain.naming import normalize_name
from inventory_kernel.domain.stock import (
    authoritative_total_imported,
    compute_authoritative_stock,
    history_with_opening_balance,
    validate_ledger,
)
from inventory_kernel.exceptions import PartialMergeError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.stock_adjuster import KeyedLockRegistry
from inventory_kernel.store.base import LedgerStore

logger = get_logger("services.merge")

_UNDATED = datetime.max.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class MergeResult:
    merged_count: int
    fixed_orders: int
    failures: tuple[ItemFailure, ...] = ()
    survivor_ids: tuple[str, ...] = ()


def group_duplicates(products: list[Product]) -> dict[str, list[Product]]:
    """Products keyed by normalized name, only groups with two or more members."""
    groups: dict[str, list[Product]] = {}
    for product in products:
        groups.setdefault(normalize_name(product.name), []).append(product)
    return {key: members for key, members in sorted(groups.items()) if len(members) > 1}


def order_members(members: list[Product], rule: MergeSurvivorRule) -> list[Product]:
    """Members sorted so the survivor comes first."""

    def created(product: Product) -> datetime:
        return product.created_at or _UNDATED

    def key(product: Product) -> tuple:
        total = -authoritative_total_imported(product)
        if MergeSurvivorRule(rule) is MergeSurvivorRule.EARLIEST_CREATED:
            return (created(product), total, product.id)
        return (total, created(product), product.id)

    return sorted(members, key=key)


def merge_ledgers(survivor: Product, losers: list[Product], when: datetime) -> Product:
    """The survivor record carrying the whole group's ledger."""
    members = [survivor, *losers]
    history = tuple(
        record for member in members for record in history_with_opening_balance(member, when)
    )
    import_dates = [m.last_import_date for m in members if m.last_import_date is not None]
    created_dates = [m.created_at for m in members if m.created_at is not None]
    import_price = survivor.import_price
    if import_price is None:
        import_price = next((m.import_price for m in losers if m.import_price is not None), None)

    return survivor.with_changes(
        stock_quantity=sum(compute_authoritative_stock(m) for m in members),
        total_imported=sum(authoritative_total_imported(m) for m in members),
        import_history=history,
        last_import_date=max(import_dates) if import_dates else None,
        created_at=min(created_dates) if created_dates else None,
        import_price=import_price,
    )


def repoint_order(order: Order, loser_ids: set[str], survivor_id: str) -> Order | None:
    """The order with loser references rewritten, or None if it has none."""
    if not any(item.product_id in loser_ids for item in order.items):
        return None
    return order.with_changes(
        items=tuple(
            replace(item, product_id=survivor_id) if item.product_id in loser_ids else item
            for item in order.items
        )
    )


class MergeService(BaseService):
    """Duplicate-product cleanup, transactional per group."""

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
        locks: KeyedLockRegistry | None = None,
    ):
        super().__init__(store, settings, clock)
        self.locks = locks or KeyedLockRegistry()

    def clean_and_merge_duplicate_products(self) -> MergeResult:
        """
        Merge every group of same-named products into its survivor.

        Returns:
            MergeResult with the number of duplicate records merged away,
            the number of orders rewritten, per-group failures and the ids
            of the survivors.

        Raises:
            PartialMergeError: a failed group could not be rolled back.
        """
        groups = group_duplicates(self.store.list_products())
        merged = 0
        fixed = 0
        failures: list[ItemFailure] = []
        survivors: list[str] = []

        for group_key, members in groups.items():
            member_ids = sorted(m.id for m in members)
            with ExitStack() as stack:
                for product_id in member_ids:
                    stack.enter_context(self.locks.hold(product_id))
                try:
                    outcome = self._merge_group(group_key, member_ids)
                except PartialMergeError:
                    raise
                except Exception as exc:
                    code = getattr(exc, "code", type(exc).__name__)
                    failures.append(ItemFailure(group_key, code, str(exc)))
                    continue
            if outcome is None:
                continue
            survivor_id, loser_count, order_count = outcome
            merged += loser_count
            fixed += order_count
            survivors.append(survivor_id)

        logger.info(
            "duplicate_merge_completed",
            extra={
                "group_count": len(groups),
                "merged_count": merged,
                "fixed_orders": fixed,
                "failure_count": len(failures),
            },
        )
        return MergeResult(
            merged_count=merged,
            fixed_orders=fixed,
            failures=tuple(failures),
            survivor_ids=tuple(survivors),
        )

    def _merge_group(self, group_key: str, member_ids: list[str]) -> tuple[str, int, int] | None:
        fresh = [p for p in (self.store.get_product(pid) for pid in member_ids) if p is not None]
        if len(fresh) < 2:
            return None

        ordered = order_members(fresh, self.settings.merge_survivor_rule)
        survivor, losers = ordered[0], ordered[1:]
        loser_ids = {p.id for p in losers}

        merged_survivor = merge_ledgers(survivor, losers, self.clock.now())
        validate_ledger(merged_survivor)

        rewrites = [
            (order, updated)
            for order in self.store.list_orders()
            if (updated := repoint_order(order, loser_ids, survivor.id)) is not None
        ]

        written: list[Product | Order] = []
        deleted: list[Product] = []
        try:
            self.store.upsert(merged_survivor, expected_version=survivor.version)
            written.append(survivor)
            for original, updated in rewrites:
                self.store.upsert(
                    updated.with_changes(updated_at=self.clock.now()),
                    expected_version=original.version,
                )
                written.append(original)
            for loser in losers:
                self.store.delete(Collection.PRODUCTS, loser.id, expected_version=loser.version)
                deleted.append(loser)
        except Exception as exc:
            logger.error(
                "duplicate_group_merge_failed",
                extra={"group_key": group_key, "survivor_id": survivor.id},
                exc_info=True,
            )
            self._rollback(group_key, survivor.id, written, deleted, exc)
            raise

        logger.info(
            "duplicate_group_merged",
            extra={
                "group_key": group_key,
                "survivor_id": survivor.id,
                "merged_ids": sorted(loser_ids),
                "stock_quantity": merged_survivor.stock_quantity,
                "total_imported": merged_survivor.total_imported,
                "fixed_orders": len(rewrites),
            },
        )
        return survivor.id, len(losers), len(rewrites)

    def _rollback(
        self,
        group_key: str,
        survivor_id: str,
        written: list[Product | Order],
        deleted: list[Product],
        cause: Exception,
    ) -> None:
        try:
            for snapshot in [*written, *deleted]:
                self.store.upsert(snapshot)
        except Exception as exc:
            logger.critical(
                "duplicate_group_rollback_failed",
                extra={"group_key": group_key, "survivor_id": survivor_id},
                exc_info=True,
            )
            raise PartialMergeError(
                group_key, survivor_id, f"{cause}; rollback failed: {exc}"
            ) from exc
        logger.warning(
            "duplicate_group_rolled_back",
            extra={"group_key": group_key, "survivor_id": survivor_id, "restored": len(written) + len(deleted)},
        )
