"""
InMemoryLedgerStore -- dict-backed LedgerStore for tests and embedding.

All reads and writes take one re-entrant lock, so each primitive is atomic
and the version check of ``upsert`` cannot interleave with another write.
"""

from __future__ import annotations

from threading import RLock

from inventory_kernel.domain.ledger import Collection
from inventory_kernel.exceptions import OptimisticLockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.store.base import LedgerEntity, LedgerStore
from inventory_kernel.store.subscriptions import ChangeKind

logger = get_logger("store.memory")


class InMemoryLedgerStore(LedgerStore):
    """LedgerStore holding immutable records in per-collection dicts."""

    def __init__(self, initial: list[LedgerEntity] | None = None):
        super().__init__()
        self._lock = RLock()
        self._data: dict[Collection, dict[str, LedgerEntity]] = {
            collection: {} for collection in Collection
        }
        for entity in initial or ():
            self.upsert(entity)

    def get(self, collection: Collection, entity_id: str) -> LedgerEntity | None:
        with self._lock:
            return self._data[Collection(collection)].get(entity_id)

    def upsert(self, entity: LedgerEntity, expected_version: int | None = None) -> LedgerEntity:
        collection = entity.collection
        with self._lock:
            records = self._data[collection]
            current = records.get(entity.id)
            current_version = current.version if current is not None else 0
            if expected_version is not None and expected_version != current_version:
                logger.debug(
                    "store_version_conflict",
                    extra={
                        "collection": collection.value,
                        "entity_id": entity.id,
                        "expected_version": expected_version,
                        "actual_version": current_version,
                    },
                )
                raise OptimisticLockError(
                    collection.value, entity.id, expected_version, current_version
                )
            stored = entity.with_changes(version=current_version + 1)
            records[entity.id] = stored

        self._notify(collection, stored.id, ChangeKind.UPSERT, stored)
        return stored

    def delete(
        self,
        collection: Collection,
        entity_id: str,
        expected_version: int | None = None,
    ) -> bool:
        collection = Collection(collection)
        with self._lock:
            records = self._data[collection]
            current = records.get(entity_id)
            if current is None:
                return False
            if expected_version is not None and expected_version != current.version:
                raise OptimisticLockError(
                    collection.value, entity_id, expected_version, current.version
                )
            del records[entity_id]

        self._notify(collection, entity_id, ChangeKind.DELETE)
        return True

    def list_all(self, collection: Collection) -> list[LedgerEntity]:
        with self._lock:
            records = self._data[Collection(collection)]
            return [records[key] for key in sorted(records)]
