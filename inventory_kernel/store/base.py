"""
LedgerStore -- the document-store contract the ledger is written against.

Responsibility:
    Defines the five primitives every service uses to read and write
    products and orders: ``get``, ``upsert``, ``delete``, ``list_all`` and
    ``subscribe``.  Services never touch a database or a dict directly.

Architecture position:
    Kernel > Store -- boundary between the pure domain records and whatever
    persists them.  Implementations: ``store.memory.InMemoryLedgerStore``
    and ``store.sql.SqlAlchemyLedgerStore``.

Invariants enforced:
    SERIALIZED_ADJUSTMENT -- ``upsert`` with ``expected_version`` is a
    compare-and-swap.  A record that does not exist has version 0, so
    ``expected_version=0`` means "create, and fail if it already exists".

Failure modes:
    - OptimisticLockError when ``expected_version`` does not match.
    - Subscriber failures are logged by the registry and never propagate.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from inventory_kernel.domain.ledger import Collection, Order, Product
from inventory_kernel.store.subscriptions import (
    ChangeCallback,
    ChangeKind,
    ChangeNotification,
    SubscriptionRegistry,
)

LedgerEntity = Product | Order


class LedgerStore(ABC):
    """
    Abstract keyed store for the ``products`` and ``orders`` collections.

    Contract:
        - Every successful ``upsert`` returns the stored record with its
          ``version`` incremented by one.
        - Subscribers are notified after the write or delete has been
          committed, never before and never for a failed write.
        - ``list_all`` returns a snapshot; later writes do not mutate it.
    """

    def __init__(self):
        self._subscriptions = SubscriptionRegistry()

    @abstractmethod
    def get(self, collection: Collection, entity_id: str) -> LedgerEntity | None:
        """Return the record, or None when it does not exist."""

    @abstractmethod
    def upsert(self, entity: LedgerEntity, expected_version: int | None = None) -> LedgerEntity:
        """
        Create or replace ``entity`` in its collection.

        Args:
            entity: Product or Order; its collection is taken from the type.
            expected_version: None for an unconditional write, otherwise the
                version the caller read (0 for "must not exist yet").

        Returns:
            The stored record with its new version.

        Raises:
            OptimisticLockError: The stored version differs from
                ``expected_version``.
        """

    @abstractmethod
    def delete(
        self,
        collection: Collection,
        entity_id: str,
        expected_version: int | None = None,
    ) -> bool:
        """Remove the record.  Returns False when it did not exist."""

    @abstractmethod
    def list_all(self, collection: Collection) -> list[LedgerEntity]:
        """All records in the collection, ordered by id."""

    def subscribe(self, collection: Collection, callback: ChangeCallback) -> Callable[[], None]:
        """Register a change callback; returns the unsubscribe function."""
        return self._subscriptions.subscribe(collection, callback)

    def _notify(
        self,
        collection: Collection,
        entity_id: str,
        kind: ChangeKind,
        entity: LedgerEntity | None = None,
    ) -> None:
        self._subscriptions.dispatch(
            ChangeNotification(collection=collection, entity_id=entity_id, kind=kind, entity=entity)
        )

    # Typed conveniences used by the services.

    def get_product(self, product_id: str) -> Product | None:
        return self.get(Collection.PRODUCTS, product_id)

    def get_order(self, order_id: str) -> Order | None:
        return self.get(Collection.ORDERS, order_id)

    def list_products(self) -> list[Product]:
        return self.list_all(Collection.PRODUCTS)

    def list_orders(self) -> list[Order]:
        return self.list_all(Collection.ORDERS)
