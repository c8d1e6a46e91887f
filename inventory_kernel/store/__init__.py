"""Ledger stores: the document-store contract and its implementations."""

from inventory_kernel.store.base import LedgerStore
from inventory_kernel.store.memory import InMemoryLedgerStore
from inventory_kernel.store.subscriptions import (
    ChangeKind,
    ChangeNotification,
    SubscriptionRegistry,
)

__all__ = [
    "ChangeKind",
    "ChangeNotification",
    "InMemoryLedgerStore",
    "LedgerStore",
    "SubscriptionRegistry",
]
