"""
Module: inventory_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the ledger: structured views over
    products and orders without mutation capability.
Architecture position: Kernel > Selectors.  May import from domain/ and
    store/base.py.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors call only ``get`` and ``list_all`` on the
      store, never ``upsert`` or ``delete``.
    - DTO return convention: selectors return frozen dataclasses or domain
      records, never ORM rows.
"""

from abc import ABC

from inventory_kernel.store.base import LedgerStore


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a LedgerStore from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, store: LedgerStore):
        """
        Args:
            store: Ledger store to read from.
        """
        self.store = store
