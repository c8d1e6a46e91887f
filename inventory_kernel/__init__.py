"""
Inventory Kernel

The stock ledger behind the logistics console:
- Atomic, serialized stock adjustments with an import ledger
- Order-to-stock coupling (deduct on create, restore on delete/cancel)
- Drift reconciliation from order history
- Duplicate product merge with order rewrite
- Pending-order price/name sync
"""

__version__ = "0.1.0"
