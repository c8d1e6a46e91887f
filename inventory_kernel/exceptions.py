"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock accounting errors must be handled precisely. Callers (order screens,
maintenance jobs, automation) decide between "retry", "report this line and
continue" and "stop" based on the TYPE of the error, never on its message:

    try:
        ledger.adjust_stock(product_id, -2)
    except ConcurrentModificationError:
        schedule_retry()                       # retryable
    except ProductNotFoundError as e:
        report_missing(e.product_id)           # terminal for this item

Every exception:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- OrderNotFoundError
    |
    +-- InvariantViolationError
    |   +-- NegativeTotalImportedError
    |   +-- CorruptImportHistoryError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |   +-- ConcurrentModificationError
    |
    +-- OrderError
    |   +-- InvalidOrderError
    |
    +-- ProductError
    |   +-- DuplicateProductError
    |
    +-- MergeError
        +-- PartialMergeError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                      | When Raised
--------------|---------------------------|--------------------------------------
Not found     | PRODUCT_NOT_FOUND         | Product id does not resolve
              | ORDER_NOT_FOUND           | Order id does not resolve
--------------|---------------------------|--------------------------------------
Invariant     | NEGATIVE_TOTAL_IMPORTED   | A write would drive total imported < 0
              | CORRUPT_IMPORT_HISTORY    | Import history cannot be trusted
--------------|---------------------------|--------------------------------------
Concurrency   | OPTIMISTIC_LOCK_CONFLICT  | Store version moved under a writer
              | CONCURRENT_MODIFICATION   | Adjustment retries exhausted
--------------|---------------------------|--------------------------------------
Order         | INVALID_ORDER             | Order items fail validation
--------------|---------------------------|--------------------------------------
Product       | DUPLICATE_PRODUCT         | Derived product id already exists
--------------|---------------------------|--------------------------------------
Merge         | PARTIAL_MERGE             | Merge group could not be rolled back

===============================================================================
HANDLING PATTERNS
===============================================================================

1. ConcurrencyError -> retry the whole operation (the ledger was not changed).
2. NotFoundError / InvariantViolationError -> terminal for that item; bulk
   operations report them in their ``failures`` list instead of raising.
3. Stock flooring at zero is POLICY, not an error -- nothing is raised.
4. PartialMergeError -> stop and investigate: a duplicate group is half
   merged and the ledger needs manual attention.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Lookup failures


class NotFoundError(InventoryKernelError):
    """Base exception for a referenced entity that does not exist."""

    code: str = "NOT_FOUND"


class ProductNotFoundError(NotFoundError):
    """Product with given id was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class OrderNotFoundError(NotFoundError):
    """Order with given id was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


# Ledger invariant exceptions


class InvariantViolationError(InventoryKernelError):
    """
    Base exception for a write that would break the stock invariants.

    These indicate a bug upstream and are rejected, never clamped.
    """

    code: str = "INVARIANT_VIOLATION"


class NegativeTotalImportedError(InvariantViolationError):
    """A write would drive total imported below zero."""

    code: str = "NEGATIVE_TOTAL_IMPORTED"

    def __init__(self, product_id: str, total_imported: int):
        self.product_id = product_id
        self.total_imported = total_imported
        super().__init__(
            f"Total imported for product {product_id} would become "
            f"{total_imported}"
        )


class CorruptImportHistoryError(InvariantViolationError):
    """The import history of a product cannot be trusted."""

    code: str = "CORRUPT_IMPORT_HISTORY"

    def __init__(self, product_id: str, reason: str):
        self.product_id = product_id
        self.reason = reason
        super().__init__(f"Corrupt import history for product {product_id}: {reason}")


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected by the store."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class ConcurrentModificationError(ConcurrencyError):
    """
    Retries of a serialized read-modify-write were exhausted.

    Nothing was written; the caller may retry the whole operation.
    """

    code: str = "CONCURRENT_MODIFICATION"

    def __init__(self, product_id: str, attempts: int):
        self.product_id = product_id
        self.attempts = attempts
        super().__init__(
            f"Product {product_id} kept changing underneath the adjustment "
            f"after {attempts} attempt(s)"
        )


# Order exceptions


class OrderError(InventoryKernelError):
    """Base exception for order-related errors."""

    code: str = "ORDER_ERROR"


class InvalidOrderError(OrderError):
    """Order content fails validation."""

    code: str = "INVALID_ORDER"

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Invalid order {order_id}: {reason}")


# Product exceptions


class ProductError(InventoryKernelError):
    """Base exception for product catalogue errors."""

    code: str = "PRODUCT_ERROR"


class DuplicateProductError(ProductError):
    """The id derived from a product name is already taken."""

    code: str = "DUPLICATE_PRODUCT"

    def __init__(self, product_id: str, name: str):
        self.product_id = product_id
        self.name = name
        super().__init__(
            f"Product {product_id} already exists for name {name!r}; "
            "pass force=True to create a separate record"
        )


# Merge exceptions


class MergeError(InventoryKernelError):
    """Base exception for duplicate-merge errors."""

    code: str = "MERGE_ERROR"


class PartialMergeError(MergeError):
    """
    A duplicate group failed and could not be rolled back.

    The group is left half merged: some orders may point at the survivor
    while a losing duplicate still holds stock.
    """

    code: str = "PARTIAL_MERGE"

    def __init__(self, group_key: str, survivor_id: str, reason: str):
        self.group_key = group_key
        self.survivor_id = survivor_id
        self.reason = reason
        super().__init__(
            f"Merge of group {group_key!r} into {survivor_id} is partially "
            f"applied and could not be rolled back: {reason}"
        )
