"""
Subscription registry -- change notifications for store collections.

Responsibility:
    Keeps the callbacks registered per collection and dispatches a
    ChangeNotification to each of them after a store write or delete has
    been committed.

Rules:
    - Multiple subscribers per collection; the same callable at most once.
    - A failing subscriber is logged and reported; it never breaks the
      dispatch to the others and never fails the write that triggered it.
    - Thread-safe; dispatch iterates a snapshot of the subscriber list so a
      callback may unsubscribe itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any, Callable

from inventory_kernel.domain.ledger import Collection
from inventory_kernel.logging_config import get_logger

logger = get_logger("store.subscriptions")


class ChangeKind(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeNotification:
    """What changed in a collection. ``entity`` is None for deletes."""

    collection: Collection
    entity_id: str
    kind: ChangeKind
    entity: Any = None


ChangeCallback = Callable[[ChangeNotification], None]


@dataclass
class DispatchResult:
    notified: int = 0
    failed: int = 0
    failures: list[dict] = field(default_factory=list)


class SubscriptionRegistry:
    """In-memory registry of change subscribers, keyed by collection."""

    def __init__(self):
        self._subscribers: dict[Collection, list[ChangeCallback]] = {}
        self._lock = Lock()

    def subscribe(self, collection: Collection, callback: ChangeCallback) -> Callable[[], None]:
        """
        Register ``callback`` for changes to ``collection``.

        Returns:
            A zero-argument function that removes the subscription.

        Raises:
            TypeError: If ``callback`` is not callable.
        """
        if not callable(callback):
            raise TypeError(f"Subscriber must be callable, got {type(callback)}")
        collection = Collection(collection)

        with self._lock:
            callbacks = self._subscribers.setdefault(collection, [])
            if not any(existing is callback for existing in callbacks):
                callbacks.append(callback)

        logger.debug(
            "subscriber_registered",
            extra={
                "collection": collection.value,
                "subscriber": getattr(callback, "__qualname__", str(callback)),
            },
        )

        def _unsubscribe() -> None:
            with self._lock:
                current = self._subscribers.get(collection, [])
                self._subscribers[collection] = [c for c in current if c is not callback]

        return _unsubscribe

    def subscriber_count(self, collection: Collection) -> int:
        with self._lock:
            return len(self._subscribers.get(Collection(collection), []))

    def dispatch(self, notification: ChangeNotification) -> DispatchResult:
        """Deliver ``notification`` to every subscriber of its collection."""
        with self._lock:
            callbacks = list(self._subscribers.get(notification.collection, []))

        result = DispatchResult()
        for callback in callbacks:
            name = getattr(callback, "__qualname__", str(callback))
            try:
                callback(notification)
                result.notified += 1
            except Exception as exc:
                result.failed += 1
                result.failures.append(
                    {"subscriber": name, "error": str(exc), "error_type": type(exc).__name__}
                )
                logger.error(
                    "subscriber_failed",
                    extra={
                        "collection": notification.collection.value,
                        "entity_id": notification.entity_id,
                        "subscriber": name,
                    },
                    exc_info=True,
                )
        return result
