"""
BaseService -- abstract base for all ledger services.

Responsibility:
    Provides the common constructor for every service in the kernel layer.
    All concrete services inherit from BaseService, receiving the
    ``LedgerStore`` they read and write through, the ``LedgerSettings``
    that govern policy choices, and the ``Clock`` that stamps records.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Services never persist anything except through the store, and never
      call ``datetime.now()``; time comes from the injected clock.
    - Services never read configuration files; settings are injected
      (``inventory_config.get_active_config()`` at the composition root).
"""

from abc import ABC

from inventory_config.schema import LedgerSettings
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.store.base import LedgerStore


class BaseService(ABC):
    """
    Abstract base class for all ledger services.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``inventory_kernel/selectors/``.
    """

    def __init__(
        self,
        store: LedgerStore,
        settings: LedgerSettings | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            store: Ledger store for all reads and writes.
            settings: Ledger settings; shipped defaults when omitted.
            clock: Time source; UTC system time when omitted.
        """
        self.store = store
        self.settings = settings or LedgerSettings()
        self.clock = clock or SystemClock()
