"""
Clock -- injectable time source for ledger timestamps.

Responsibility:
    Import record dates, ``last_import_date``, order ``created_at`` /
    ``updated_at`` and merge timestamps all come from an injected Clock, so
    services never call ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    - Every instant a Clock hands out is timezone-aware UTC, matching what
      the SQL store persists.

Failure modes:
    - ValueError: a naive datetime given to DeterministicClock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value.astimezone(timezone.utc)


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services that stamp ledger records receive a Clock via constructor
        injection.

    Guarantees:
        - ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock that returns actual UTC system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at a fixed instant, for tests and replays.

    Records stamped between two moves of the clock share a timestamp, so
    ordering by date (order history, batch summaries, merge survivors) is
    always set up explicitly with ``advance`` or ``set_time``.
    """

    DEFAULT_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._now = _as_utc(fixed_time or self.DEFAULT_TIME)

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = _as_utc(time)

    def advance(self, step: timedelta | int = 1) -> datetime:
        """Move forward by ``step`` (a timedelta, or whole seconds) and return the new time."""
        if not isinstance(step, timedelta):
            step = timedelta(seconds=step)
        self._now += step
        return self._now

    def tick(self) -> datetime:
        """Advance by one second."""
        return self.advance(1)
