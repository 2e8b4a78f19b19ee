"""
Clock -- where document timestamps come from.

Responsibility:
    DocumentService stamps ``completed_at`` on validation and
    ``cancelled_at`` on cancellation, and every movement it writes carries
    the same ``occurred_at`` as the validation that wrote it.  All three
    read one injected Clock, so a validation's document and its movements
    agree to the microsecond and tests can pin the value.

Architecture position:
    Kernel > Domain.  SystemClock is the only place the kernel reads wall
    time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock pinned at ``start`` (2024-01-01 12:00 UTC unless given).

    Time only moves through ``advance()``, so a test can place a
    cancellation or validation at an exact instant.
    """

    START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        if start is not None and start.tzinfo is None:
            raise ValueError("DeterministicClock needs a timezone-aware start")
        self._current = start or self.START

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current
