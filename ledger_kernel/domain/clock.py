"""
Time source for ledger timestamps.

Journal entries, invoices, payments, bank transactions and audit rows are
stamped from a Clock handed to the service constructor.  Production uses
SystemClock; tests pin time with DeterministicClock so that listings ordered
by posted_at and period-basis reports are reproducible.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

LEDGER_EPOCH = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


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
    Clock that only moves when told to.

    Repeated ``now()`` calls return the same instant, so two postings made
    without an ``advance()`` between them share a posted_at.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = as_utc(fixed_time) if fixed_time else LEDGER_EPOCH

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = as_utc(moment)

    def advance(self, seconds: float = 1) -> datetime:
        """Move forward by ``seconds`` and return the new instant."""
        self._current += timedelta(seconds=seconds)
        return self._current
