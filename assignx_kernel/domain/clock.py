"""
Injected time source.

Services never read the wall clock themselves: submission timestamps,
urgency tiers, auto-approval deadlines and ledger entry times all come
from the ``Clock`` handed to them.  The auto-approval sweep is therefore
testable by moving a ``DeterministicClock`` past ``auto_approve_at``.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """Source of timezone-aware UTC timestamps."""

    @abstractmethod
    def now_utc(self) -> datetime:
        ...


class SystemClock(Clock):

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Frozen clock for tests; time moves only through ``advance_hours``."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def now_utc(self) -> datetime:
        return self._now.astimezone(timezone.utc)

    def advance_hours(self, hours: float) -> None:
        self._now += timedelta(hours=hours)
