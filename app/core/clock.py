"""
Clock abstraction so time-derived logic (reminders, lifecycle timestamps)
can be driven deterministically in tests.

All instants are naive local wall-clock datetimes, matching how
appointments are booked (local date + "HH:MM").
"""
import datetime
from typing import Optional


class Clock:
    """Wall clock"""

    def now(self) -> datetime.datetime:
        return datetime.datetime.now().replace(microsecond=0)

    def today(self) -> datetime.date:
        return self.now().date()


class FrozenClock(Clock):
    """Clock that only moves when told to"""

    def __init__(self, current: Optional[datetime.datetime] = None):
        self.current = current or datetime.datetime.now().replace(microsecond=0)

    def now(self) -> datetime.datetime:
        return self.current

    def set(self, current: datetime.datetime) -> None:
        self.current = current

    def advance(self, **delta) -> datetime.datetime:
        """advance(minutes=5) / advance(seconds=60)"""
        self.current = self.current + datetime.timedelta(**delta)
        return self.current


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency; overridden in tests"""
    return system_clock
