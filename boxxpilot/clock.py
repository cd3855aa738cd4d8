"""
Clock source

Every duration and window computation reads time through a Clock so that
server authority and client display agree on the same UTC instant.
Instants are naive UTC datetimes, matching the DateTime columns.
"""

from datetime import datetime, timedelta, timezone


class Clock:
    """Reads the current UTC instant"""

    def now(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


class FixedClock(Clock):
    """Clock pinned to a settable instant (tests and replay tooling)"""

    def __init__(self, instant: datetime):
        self.instant = instant

    def now(self) -> datetime:
        return self.instant

    def set(self, instant: datetime) -> None:
        self.instant = instant

    def advance(self, **kwargs) -> datetime:
        self.instant = self.instant + timedelta(**kwargs)
        return self.instant


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency for the request clock"""
    return system_clock
