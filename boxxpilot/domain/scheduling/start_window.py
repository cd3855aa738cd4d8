"""
Start-window gate

Decides whether a field operative may start a job right now. Pure: no
locks, no I/O. Called on every UI refresh and again server-side before
every start transition.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ...config import START_EARLY_WINDOW_MINUTES, START_LATE_WINDOW_MINUTES

EARLY_WINDOW = timedelta(minutes=START_EARLY_WINDOW_MINUTES)
LATE_WINDOW = timedelta(minutes=START_LATE_WINDOW_MINUTES)


class StartVerdict:
    ALLOWED = "ALLOWED"
    TOO_EARLY = "TOO_EARLY"
    TOO_LATE = "TOO_LATE"


@dataclass(frozen=True)
class StartWindow:
    verdict: str
    now: datetime
    scheduled_start: datetime
    opens_at: datetime
    closes_at: datetime

    @property
    def allowed(self) -> bool:
        return self.verdict == StartVerdict.ALLOWED

    @property
    def seconds_until_start(self) -> int:
        """Countdown to the scheduled start; negative once it has passed"""
        return int((self.scheduled_start - self.now).total_seconds())

    @property
    def seconds_until_open(self) -> int:
        return max(0, int((self.opens_at - self.now).total_seconds()))


def can_start(
    now: datetime,
    scheduled_start: datetime,
    early_window: timedelta = EARLY_WINDOW,
    late_window: timedelta = LATE_WINDOW,
) -> str:
    """Return ALLOWED, TOO_EARLY or TOO_LATE; both window edges are inclusive"""
    if now < scheduled_start - early_window:
        return StartVerdict.TOO_EARLY
    if now > scheduled_start + late_window:
        return StartVerdict.TOO_LATE
    return StartVerdict.ALLOWED


def evaluate_start_window(
    now: datetime,
    scheduled_start: Optional[datetime],
    early_window: timedelta = EARLY_WINDOW,
    late_window: timedelta = LATE_WINDOW,
) -> Optional[StartWindow]:
    """Gate verdict plus the window edges, or None when no start is scheduled"""
    if scheduled_start is None:
        return None

    return StartWindow(
        verdict=can_start(now, scheduled_start, early_window, late_window),
        now=now,
        scheduled_start=scheduled_start,
        opens_at=scheduled_start - early_window,
        closes_at=scheduled_start + late_window,
    )
