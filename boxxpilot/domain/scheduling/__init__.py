"""Scheduling domain - start-window gate and job timers"""

from .start_window import StartVerdict, StartWindow, can_start, evaluate_start_window
from .timer import JobTimerRegistry, TimerHandle, TimerReading, TimerSessions

__all__ = [
    "StartVerdict",
    "StartWindow",
    "can_start",
    "evaluate_start_window",
    "JobTimerRegistry",
    "TimerHandle",
    "TimerReading",
    "TimerSessions",
]
