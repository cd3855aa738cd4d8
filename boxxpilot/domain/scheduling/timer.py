"""
Job timer

Display-only elapsed/remaining countdown for in-progress jobs. A timer is
anchored to the job's persisted actual start instant and every tick is
recomputed from that anchor, so missed ticks (backgrounded app, dropped
connection) never cause drift.

Registries belong to a session. TimerSessions hands each session its own
registry so that timers never leak between users.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from ...clock import Clock, system_clock
from ...errors import InvalidStateError, NotFoundError
from ...models import Job, JobStatus

logger = logging.getLogger(__name__)


def allotted_seconds_for(job: Job) -> int:
    """Allotted duration: stored allotment, else scheduled end minus start"""
    if job.allotted_seconds and job.allotted_seconds > 0:
        return int(job.allotted_seconds)

    if job.scheduled_start_at and job.scheduled_end_at:
        return max(0, int((job.scheduled_end_at - job.scheduled_start_at).total_seconds()))

    return 0


def format_duration(seconds: int) -> str:
    """HH:MM:SS, with a leading '-' for negative durations"""
    abs_seconds = abs(int(seconds))
    h = abs_seconds // 3600
    m = (abs_seconds % 3600) // 60
    s = abs_seconds % 60
    text = f"{h:02d}:{m:02d}:{s:02d}"
    return f"-{text}" if seconds < 0 else text


@dataclass(frozen=True)
class TimerReading:
    job_id: int
    started_at: datetime
    total_seconds: int
    elapsed_seconds: int
    remaining_seconds: int
    signed_remaining_seconds: int
    overrun_seconds: int

    @property
    def overrun(self) -> bool:
        return self.overrun_seconds > 0

    @property
    def display(self) -> str:
        return format_duration(self.signed_remaining_seconds)


class TimerHandle:
    def __init__(self, job_id: int, started_at: datetime, total_seconds: int, clock: Clock):
        self.job_id = job_id
        self.started_at = started_at
        self.total_seconds = total_seconds
        self._clock = clock

    def tick(self) -> TimerReading:
        now = self._clock.now()
        elapsed = max(0, int((now - self.started_at).total_seconds()))
        signed_remaining = self.total_seconds - elapsed

        return TimerReading(
            job_id=self.job_id,
            started_at=self.started_at,
            total_seconds=self.total_seconds,
            elapsed_seconds=elapsed,
            remaining_seconds=max(0, signed_remaining),
            signed_remaining_seconds=signed_remaining,
            overrun_seconds=max(0, -signed_remaining),
        )


class JobTimerRegistry:
    """Timers of one session, keyed by job id"""

    def __init__(self, job_loader: Optional[Callable[[int], Optional[Job]]] = None, clock: Clock = None):
        self._job_loader = job_loader
        self._clock = clock or system_clock
        self._timers: Dict[int, TimerHandle] = {}
        self._lock = threading.Lock()

    def attach(self, job_id: int, job: Optional[Job] = None) -> TimerHandle:
        """Return the job's timer, creating it from the job's start anchor if needed"""
        with self._lock:
            handle = self._timers.get(job_id)
            if handle:
                return handle

        if job is None:
            if self._job_loader is None:
                raise NotFoundError("Job not found", jobId=job_id)
            job = self._job_loader(job_id)
        if not job:
            raise NotFoundError("Job not found", jobId=job_id)
        if job.status != JobStatus.IN_PROGRESS or not job.actual_start_at:
            raise InvalidStateError(
                "Job timer is only available while the job is in progress",
                jobId=job_id,
                status=job.status,
            )

        with self._lock:
            # Another caller may have attached while the job was loading
            handle = self._timers.get(job_id)
            if handle is None:
                handle = TimerHandle(
                    job_id=job_id,
                    started_at=job.actual_start_at,
                    total_seconds=allotted_seconds_for(job),
                    clock=self._clock,
                )
                self._timers[job_id] = handle
                logger.debug(f"Timer attached for job {job_id}")
            return handle

    def get(self, job_id: int) -> Optional[TimerHandle]:
        with self._lock:
            return self._timers.get(job_id)

    def tick(self, job_id: int) -> TimerReading:
        return self.attach(job_id).tick()

    def detach(self, job_id: int) -> bool:
        with self._lock:
            removed = self._timers.pop(job_id, None)
        if removed:
            logger.debug(f"Timer detached for job {job_id}")
        return removed is not None

    def clear(self) -> None:
        with self._lock:
            self._timers.clear()

    def __contains__(self, job_id: int) -> bool:
        with self._lock:
            return job_id in self._timers

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)


class TimerSessions:
    """Per-session timer registries"""

    def __init__(self, clock: Clock = None):
        self._clock = clock or system_clock
        self._registries: Dict[str, JobTimerRegistry] = {}
        self._lock = threading.Lock()

    def registry_for(self, session_key: str) -> JobTimerRegistry:
        with self._lock:
            registry = self._registries.get(session_key)
            if registry is None:
                registry = JobTimerRegistry(clock=self._clock)
                self._registries[session_key] = registry
            return registry

    def end_session(self, session_key: str) -> None:
        with self._lock:
            registry = self._registries.pop(session_key, None)
        if registry:
            registry.clear()
            logger.info(f"Released timers for session {session_key[:8]}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._registries)
