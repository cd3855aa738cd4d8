"""Job domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class StartWindowResponse(BaseModel):
    """Gate evaluation the job screen renders as a countdown"""

    verdict: str
    canStart: bool
    now: datetime
    scheduledStart: datetime
    opensAt: datetime
    closesAt: datetime
    secondsUntilStart: int
    secondsUntilOpen: int


class CrewMember(BaseModel):
    employeeId: int
    fullName: str
    role: str


class JobResponse(BaseModel):
    """Job projection returned by every status endpoint"""

    id: int
    jobNumber: int
    status: str
    title: Optional[str] = None
    quotationId: Optional[int] = None
    quoteNumber: Optional[int] = None
    customerName: Optional[str] = None
    pickupAddress: Optional[str] = None
    dropoffAddress: Optional[str] = None
    scheduledStart: Optional[datetime] = None
    scheduledEnd: Optional[datetime] = None
    allottedSeconds: Optional[int] = None
    actualStart: Optional[datetime] = None
    actualEnd: Optional[datetime] = None
    confirmedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    resolution: Optional[str] = None
    crew: list[CrewMember] = []
    startWindow: Optional[StartWindowResponse] = None


class TimerResponse(BaseModel):
    jobId: int
    startedAt: datetime
    totalSeconds: int
    elapsedSeconds: int
    remainingSeconds: int
    signedRemainingSeconds: int
    overrunSeconds: int
    overrun: bool
    display: str


class AvailableEmployee(BaseModel):
    id: int
    fullName: str
    position: Optional[str] = None
    conflict: bool


class AssignEmployeeRequest(BaseModel):
    employeeId: int
    role: Optional[str] = None  # Defaults to the employee's position


class JobStatusUpdate(BaseModel):
    status: str


class CalendarDay(BaseModel):
    date: str
    jobs: list[JobResponse]
