"""Job router - FastAPI endpoints for the job lifecycle"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_session_key, require_roles
from ...clock import Clock, get_clock
from ...database import get_db
from ...models import Job, JobStatus, Role, User
from ...services.notification_service import NotificationEmitter, get_notification_emitter
from ..scheduling.start_window import StartWindow, evaluate_start_window
from ..scheduling.timer import JobTimerRegistry
from .schemas import (
    AssignEmployeeRequest,
    AvailableEmployee,
    CrewMember,
    JobResponse,
    JobStatusUpdate,
    StartWindowResponse,
    TimerResponse,
)
from .service import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])

office_only = require_roles(Role.OWNER, Role.DISPATCHER)


def get_timer_registry(
    request: Request, session_key: str = Depends(get_session_key)
) -> JobTimerRegistry:
    """The calling session's timer registry"""
    return request.app.state.timer_sessions.registry_for(session_key)


def get_job_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
    timers: JobTimerRegistry = Depends(get_timer_registry),
) -> JobService:
    """Dependency injection for JobService"""
    return JobService(db, clock=clock, emitter=emitter, timers=timers)


def window_to_response(window: Optional[StartWindow]) -> Optional[StartWindowResponse]:
    if window is None:
        return None
    return StartWindowResponse(
        verdict=window.verdict,
        canStart=window.allowed,
        now=window.now,
        scheduledStart=window.scheduled_start,
        opensAt=window.opens_at,
        closesAt=window.closes_at,
        secondsUntilStart=window.seconds_until_start,
        secondsUntilOpen=window.seconds_until_open,
    )


def job_to_response(job: Job, now: Optional[datetime] = None) -> JobResponse:
    quotation = job.quotation
    customer = quotation.customer if quotation else None

    # The countdown only matters while the job is waiting to be started
    window = None
    if now is not None and job.status == JobStatus.CONFIRMED:
        window = window_to_response(evaluate_start_window(now, job.scheduled_start_at))

    return JobResponse(
        id=job.id,
        jobNumber=job.job_number,
        status=job.status,
        title=job.title,
        quotationId=job.quotation_id,
        quoteNumber=quotation.quote_number if quotation else None,
        customerName=customer.full_name if customer else None,
        pickupAddress=quotation.pickup_address if quotation else None,
        dropoffAddress=quotation.dropoff_address if quotation else None,
        scheduledStart=job.scheduled_start_at,
        scheduledEnd=job.scheduled_end_at,
        allottedSeconds=job.allotted_seconds,
        actualStart=job.actual_start_at,
        actualEnd=job.actual_end_at,
        confirmedAt=job.confirmed_at,
        cancelledAt=job.cancelled_at,
        resolution=job.resolution,
        crew=[
            CrewMember(
                employeeId=assignment.employee_id,
                fullName=assignment.employee.full_name if assignment.employee else "",
                role=assignment.role,
            )
            for assignment in job.assignments
        ],
        startWindow=window,
    )


# ============================================================================
# QUERIES
# ============================================================================


@router.get("", response_model=list[JobResponse])
async def list_jobs(
    status: Optional[str] = Query(None, description="Filter by job status"),
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Get the company's jobs ordered by scheduled start"""
    now = service.clock.now()
    return [job_to_response(job, now) for job in service.list_jobs(current_user, status)]


@router.delete("/timers")
async def end_timer_session(
    request: Request,
    session_key: str = Depends(get_session_key),
    current_user: User = Depends(get_current_user),
):
    """Release every timer held by the calling session (logout, app closed)"""
    request.app.state.timer_sessions.end_session(session_key)
    return {"message": "Timers released"}


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    return job_to_response(service.get_job(job_id, current_user), service.clock.now())


@router.get("/{job_id}/start-window", response_model=Optional[StartWindowResponse])
async def get_start_window(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Server-side gate evaluation; null when the job has no scheduled start"""
    job = service.get_job(job_id, current_user)
    return window_to_response(service.start_window(job))


# ============================================================================
# TRANSITIONS
# ============================================================================


@router.post("/{job_id}/confirm", response_model=JobResponse)
async def confirm_job(
    job_id: int,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    return job_to_response(service.confirm(job_id, current_user), service.clock.now())


@router.post("/{job_id}/deny", response_model=JobResponse)
async def deny_job(
    job_id: int,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    return job_to_response(service.deny(job_id, current_user), service.clock.now())


@router.patch("/{job_id}/status", response_model=JobResponse)
async def update_job_status(
    job_id: int,
    data: JobStatusUpdate,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    """Confirm or cancel a pending job from the dispatcher list"""
    return job_to_response(service.set_status(job_id, data.status, current_user), service.clock.now())


@router.post("/{job_id}/start", response_model=JobResponse)
async def start_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Start the job if the start window is open"""
    return job_to_response(service.start(job_id, current_user), service.clock.now())


@router.post("/{job_id}/end", response_model=JobResponse)
async def end_job(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    return job_to_response(service.end(job_id, current_user), service.clock.now())


# ============================================================================
# TIMER
# ============================================================================


@router.get("/{job_id}/timer", response_model=TimerResponse)
async def get_job_timer(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Attach (or reattach) to the job's timer and read it"""
    job = service.get_job(job_id, current_user)
    if job.status != JobStatus.IN_PROGRESS:
        # Job left IN_PROGRESS elsewhere (ended, swept); drop the stale timer
        service.timers.detach(job.id)

    reading = service.timers.attach(job.id, job).tick()
    return TimerResponse(
        jobId=reading.job_id,
        startedAt=reading.started_at,
        totalSeconds=reading.total_seconds,
        elapsedSeconds=reading.elapsed_seconds,
        remainingSeconds=reading.remaining_seconds,
        signedRemainingSeconds=reading.signed_remaining_seconds,
        overrunSeconds=reading.overrun_seconds,
        overrun=reading.overrun,
        display=reading.display,
    )


@router.delete("/{job_id}/timer")
async def detach_job_timer(
    job_id: int,
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Release this session's timer for the job"""
    service.get_job(job_id, current_user)
    return {"detached": service.timers.detach(job_id)}


# ============================================================================
# CREW
# ============================================================================


@router.get("/{job_id}/available-employees", response_model=list[AvailableEmployee])
async def get_available_employees(
    job_id: int,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    """Company employees flagged with conflicts over the job's window"""
    return service.available_employees(job_id, current_user)


@router.post("/{job_id}/employees", response_model=JobResponse)
async def assign_employee(
    job_id: int,
    data: AssignEmployeeRequest,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    service.assign_employee(job_id, data.employeeId, data.role, current_user)
    return job_to_response(service.get_job(job_id, current_user), service.clock.now())


@router.delete("/{job_id}/employees/{employee_id}", response_model=JobResponse)
async def unassign_employee(
    job_id: int,
    employee_id: int,
    current_user: User = Depends(office_only),
    service: JobService = Depends(get_job_service),
):
    service.unassign_employee(job_id, employee_id, current_user)
    return job_to_response(service.get_job(job_id, current_user), service.clock.now())
