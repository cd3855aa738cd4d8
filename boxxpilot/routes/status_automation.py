"""
API endpoint for status automation and analytics
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_roles
from ..clock import Clock, get_clock
from ..database import get_db
from ..domain.jobs.repository import JobRepository
from ..models import JobStatus, Role, User
from ..services.notification_service import NotificationEmitter, get_notification_emitter
from ..services.status_automation import run_auto_resolution_sweep

router = APIRouter(prefix="/status", tags=["status"])


class StatusSummary(BaseModel):
    pending: int
    confirmed: int
    in_progress: int
    completed: int
    cancelled: int
    auto_ended: int
    missed: int


class AutomationResult(BaseModel):
    missed: int
    auto_ended: int
    quotations_expired: int
    skipped: int
    failed: int
    total_updated: int


@router.get("/analytics", response_model=StatusSummary)
async def get_status_analytics(
    current_user: User = Depends(get_current_user), db: Session = Depends(get_db)
):
    """Get count of jobs by status for the current user's company"""
    counts = JobRepository.count_by_status(db, current_user.company_id)

    # Initialize with zeros
    summary = {status.lower(): 0 for status in JobStatus.ALL}
    for status, count in counts.items():
        if status.lower() in summary:
            summary[status.lower()] = count

    return StatusSummary(**summary)


@router.post("/automation/run", response_model=AutomationResult)
async def run_status_automation(
    current_user: User = Depends(require_roles(Role.OWNER, Role.DISPATCHER)),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
):
    """
    Manually trigger the auto-resolution sweep
    (In production this runs every minute from the arq worker)
    """
    result = run_auto_resolution_sweep(db, clock, emitter)
    total = result["missed"] + result["auto_ended"] + result["quotations_expired"]
    return AutomationResult(**result, total_updated=total)
