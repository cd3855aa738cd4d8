"""
Calendar view of scheduled jobs
"""

from datetime import date

from fastapi import APIRouter, Depends, Query

from ..auth import get_current_user
from ..domain.jobs.router import get_job_service, job_to_response
from ..domain.jobs.schemas import CalendarDay
from ..domain.jobs.service import JobService
from ..models import User

router = APIRouter(prefix="/calendar", tags=["Calendar"])


@router.get("", response_model=CalendarDay)
async def get_calendar_day(
    day: date = Query(..., alias="date", description="Day to show (YYYY-MM-DD)"),
    current_user: User = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
):
    """Jobs whose scheduled start falls on the given day"""
    now = service.clock.now()
    jobs = service.jobs_on(current_user, day)
    return CalendarDay(date=day.isoformat(), jobs=[job_to_response(job, now) for job in jobs])
