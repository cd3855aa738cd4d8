"""
Automated status transitions for jobs and quotations
Forces terminal states on work whose time window lapsed unattended:
- Jobs: CONFIRMED → MISSED (scheduled end passed without a start)
- Jobs: IN_PROGRESS → AUTO_ENDED (scheduled end plus grace passed without an end)
- Quotations: SENT → EXPIRED (validity window ran out)
"""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..clock import Clock, system_clock
from ..config import AUTO_END_GRACE_MINUTES
from ..domain.jobs.repository import JobRepository
from ..domain.quotations.service import QuotationService
from ..models import Job, JobStatus, Role
from .notification_service import NotificationEmitter, NotificationType, emit

logger = logging.getLogger(__name__)

SWEEP_RESOLUTION = "SWEEP"


def _force_transition(
    db: Session,
    job_id: int,
    expected: str,
    new: str,
    now,
    notification_type: str,
    emitter: Optional[NotificationEmitter],
    summary: dict,
    counter: str,
) -> None:
    """One conditional update; a lost race or a database error only skips this job"""
    try:
        if not JobRepository.transition(
            db, job_id, expected, new, actual_end_at=now, resolution=SWEEP_RESOLUTION
        ):
            summary["skipped"] += 1
            logger.info(f"⚠️ Job {job_id} left {expected} before the sweep reached it, skipped")
            return

        summary[counter] += 1
        job = db.get(Job, job_id)
        logger.info(f"✅ Job {job_id} transitioned: {expected} → {new}")
        emit(
            emitter,
            notification_type,
            job.company_id,
            job.id,
            Role.OWNER,
            message=f"Job #{job.job_number} ({job.title}) was marked {new.replace('_', ' ').lower()}",
        )
    except Exception as e:
        db.rollback()
        summary["failed"] += 1
        logger.error(f"❌ Sweep failed on job {job_id} ({expected} → {new}): {str(e)}")


def run_auto_resolution_sweep(
    db: Session,
    clock: Clock = None,
    emitter: Optional[NotificationEmitter] = None,
    grace: Optional[timedelta] = None,
) -> dict:
    """
    Single pass of the auto-resolution sweep.
    Should be run on a fixed interval (worker cron); safe to re-run at any
    time because every transition is conditional on the source state.

    Returns:
        dict: Summary of transitions made, skipped and failed
    """
    clock = clock or system_clock
    grace = grace if grace is not None else timedelta(minutes=AUTO_END_GRACE_MINUTES)

    summary = {
        "missed": 0,
        "auto_ended": 0,
        "quotations_expired": 0,
        "skipped": 0,
        "failed": 0,
    }
    now = clock.now()

    # 1. CONFIRMED → MISSED
    try:
        missed_candidates = JobRepository.find_missed_candidates(db, now)
    except Exception as e:
        db.rollback()
        missed_candidates = []
        summary["failed"] += 1
        logger.error(f"❌ Could not load missed-job candidates: {str(e)}")

    for job_id in missed_candidates:
        _force_transition(
            db,
            job_id,
            JobStatus.CONFIRMED,
            JobStatus.MISSED,
            now,
            NotificationType.JOB_MISSED,
            emitter,
            summary,
            "missed",
        )

    # 2. IN_PROGRESS → AUTO_ENDED
    try:
        auto_end_candidates = JobRepository.find_auto_end_candidates(db, now, grace)
    except Exception as e:
        db.rollback()
        auto_end_candidates = []
        summary["failed"] += 1
        logger.error(f"❌ Could not load auto-end candidates: {str(e)}")

    for job_id in auto_end_candidates:
        _force_transition(
            db,
            job_id,
            JobStatus.IN_PROGRESS,
            JobStatus.AUTO_ENDED,
            now,
            NotificationType.JOB_AUTO_ENDED,
            emitter,
            summary,
            "auto_ended",
        )

    # 3. SENT → EXPIRED
    quotations = QuotationService(db, clock, emitter)
    try:
        expired_candidates = quotations.repo.find_expired_candidates(db, now)
    except Exception as e:
        db.rollback()
        expired_candidates = []
        summary["failed"] += 1
        logger.error(f"❌ Could not load expired-quotation candidates: {str(e)}")

    for quotation_id in expired_candidates:
        try:
            if quotations.expire_quotation(quotation_id):
                summary["quotations_expired"] += 1
            else:
                summary["skipped"] += 1
        except Exception as e:
            db.rollback()
            summary["failed"] += 1
            logger.error(f"❌ Sweep failed to expire quotation {quotation_id}: {str(e)}")

    if any(summary.values()):
        logger.info(f"Auto-resolution sweep complete: {summary}")
    return summary
