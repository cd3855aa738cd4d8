"""Job repository - Database operations for jobs"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ...config import FIRST_SEQUENCE_NUMBER
from ...models import Job, JobAssignment, JobStatus, Quotation

logger = logging.getLogger(__name__)

# Attempts at claiming the next job number before giving up
NUMBERING_ATTEMPTS = 5


class JobRepository:
    """Repository for job database operations"""

    @staticmethod
    def get_job(db: Session, job_id: int, company_id: Optional[int] = None) -> Optional[Job]:
        query = db.query(Job).options(
            joinedload(Job.quotation).joinedload(Quotation.customer),
            joinedload(Job.assignments).joinedload(JobAssignment.employee),
        )
        query = query.filter(Job.id == job_id)
        if company_id is not None:
            query = query.filter(Job.company_id == company_id)
        return query.first()

    @staticmethod
    def get_job_by_quotation(db: Session, quotation_id: int) -> Optional[Job]:
        return db.query(Job).filter(Job.quotation_id == quotation_id).first()

    @staticmethod
    def list_jobs(db: Session, company_id: int, status: Optional[str] = None) -> list[Job]:
        query = (
            db.query(Job)
            .options(joinedload(Job.quotation).joinedload(Quotation.customer))
            .filter(Job.company_id == company_id)
        )
        if status:
            query = query.filter(Job.status == status)
        return query.order_by(Job.scheduled_start_at.asc(), Job.job_number.asc()).all()

    @staticmethod
    def list_jobs_between(
        db: Session, company_id: int, start: datetime, end: datetime
    ) -> list[Job]:
        return (
            db.query(Job)
            .options(joinedload(Job.quotation).joinedload(Quotation.customer))
            .filter(
                Job.company_id == company_id,
                Job.scheduled_start_at >= start,
                Job.scheduled_start_at < end,
            )
            .order_by(Job.scheduled_start_at.asc())
            .all()
        )

    @staticmethod
    def count_by_status(db: Session, company_id: int) -> dict:
        rows = (
            db.query(Job.status, func.count(Job.id))
            .filter(Job.company_id == company_id)
            .group_by(Job.status)
            .all()
        )
        return {status: count for status, count in rows}

    @staticmethod
    def next_job_number(db: Session, company_id: int) -> int:
        last = db.query(func.max(Job.job_number)).filter(Job.company_id == company_id).scalar()
        return last + 1 if last else FIRST_SEQUENCE_NUMBER

    @staticmethod
    def create_for_quotation(db: Session, quotation: Quotation, title: str) -> Job:
        """
        Create the PENDING job for a quotation, or return the one that exists.

        The unique quotation_id makes creation idempotent; the unique
        (company_id, job_number) pair makes concurrent numbering retry.
        """
        for attempt in range(NUMBERING_ATTEMPTS):
            existing = JobRepository.get_job_by_quotation(db, quotation.id)
            if existing:
                return existing

            allotted = (
                int(quotation.estimated_hours * 3600) if quotation.estimated_hours else None
            )
            job = Job(
                company_id=quotation.company_id,
                quotation_id=quotation.id,
                job_number=JobRepository.next_job_number(db, quotation.company_id),
                title=title,
                status=JobStatus.PENDING,
                scheduled_start_at=quotation.start_at,
                scheduled_end_at=quotation.end_at,
                allotted_seconds=allotted,
            )
            db.add(job)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                logger.warning(
                    f"⚠️ Job creation collided for quotation {quotation.id} (attempt {attempt + 1})"
                )
                continue
            db.refresh(job)
            return job

        raise RuntimeError(f"Could not allocate a job number for quotation {quotation.id}")

    @staticmethod
    def transition(
        db: Session, job_id: int, expected_status: str, new_status: str, **values
    ) -> bool:
        """
        Compare-and-swap on status: the update applies only while the row is
        still in expected_status. Returns False when another writer won.
        """
        result = db.execute(
            update(Job)
            .where(Job.id == job_id, Job.status == expected_status)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    @staticmethod
    def find_missed_candidates(db: Session, now: datetime) -> list[int]:
        """Confirmed jobs whose scheduled end passed without a start"""
        rows = (
            db.query(Job.id)
            .filter(
                Job.status == JobStatus.CONFIRMED,
                Job.actual_start_at.is_(None),
                Job.scheduled_end_at.isnot(None),
                Job.scheduled_end_at < now,
            )
            .order_by(Job.scheduled_end_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def find_auto_end_candidates(db: Session, now: datetime, grace: timedelta) -> list[int]:
        """In-progress jobs still open after scheduled end plus grace"""
        rows = (
            db.query(Job.id)
            .filter(
                Job.status == JobStatus.IN_PROGRESS,
                Job.scheduled_end_at.isnot(None),
                Job.scheduled_end_at < now - grace,
            )
            .order_by(Job.scheduled_end_at.asc())
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_assignment(db: Session, job_id: int, employee_id: int) -> Optional[JobAssignment]:
        return (
            db.query(JobAssignment)
            .filter(JobAssignment.job_id == job_id, JobAssignment.employee_id == employee_id)
            .first()
        )
