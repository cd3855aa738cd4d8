"""Job service - Job state machine and crew assignment"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...clock import Clock, system_clock
from ...config import START_EARLY_WINDOW_MINUTES
from ...errors import (
    AlreadyResolvedError,
    ConflictError,
    InvalidStateError,
    MissingScheduleError,
    NotFoundError,
    NotYetStartable,
    ValidationError,
    WindowLapsed,
)
from ...models import Employee, Job, JobAssignment, JobStatus, Role, User
from ...services.crew_roster import CrewRoster
from ...services.notification_service import NotificationEmitter, NotificationType, emit
from ..scheduling.start_window import StartVerdict, StartWindow, evaluate_start_window
from ..scheduling.timer import JobTimerRegistry
from .repository import JobRepository

logger = logging.getLogger(__name__)


class JobService:
    """Service layer for the job lifecycle"""

    def __init__(
        self,
        db: Session,
        clock: Clock = None,
        emitter: Optional[NotificationEmitter] = None,
        timers: Optional[JobTimerRegistry] = None,
        roster: Optional[CrewRoster] = None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.emitter = emitter
        self.timers = timers
        self.roster = roster or CrewRoster(db)
        self.repo = JobRepository()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_job(self, job_id: int, user: Optional[User] = None) -> Job:
        company_id = user.company_id if user else None
        job = self.repo.get_job(self.db, job_id, company_id)
        if not job:
            raise NotFoundError("Job not found", jobId=job_id)
        return job

    def list_jobs(self, user: User, status: Optional[str] = None) -> list[Job]:
        if status and status not in JobStatus.ALL:
            raise ValidationError(f"Unknown job status: {status}")
        return self.repo.list_jobs(self.db, user.company_id, status)

    def jobs_on(self, user: User, day: datetime) -> list[Job]:
        """Jobs whose scheduled start falls on the given calendar day"""
        start = datetime(day.year, day.month, day.day)
        return self.repo.list_jobs_between(self.db, user.company_id, start, start + timedelta(days=1))

    def start_window(self, job: Job) -> Optional[StartWindow]:
        return evaluate_start_window(self.clock.now(), job.scheduled_start_at)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _transition(self, job: Job, expected: str, new: str, **values) -> Job:
        if not self.repo.transition(self.db, job.id, expected, new, **values):
            self.db.refresh(job)
            logger.warning(
                f"⚠️ Job {job.id} transition {expected} → {new} lost to a concurrent writer "
                f"(now {job.status})"
            )
            raise ConflictError(
                "Job was changed by another request", jobId=job.id, status=job.status
            )
        self.db.refresh(job)
        logger.info(f"✅ Job {job.id} transitioned: {expected} → {new}")
        return job

    def confirm(self, job_id: int, user: Optional[User] = None) -> Job:
        job = self.get_job(job_id, user)
        if job.status != JobStatus.PENDING:
            raise InvalidStateError(
                "Only pending jobs can be confirmed", jobId=job.id, status=job.status
            )

        job = self._transition(
            job, JobStatus.PENDING, JobStatus.CONFIRMED, confirmed_at=self.clock.now()
        )
        emit(self.emitter, NotificationType.JOB_CONFIRMED, job.company_id, job.id, Role.EMPLOYEE)
        return job

    def deny(self, job_id: int, user: Optional[User] = None) -> Job:
        job = self.get_job(job_id, user)
        if job.status != JobStatus.PENDING:
            raise InvalidStateError(
                "Only pending jobs can be denied", jobId=job.id, status=job.status
            )

        job = self._transition(
            job, JobStatus.PENDING, JobStatus.CANCELLED, cancelled_at=self.clock.now()
        )
        emit(self.emitter, NotificationType.JOB_CANCELLED, job.company_id, job.id, Role.OWNER)
        return job

    def set_status(self, job_id: int, status: str, user: Optional[User] = None) -> Job:
        """Dispatcher status change from the job list"""
        if status == JobStatus.CONFIRMED:
            return self.confirm(job_id, user)
        if status == JobStatus.CANCELLED:
            return self.deny(job_id, user)
        raise ValidationError(
            "Status can only be set to CONFIRMED or CANCELLED", requestedStatus=status
        )

    def start(self, job_id: int, user: Optional[User] = None) -> Job:
        job = self.get_job(job_id, user)

        if job.status == JobStatus.IN_PROGRESS:
            # Retry after a dropped acknowledgment; the start instant never moves
            self._attach_timer(job)
            return job
        if job.status != JobStatus.CONFIRMED:
            raise InvalidStateError(
                "Only confirmed jobs can be started", jobId=job.id, status=job.status
            )

        window = self.start_window(job)
        if window is None:
            raise MissingScheduleError("Job has no scheduled start", jobId=job.id)
        if window.verdict == StartVerdict.TOO_EARLY:
            raise NotYetStartable(
                f"Job cannot be started until {START_EARLY_WINDOW_MINUTES} minutes "
                "before its scheduled start",
                jobId=job.id,
                now=window.now,
                opensAt=window.opens_at,
                closesAt=window.closes_at,
                secondsUntilOpen=window.seconds_until_open,
            )
        if window.verdict == StartVerdict.TOO_LATE:
            raise WindowLapsed(
                "The start window for this job has closed",
                jobId=job.id,
                now=window.now,
                opensAt=window.opens_at,
                closesAt=window.closes_at,
            )

        try:
            job = self._transition(
                job,
                JobStatus.CONFIRMED,
                JobStatus.IN_PROGRESS,
                actual_start_at=window.now,
                started_by=user.id if user else None,
            )
        except ConflictError:
            if job.status == JobStatus.IN_PROGRESS:
                self._attach_timer(job)
                return job
            raise
        self._attach_timer(job)
        emit(self.emitter, NotificationType.JOB_STARTED, job.company_id, job.id, Role.OWNER)
        return job

    def end(self, job_id: int, user: Optional[User] = None) -> Job:
        job = self.get_job(job_id, user)

        if job.status == JobStatus.COMPLETED:
            # Idempotent retry: return the stored record, no side effects
            return job
        if job.status in JobStatus.TERMINAL:
            raise AlreadyResolvedError(
                f"Job was already resolved as {job.status}", jobId=job.id, status=job.status
            )
        if job.status != JobStatus.IN_PROGRESS:
            raise InvalidStateError(
                "Only jobs in progress can be ended", jobId=job.id, status=job.status
            )

        try:
            job = self._transition(
                job,
                JobStatus.IN_PROGRESS,
                JobStatus.COMPLETED,
                actual_end_at=self.clock.now(),
                ended_by=user.id if user else None,
                resolution="MANUAL",
            )
        except ConflictError:
            if job.status == JobStatus.COMPLETED:
                # A concurrent retry of the same request completed it first
                if self.timers is not None:
                    self.timers.detach(job.id)
                return job
            raise

        if self.timers is not None:
            self.timers.detach(job.id)
        emit(self.emitter, NotificationType.JOB_COMPLETED, job.company_id, job.id, Role.OWNER)
        return job

    def _attach_timer(self, job: Job) -> None:
        if self.timers is not None:
            self.timers.attach(job.id, job)

    # ------------------------------------------------------------------
    # Crew
    # ------------------------------------------------------------------

    def available_employees(self, job_id: int, user: Optional[User] = None) -> list[dict]:
        job = self.get_job(job_id, user)
        return self.roster.employees_for_job(job)

    def assign_employee(
        self, job_id: int, employee_id: int, role: Optional[str] = None, user: Optional[User] = None
    ) -> JobAssignment:
        job = self.get_job(job_id, user)
        if job.status in JobStatus.TERMINAL:
            raise InvalidStateError(
                "Crew cannot be changed once a job is resolved", jobId=job.id, status=job.status
            )

        employee = (
            self.db.query(Employee)
            .filter(Employee.id == employee_id, Employee.company_id == job.company_id)
            .first()
        )
        if not employee:
            raise NotFoundError("Employee not found", employeeId=employee_id)

        role = role or employee.position or "MOVER"
        assignment = self.repo.get_assignment(self.db, job.id, employee.id)
        if assignment:
            # One role per employee per job: re-posting changes the role
            assignment.role = role
            self.db.commit()
            self.db.refresh(assignment)
            return assignment

        if not self.roster.is_available(
            employee.id, job.scheduled_start_at, job.scheduled_end_at, exclude_job_id=job.id
        ):
            raise ConflictError(
                "Employee is already booked during this job", employeeId=employee.id, jobId=job.id
            )

        assignment = JobAssignment(job_id=job.id, employee_id=employee.id, role=role)
        self.db.add(assignment)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            assignment = self.repo.get_assignment(self.db, job.id, employee.id)
            if not assignment:
                raise
            return assignment
        self.db.refresh(assignment)

        emit(
            self.emitter,
            NotificationType.JOB_ASSIGNED,
            job.company_id,
            job.id,
            Role.EMPLOYEE,
            message=f"{employee.full_name} assigned as {role} on job #{job.job_number}",
        )
        return assignment

    def unassign_employee(self, job_id: int, employee_id: int, user: Optional[User] = None) -> None:
        job = self.get_job(job_id, user)
        if job.status in JobStatus.TERMINAL:
            raise InvalidStateError(
                "Crew cannot be changed once a job is resolved", jobId=job.id, status=job.status
            )
        assignment = self.repo.get_assignment(self.db, job.id, employee_id)
        if not assignment:
            raise NotFoundError("Employee is not assigned to this job", employeeId=employee_id)
        self.db.delete(assignment)
        self.db.commit()
