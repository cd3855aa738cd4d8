"""
Crew Roster
Answers whether an employee is free over a job window. The job engine only
consumes the yes/no flag; conflict rules live here.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Employee, Job, JobAssignment, JobStatus


class CrewRoster:
    def __init__(self, db: Session):
        self.db = db

    def is_available(
        self,
        employee_id: int,
        start: Optional[datetime],
        end: Optional[datetime],
        exclude_job_id: Optional[int] = None,
    ) -> bool:
        """True when the employee has no overlapping assignment on an active job"""
        if start is None or end is None:
            return True

        query = (
            self.db.query(JobAssignment.id)
            .join(Job, Job.id == JobAssignment.job_id)
            .filter(
                JobAssignment.employee_id == employee_id,
                Job.status.in_(list(JobStatus.ACTIVE)),
                Job.scheduled_start_at < end,
                Job.scheduled_end_at > start,
            )
        )
        if exclude_job_id is not None:
            query = query.filter(Job.id != exclude_job_id)

        return query.first() is None

    def employees_for_job(self, job: Job) -> list[dict]:
        """Company employees with a conflict flag for the job's window"""
        employees = (
            self.db.query(Employee)
            .filter(Employee.company_id == job.company_id, Employee.is_active.is_(True))
            .order_by(Employee.full_name)
            .all()
        )

        return [
            {
                "id": employee.id,
                "fullName": employee.full_name,
                "position": employee.position,
                "conflict": not self.is_available(
                    employee.id, job.scheduled_start_at, job.scheduled_end_at, job.id
                ),
            }
            for employee in employees
        ]
