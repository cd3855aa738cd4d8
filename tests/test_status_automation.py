"""
Unit tests for the auto-resolution sweep.
"""

from datetime import datetime, timedelta

import pytest

from boxxpilot.domain.jobs.service import JobService
from boxxpilot.models import JobStatus, Notification, QuotationStatus
from boxxpilot.services.notification_service import (
    DatabaseNotificationEmitter,
    NotificationType,
)
from boxxpilot.services.status_automation import run_auto_resolution_sweep


@pytest.fixture
def job_service(db_session, clock, emitter):
    return JobService(db_session, clock=clock, emitter=emitter)


@pytest.fixture
def confirmed_job(job_service, pending_job, owner):
    return job_service.confirm(pending_job.id, owner)


@pytest.fixture
def running_job(job_service, confirmed_job, clock, operative):
    clock.set(datetime(2025, 6, 1, 9, 0))
    return job_service.start(confirmed_job.id, operative)


@pytest.mark.unit
class TestMissed:
    def test_confirmed_job_missed_exactly_once(self, db_session, confirmed_job, clock, emitter):
        clock.set(datetime(2025, 6, 1, 13, 5))

        first = run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(confirmed_job)
        assert first["missed"] == 1
        assert confirmed_job.status == JobStatus.MISSED
        assert confirmed_job.actual_end_at == datetime(2025, 6, 1, 13, 5)
        assert confirmed_job.actual_start_at is None
        assert confirmed_job.resolution == "SWEEP"
        assert len(emitter.of_type(NotificationType.JOB_MISSED)) == 1

        clock.set(datetime(2025, 6, 1, 13, 6))
        second = run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(confirmed_job)
        assert second["missed"] == 0
        assert confirmed_job.status == JobStatus.MISSED
        assert confirmed_job.actual_end_at == datetime(2025, 6, 1, 13, 5)
        assert len(emitter.of_type(NotificationType.JOB_MISSED)) == 1

    def test_not_missed_before_scheduled_end(self, db_session, confirmed_job, clock, emitter):
        clock.set(datetime(2025, 6, 1, 13, 0))

        summary = run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(confirmed_job)
        assert summary["missed"] == 0
        assert confirmed_job.status == JobStatus.CONFIRMED

    def test_pending_jobs_are_left_alone(self, db_session, pending_job, clock, emitter):
        clock.set(datetime(2025, 6, 2, 0, 0))

        run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(pending_job)
        assert pending_job.status == JobStatus.PENDING


@pytest.mark.unit
class TestAutoEnded:
    def test_grace_period_is_respected(self, db_session, running_job, clock, emitter):
        clock.set(datetime(2025, 6, 1, 13, 30))
        run_auto_resolution_sweep(db_session, clock, emitter)
        db_session.refresh(running_job)
        assert running_job.status == JobStatus.IN_PROGRESS

        clock.set(datetime(2025, 6, 1, 13, 31))
        summary = run_auto_resolution_sweep(db_session, clock, emitter)
        db_session.refresh(running_job)

        assert summary["auto_ended"] == 1
        assert running_job.status == JobStatus.AUTO_ENDED
        assert running_job.actual_end_at == datetime(2025, 6, 1, 13, 31)
        assert running_job.actual_start_at == datetime(2025, 6, 1, 9, 0)
        assert emitter.of_type(NotificationType.JOB_AUTO_ENDED)[0].job_id == running_job.id

    def test_custom_grace(self, db_session, running_job, clock, emitter):
        clock.set(datetime(2025, 6, 1, 13, 1))

        summary = run_auto_resolution_sweep(db_session, clock, emitter, grace=timedelta(0))

        assert summary["auto_ended"] == 1

    def test_manual_end_wins_over_sweep(self, db_session, job_service, running_job, clock, operative, emitter):
        clock.set(datetime(2025, 6, 1, 13, 20))
        job_service.end(running_job.id, operative)

        clock.set(datetime(2025, 6, 1, 14, 0))
        summary = run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(running_job)
        assert summary["auto_ended"] == 0
        assert running_job.status == JobStatus.COMPLETED


@pytest.mark.unit
class TestSweepResilience:
    def test_emitter_failure_does_not_stop_sweep(self, db_session, confirmed_job, clock):
        class BrokenEmitter:
            def notify(self, event):
                raise RuntimeError("push gateway down")

        clock.set(datetime(2025, 6, 1, 13, 5))

        summary = run_auto_resolution_sweep(db_session, clock, BrokenEmitter())

        assert summary["missed"] == 1
        assert summary["failed"] == 0

    def test_per_job_failure_is_skipped(self, db_session, confirmed_job, clock, emitter, monkeypatch):
        from boxxpilot.domain.jobs.repository import JobRepository

        def explode(*args, **kwargs):
            raise RuntimeError("database went away")

        clock.set(datetime(2025, 6, 1, 13, 5))
        monkeypatch.setattr(JobRepository, "transition", staticmethod(explode))

        summary = run_auto_resolution_sweep(db_session, clock, emitter)

        assert summary["failed"] == 1
        assert summary["missed"] == 0


@pytest.mark.unit
class TestQuotationExpiry:
    def test_sent_quotation_expires(self, db_session, sent_quotation, clock, emitter):
        clock.set(sent_quotation.expires_at)

        summary = run_auto_resolution_sweep(db_session, clock, emitter)

        db_session.refresh(sent_quotation)
        assert summary["quotations_expired"] == 1
        assert sent_quotation.status == QuotationStatus.EXPIRED
        assert sent_quotation.job.status == JobStatus.CANCELLED

    def test_not_expired_early(self, db_session, sent_quotation, clock, emitter):
        clock.set(sent_quotation.expires_at - timedelta(seconds=1))

        summary = run_auto_resolution_sweep(db_session, clock, emitter)

        assert summary["quotations_expired"] == 0


@pytest.mark.unit
class TestDatabaseEmitter:
    def test_notifications_persisted(self, db_session, db_session_factory, confirmed_job, clock):
        clock.set(datetime(2025, 6, 1, 13, 5))

        run_auto_resolution_sweep(
            db_session, clock, DatabaseNotificationEmitter(session_factory=db_session_factory)
        )

        rows = db_session.query(Notification).filter(Notification.job_id == confirmed_job.id).all()
        assert [row.type for row in rows] == [NotificationType.JOB_MISSED]
        assert rows[0].title == "Job missed"
        assert rows[0].is_read is False
