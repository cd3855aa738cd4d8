"""
Notification Emitter
Every quotation/job state transition notifies the affected role.
Fire-and-forget: delivery failures are logged, never raised to the caller.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..database import SessionLocal
from ..models import Notification, Role

logger = logging.getLogger(__name__)


class NotificationType:
    JOB_CREATED = "JOB_CREATED"
    JOB_CONFIRMED = "JOB_CONFIRMED"
    JOB_CANCELLED = "JOB_CANCELLED"
    JOB_ASSIGNED = "JOB_ASSIGNED"
    JOB_STARTED = "JOB_STARTED"
    JOB_COMPLETED = "JOB_COMPLETED"
    JOB_AUTO_ENDED = "JOB_AUTO_ENDED"
    JOB_MISSED = "JOB_MISSED"
    QUOTATION_SENT = "QUOTATION_SENT"
    QUOTATION_SIGNED = "QUOTATION_SIGNED"
    QUOTATION_REJECTED = "QUOTATION_REJECTED"
    QUOTATION_EXPIRED = "QUOTATION_EXPIRED"


# Default titles shown in the notifications feed
TITLES = {
    NotificationType.JOB_CREATED: "New job created",
    NotificationType.JOB_CONFIRMED: "Job confirmed",
    NotificationType.JOB_CANCELLED: "Job cancelled",
    NotificationType.JOB_ASSIGNED: "You have been assigned to a job",
    NotificationType.JOB_STARTED: "Job started",
    NotificationType.JOB_COMPLETED: "Job completed",
    NotificationType.JOB_AUTO_ENDED: "Job auto-ended",
    NotificationType.JOB_MISSED: "Job missed",
    NotificationType.QUOTATION_SENT: "Quotation sent",
    NotificationType.QUOTATION_SIGNED: "Quotation signed",
    NotificationType.QUOTATION_REJECTED: "Quotation rejected",
    NotificationType.QUOTATION_EXPIRED: "Quotation expired",
}


@dataclass(frozen=True)
class NotificationEvent:
    type: str
    job_id: Optional[int]
    recipient_role: str
    company_id: int
    message: Optional[str] = None


class NotificationEmitter:
    def notify(self, event: NotificationEvent) -> None:
        raise NotImplementedError


class DatabaseNotificationEmitter(NotificationEmitter):
    """Writes events to the notifications feed on a session of its own"""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def notify(self, event: NotificationEvent) -> None:
        db = self.session_factory()
        try:
            db.add(
                Notification(
                    company_id=event.company_id,
                    job_id=event.job_id,
                    type=event.type,
                    recipient_role=event.recipient_role,
                    title=TITLES.get(event.type, event.type),
                    message=event.message,
                )
            )
            db.commit()
            logger.info(
                f"📣 {event.type} notification queued for {event.recipient_role} (job {event.job_id})"
            )
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Failed to record {event.type} notification for job {event.job_id}: {e}")
        finally:
            db.close()


_default_emitter = DatabaseNotificationEmitter()


def get_notification_emitter() -> NotificationEmitter:
    """FastAPI dependency for the notification emitter"""
    return _default_emitter


def emit(
    emitter: Optional[NotificationEmitter],
    event_type: str,
    company_id: int,
    job_id: Optional[int],
    recipient_role: str = Role.OWNER,
    message: Optional[str] = None,
) -> None:
    """Build and send an event; an emitter error never reaches the transition"""
    if emitter is None:
        return
    try:
        emitter.notify(
            NotificationEvent(
                type=event_type,
                job_id=job_id,
                recipient_role=recipient_role,
                company_id=company_id,
                message=message,
            )
        )
    except Exception as e:
        logger.error(f"❌ Notification emitter failed for {event_type} (job {job_id}): {e}")
