"""Quotation service - Quotation state machine and the job it spawns"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...clock import Clock, system_clock
from ...config import APP_PUBLIC_URL
from ...errors import (
    AlreadyResolvedError,
    ConflictError,
    ExpiredError,
    InvalidStateError,
    MissingScheduleError,
    NotFoundError,
    ValidationError,
)
from ...models import Job, JobStatus, Quotation, QuotationStatus, Role, User, generate_public_token
from ...services.notification_service import NotificationEmitter, NotificationType, emit
from ...shared.validators import derive_schedule, is_finite_number, sanitize_text, validate_uuid
from ..jobs.repository import JobRepository
from .repository import QuotationRepository
from .schemas import FIELD_MAP, SCHEDULE_FIELDS, QuotationCreate, QuotationUpdate

logger = logging.getLogger(__name__)


def _as_datetime(value):
    """Moving dates arrive as dates and are stored as midnight instants"""
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    return value


def public_link(token: str) -> str:
    return f"{APP_PUBLIC_URL.rstrip('/')}/public/quotation/{token}"


class QuotationService:
    """Service layer for quotation business logic"""

    def __init__(
        self,
        db: Session,
        clock: Clock = None,
        emitter: Optional[NotificationEmitter] = None,
    ):
        self.db = db
        self.clock = clock or system_clock
        self.emitter = emitter
        self.repo = QuotationRepository()
        self.jobs = JobRepository()

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def get(self, quotation_id: int, user: User) -> Quotation:
        quotation = self.repo.get_quotation(self.db, quotation_id, user.company_id)
        if not quotation:
            raise NotFoundError("Quotation not found", quotationId=quotation_id)
        return quotation

    def list_quotations(self, user: User, status: Optional[str] = None) -> list[Quotation]:
        return self.repo.list_quotations(self.db, user.company_id, status)

    def get_public(self, token: str) -> Quotation:
        if not validate_uuid(token):
            raise NotFoundError("Quotation not found")
        quotation = self.repo.get_by_token(self.db, token)
        if not quotation:
            raise NotFoundError("Quotation not found")
        return quotation

    def create(self, data: QuotationCreate, user: User) -> Quotation:
        """Create a DRAFT quotation for one of the company's customers"""
        if data.customerId is None:
            raise ValidationError("customerId is required")
        customer = self.repo.get_customer(self.db, data.customerId, user.company_id)
        if not customer:
            raise ValidationError("Customer not found", customerId=data.customerId)

        estimated_hours = data.estimatedHours if is_finite_number(data.estimatedHours) else None
        start_at, end_at = derive_schedule(data.movingDate, data.startTime, estimated_hours)

        quotation = self.repo.create_quotation(
            self.db,
            user.company_id,
            customer_id=customer.id,
            created_by_id=user.id,
            status=QuotationStatus.DRAFT,
            service_type=data.serviceType,
            moving_date=_as_datetime(data.movingDate),
            start_time=data.startTime,
            estimated_hours=estimated_hours,
            start_at=start_at,
            end_at=end_at,
            pricing_method="HOURLY",
            workers=1,
            trucks=1,
            total=0,
            pickup_address=customer.pickup_address,
            dropoff_address=customer.dropoff_address,
        )
        logger.info(f"✅ Quotation #{quotation.quote_number} created for customer {customer.id}")
        return quotation

    def update(self, quotation_id: int, data: QuotationUpdate, user: User) -> Quotation:
        """Edit a draft. Touching any schedule input re-derives start/end."""
        quotation = self.get(quotation_id, user)
        if quotation.status != QuotationStatus.DRAFT:
            raise InvalidStateError(
                "Only draft quotations can be edited",
                quotationId=quotation.id,
                status=quotation.status,
            )

        updates = {}
        for field, value in data.model_dump(exclude_unset=True).items():
            column = FIELD_MAP.get(field)
            if column is None:
                continue
            if isinstance(value, float) and not is_finite_number(value):
                logger.warning(f"⚠️ Ignoring non-finite {field} on quotation {quotation.id}")
                continue
            updates[column] = _as_datetime(value)

        if "customer_id" in updates:
            if updates["customer_id"] is None:
                raise ValidationError("customerId is required")
            if not self.repo.get_customer(self.db, updates["customer_id"], user.company_id):
                raise ValidationError("Customer not found", customerId=updates["customer_id"])

        if SCHEDULE_FIELDS & updates.keys():
            moving_date = updates.get("moving_date", quotation.moving_date)
            start_time = updates.get("start_time", quotation.start_time)
            estimated_hours = updates.get("estimated_hours", quotation.estimated_hours)
            updates["start_at"], updates["end_at"] = derive_schedule(
                moving_date, start_time, estimated_hours
            )

        return self.repo.update_quotation(self.db, quotation, **updates)

    def delete(self, quotation_id: int, user: User) -> None:
        quotation = self.get(quotation_id, user)
        if quotation.status != QuotationStatus.DRAFT:
            raise InvalidStateError(
                "Only draft quotations can be deleted",
                quotationId=quotation.id,
                status=quotation.status,
            )
        self.repo.delete_quotation(self.db, quotation)
        logger.info(f"🗑️ Quotation {quotation_id} deleted")

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def send(self, quotation_id: int, user: User) -> dict:
        """
        DRAFT → SENT, then create the PENDING job.

        A repeated call on a SENT quotation succeeds without a second job; it
        also creates the job when an earlier call died between the two steps.
        """
        quotation = self.get(quotation_id, user)
        sent_now = False

        if quotation.status == QuotationStatus.DRAFT:
            if not quotation.validity_days or quotation.validity_days <= 0:
                raise MissingScheduleError(
                    "missing schedule: validityDays is required", quotationId=quotation.id
                )
            if quotation.start_at is None or quotation.end_at is None:
                raise MissingScheduleError(quotationId=quotation.id)

            now = self.clock.now()
            try:
                expires_at = now + timedelta(days=quotation.validity_days)
            except OverflowError:
                raise ValidationError(
                    "validityDays is out of range",
                    quotationId=quotation.id,
                    validityDays=quotation.validity_days,
                ) from None
            sent_now = self.repo.transition(
                self.db,
                quotation.id,
                QuotationStatus.DRAFT,
                QuotationStatus.SENT,
                public_token=generate_public_token(),
                sent_at=now,
                expires_at=expires_at,
            )
            if not sent_now:
                self.db.refresh(quotation)
                if quotation.status != QuotationStatus.SENT:
                    raise ConflictError(
                        "Quotation was changed by another request",
                        quotationId=quotation.id,
                        status=quotation.status,
                    )
            self.db.refresh(quotation)
            logger.info(f"📧 Quotation #{quotation.quote_number} sent (expires {quotation.expires_at})")
        elif quotation.status != QuotationStatus.SENT:
            raise InvalidStateError(
                "Only draft quotations can be sent",
                quotationId=quotation.id,
                status=quotation.status,
            )

        job = self.ensure_job(quotation)
        if sent_now:
            emit(
                self.emitter,
                NotificationType.QUOTATION_SENT,
                quotation.company_id,
                job.id,
                Role.OWNER,
                message=f"Quotation #{quotation.quote_number} sent, expires {quotation.expires_at}",
            )
        return {
            "success": True,
            "quoteNumber": quotation.quote_number,
            "link": public_link(quotation.public_token),
            "expiresAt": quotation.expires_at,
            "jobId": job.id,
        }

    def ensure_job(self, quotation: Quotation) -> Job:
        """Create the quotation's job once; later calls return the same row"""
        existing = self.jobs.get_job_by_quotation(self.db, quotation.id)
        if existing:
            return existing

        customer_name = quotation.customer.full_name if quotation.customer else "Customer"
        job = self.jobs.create_for_quotation(self.db, quotation, f"{customer_name} Move")
        logger.info(f"✅ Job #{job.job_number} created from quotation #{quotation.quote_number}")
        emit(
            self.emitter,
            NotificationType.JOB_CREATED,
            job.company_id,
            job.id,
            Role.OWNER,
            message=f"Job #{job.job_number} ({job.title}) is waiting for confirmation",
        )
        return job

    # ------------------------------------------------------------------
    # Customer response (public token)
    # ------------------------------------------------------------------

    def _check_not_expired(self, quotation: Quotation) -> None:
        if quotation.status == QuotationStatus.EXPIRED:
            raise ExpiredError("Quotation has expired", expiresAt=quotation.expires_at)
        if (
            quotation.status == QuotationStatus.SENT
            and quotation.expires_at is not None
            and self.clock.now() >= quotation.expires_at
        ):
            raise ExpiredError(
                "Quotation has expired", now=self.clock.now(), expiresAt=quotation.expires_at
            )

    def sign(self, token: str, signature: str) -> Quotation:
        quotation = self.get_public(token)
        if not signature or not signature.strip():
            raise ValidationError("signature is required")

        if quotation.status == QuotationStatus.SIGNED:
            if quotation.signature == signature:
                return quotation
            raise AlreadyResolvedError("Quotation was already signed", status=quotation.status)
        if quotation.status == QuotationStatus.REJECTED:
            raise AlreadyResolvedError("Quotation was already rejected", status=quotation.status)
        self._check_not_expired(quotation)
        if quotation.status != QuotationStatus.SENT:
            raise InvalidStateError("Quotation cannot be signed", status=quotation.status)

        signer = quotation.customer.full_name if quotation.customer else None
        if not self.repo.transition(
            self.db,
            quotation.id,
            QuotationStatus.SENT,
            QuotationStatus.SIGNED,
            signature=signature,
            signed_by=signer,
            signed_at=self.clock.now(),
        ):
            self.db.refresh(quotation)
            if quotation.status == QuotationStatus.SIGNED and quotation.signature == signature:
                return quotation
            logger.warning(f"⚠️ Sign lost race on quotation {quotation.id} (now {quotation.status})")
            raise AlreadyResolvedError(
                f"Quotation was already {quotation.status.lower()}", status=quotation.status
            )

        self.db.refresh(quotation)
        logger.info(f"✍️ Quotation #{quotation.quote_number} signed by {signer}")

        job = self.ensure_job(quotation)
        emit(
            self.emitter,
            NotificationType.QUOTATION_SIGNED,
            quotation.company_id,
            job.id,
            Role.OWNER,
            message=f"Quotation #{quotation.quote_number} signed by {signer}",
        )
        return quotation

    def reject(self, token: str, reason: Optional[str] = None) -> Quotation:
        quotation = self.get_public(token)

        if quotation.status == QuotationStatus.REJECTED:
            return quotation
        if quotation.status == QuotationStatus.SIGNED:
            raise AlreadyResolvedError("Quotation was already signed", status=quotation.status)
        self._check_not_expired(quotation)
        if quotation.status != QuotationStatus.SENT:
            raise InvalidStateError("Quotation cannot be rejected", status=quotation.status)

        if not self.repo.transition(
            self.db,
            quotation.id,
            QuotationStatus.SENT,
            QuotationStatus.REJECTED,
            rejected_at=self.clock.now(),
            rejection_reason=sanitize_text(reason),
        ):
            self.db.refresh(quotation)
            if quotation.status == QuotationStatus.REJECTED:
                return quotation
            logger.warning(f"⚠️ Reject lost race on quotation {quotation.id} (now {quotation.status})")
            raise AlreadyResolvedError(
                f"Quotation was already {quotation.status.lower()}", status=quotation.status
            )

        self.db.refresh(quotation)
        logger.info(f"❌ Quotation #{quotation.quote_number} rejected")

        job = self._cancel_pending_job(quotation)
        emit(
            self.emitter,
            NotificationType.QUOTATION_REJECTED,
            quotation.company_id,
            job.id if job else None,
            Role.OWNER,
            message=quotation.rejection_reason,
        )
        return quotation

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def expire(self, quotation_id: int, user: User) -> Quotation:
        quotation = self.get(quotation_id, user)
        if quotation.status == QuotationStatus.EXPIRED:
            return quotation
        if quotation.status != QuotationStatus.SENT:
            raise InvalidStateError(
                "Only sent quotations can expire", quotationId=quotation.id, status=quotation.status
            )

        if not self.expire_quotation(quotation.id):
            self.db.refresh(quotation)
            if quotation.status == QuotationStatus.EXPIRED:
                return quotation
            raise AlreadyResolvedError(
                f"Quotation was already {quotation.status.lower()}",
                quotationId=quotation.id,
                status=quotation.status,
            )
        self.db.refresh(quotation)
        return quotation

    def expire_quotation(self, quotation_id: int) -> bool:
        """SENT → EXPIRED; False when the quotation already left SENT"""
        if not self.repo.transition(
            self.db,
            quotation_id,
            QuotationStatus.SENT,
            QuotationStatus.EXPIRED,
            expired_at=self.clock.now(),
        ):
            return False

        quotation = self.repo.get_quotation(self.db, quotation_id)
        logger.info(f"⌛ Quotation #{quotation.quote_number} expired")

        job = self._cancel_pending_job(quotation)
        emit(
            self.emitter,
            NotificationType.QUOTATION_EXPIRED,
            quotation.company_id,
            job.id if job else None,
            Role.OWNER,
            message=f"Quotation #{quotation.quote_number} expired without a response",
        )
        return True

    def _cancel_pending_job(self, quotation: Quotation) -> Optional[Job]:
        """Cancel the quotation's job while it is still PENDING"""
        job = self.jobs.get_job_by_quotation(self.db, quotation.id)
        if not job or job.status != JobStatus.PENDING:
            return job

        if self.jobs.transition(
            self.db, job.id, JobStatus.PENDING, JobStatus.CANCELLED, cancelled_at=self.clock.now()
        ):
            self.db.refresh(job)
            logger.info(f"✅ Job {job.id} cancelled with quotation #{quotation.quote_number}")
            emit(self.emitter, NotificationType.JOB_CANCELLED, job.company_id, job.id, Role.OWNER)
        else:
            self.db.refresh(job)
        return job
