"""Quotation router - FastAPI endpoints for quotation operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import require_roles
from ...clock import Clock, get_clock
from ...database import get_db
from ...models import Quotation, Role, User
from ...services.notification_service import NotificationEmitter, get_notification_emitter
from .schemas import (
    CustomerSummary,
    QuotationCreate,
    QuotationResponse,
    QuotationUpdate,
    SendQuotationResponse,
)
from .service import QuotationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quotations", tags=["Quotations"])

office_only = require_roles(Role.OWNER, Role.DISPATCHER)


def get_quotation_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> QuotationService:
    """Dependency injection for QuotationService"""
    return QuotationService(db, clock, emitter)


def quotation_to_response(quotation: Quotation) -> QuotationResponse:
    customer = quotation.customer
    return QuotationResponse(
        id=quotation.id,
        quoteNumber=quotation.quote_number,
        status=quotation.status,
        customerId=quotation.customer_id,
        customer=CustomerSummary(
            id=customer.id,
            fullName=customer.full_name,
            email=customer.email,
            phone=customer.phone,
            pickupAddress=customer.pickup_address,
            dropoffAddress=customer.dropoff_address,
        )
        if customer
        else None,
        serviceType=quotation.service_type,
        movingDate=quotation.moving_date,
        startTime=quotation.start_time,
        estimatedHours=quotation.estimated_hours,
        startAt=quotation.start_at,
        endAt=quotation.end_at,
        pricingMethod=quotation.pricing_method,
        workers=quotation.workers,
        trucks=quotation.trucks,
        total=quotation.total,
        pickupAddress=quotation.pickup_address,
        dropoffAddress=quotation.dropoff_address,
        validityDays=quotation.validity_days,
        sentAt=quotation.sent_at,
        expiresAt=quotation.expires_at,
        signedBy=quotation.signed_by,
        signedAt=quotation.signed_at,
        rejectedAt=quotation.rejected_at,
        expiredAt=quotation.expired_at,
        jobId=quotation.job.id if quotation.job else None,
        createdAt=quotation.created_at,
        updatedAt=quotation.updated_at,
    )


# ============================================================================
# CORE CRUD OPERATIONS
# ============================================================================


@router.get("", response_model=list[QuotationResponse])
async def list_quotations(
    status: Optional[str] = Query(None, description="Filter by quotation status"),
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    """Get the company's quotations, most recently updated first"""
    return [quotation_to_response(q) for q in service.list_quotations(current_user, status)]


@router.post("", response_model=QuotationResponse, status_code=201)
async def create_quotation(
    data: QuotationCreate,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    """Create a draft quotation"""
    return quotation_to_response(service.create(data, current_user))


@router.get("/{quotation_id}", response_model=QuotationResponse)
async def get_quotation(
    quotation_id: int,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    return quotation_to_response(service.get(quotation_id, current_user))


@router.patch("/{quotation_id}", response_model=QuotationResponse)
async def update_quotation(
    quotation_id: int,
    data: QuotationUpdate,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    """Edit a draft quotation"""
    return quotation_to_response(service.update(quotation_id, data, current_user))


@router.delete("/{quotation_id}")
async def delete_quotation(
    quotation_id: int,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    service.delete(quotation_id, current_user)
    return {"message": "Quotation deleted successfully"}


# ============================================================================
# LIFECYCLE
# ============================================================================


@router.post("/{quotation_id}/send", response_model=SendQuotationResponse)
async def send_quotation(
    quotation_id: int,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    """Lock the draft, mint the public link and create the pending job"""
    return service.send(quotation_id, current_user)


@router.post("/{quotation_id}/expire", response_model=QuotationResponse)
async def expire_quotation(
    quotation_id: int,
    current_user: User = Depends(office_only),
    service: QuotationService = Depends(get_quotation_service),
):
    return quotation_to_response(service.expire(quotation_id, current_user))
