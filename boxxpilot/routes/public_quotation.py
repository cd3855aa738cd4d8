"""
Public Quotation Routes
Customer-facing endpoints reached through the emailed link.
No authentication: the opaque token is the credential.
"""

import logging

from fastapi import APIRouter, Depends

from ..domain.quotations.router import get_quotation_service
from ..domain.quotations.schemas import (
    PublicQuotationResponse,
    RejectRequest,
    SignatureRequest,
)
from ..domain.quotations.service import QuotationService
from ..models import Quotation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/public/quotation", tags=["Public Quotations"])


def _public_view(quotation: Quotation) -> PublicQuotationResponse:
    return PublicQuotationResponse(
        quoteNumber=quotation.quote_number,
        status=quotation.status,
        customerName=quotation.customer.full_name if quotation.customer else None,
        movingDate=quotation.moving_date,
        startTime=quotation.start_time,
        estimatedHours=quotation.estimated_hours,
        pickupAddress=quotation.pickup_address,
        dropoffAddress=quotation.dropoff_address,
        total=quotation.total,
        termsText=quotation.terms_text,
        expiresAt=quotation.expires_at,
    )


@router.get("/{token}", response_model=PublicQuotationResponse)
async def get_public_quotation(
    token: str, service: QuotationService = Depends(get_quotation_service)
):
    return _public_view(service.get_public(token))


@router.post("/{token}/sign", response_model=PublicQuotationResponse)
async def sign_quotation(
    token: str,
    data: SignatureRequest,
    service: QuotationService = Depends(get_quotation_service),
):
    """Customer signs the quotation"""
    return _public_view(service.sign(token, data.signature))


@router.post("/{token}/reject", response_model=PublicQuotationResponse)
async def reject_quotation(
    token: str,
    data: RejectRequest,
    service: QuotationService = Depends(get_quotation_service),
):
    """Customer declines the quotation"""
    return _public_view(service.reject(token, data.reason))
