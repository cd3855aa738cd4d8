"""Quotation domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...shared.validators import is_finite_number, parse_start_time

# Upper bounds on schedule inputs; anything larger cannot describe a real move
MAX_ESTIMATED_HOURS = 168
MAX_VALIDITY_DAYS = 365


def _check_start_time(value: Optional[str]) -> Optional[str]:
    if value is not None and value != "" and parse_start_time(value) is None:
        raise ValueError("startTime must be HH:MM")
    return value or None


def _check_estimated_hours(value: Optional[float]) -> Optional[float]:
    # Non-finite values pass through; the service ignores them
    if is_finite_number(value) and value > MAX_ESTIMATED_HOURS:
        raise ValueError(f"estimatedHours must be at most {MAX_ESTIMATED_HOURS}")
    return value


class QuotationCreate(BaseModel):
    """Schema for creating a draft quotation"""

    customerId: Optional[int] = None
    movingDate: Optional[date] = None
    startTime: Optional[str] = None
    estimatedHours: Optional[float] = None
    serviceType: Optional[str] = None

    @field_validator("startTime")
    @classmethod
    def validate_start_time(cls, v):
        return _check_start_time(v)

    @field_validator("estimatedHours")
    @classmethod
    def validate_estimated_hours(cls, v):
        return _check_estimated_hours(v)


class QuotationUpdate(BaseModel):
    """Schema for editing a draft; only fields present in the payload are applied"""

    customerId: Optional[int] = None
    movingDate: Optional[date] = None
    startTime: Optional[str] = None
    estimatedHours: Optional[float] = None
    serviceType: Optional[str] = None

    pricingMethod: Optional[str] = None
    workers: Optional[int] = None
    trucks: Optional[int] = None
    truckSize: Optional[str] = None
    hourlyRate: Optional[float] = None
    fixedPrice: Optional[float] = None
    travelCost: Optional[float] = None
    materialsCost: Optional[float] = None
    otherFees: Optional[float] = None
    discount: Optional[float] = None
    taxTPS: Optional[float] = None
    taxTVQ: Optional[float] = None
    total: Optional[float] = None

    pickupAddress: Optional[str] = None
    pickupUnit: Optional[str] = None
    pickupFloor: Optional[int] = None
    pickupElevator: Optional[bool] = None
    pickupLoadingDock: Optional[bool] = None
    parkingDifficulty: Optional[str] = None
    walkingDistance: Optional[float] = None
    stairsWidth: Optional[str] = None
    pickupAccessNotes: Optional[str] = None

    dropoffAddress: Optional[str] = None
    dropoffUnit: Optional[str] = None
    dropoffFloor: Optional[int] = None
    dropoffElevator: Optional[bool] = None
    dropoffLoadingDock: Optional[bool] = None
    dropoffParkingDifficulty: Optional[str] = None
    dropoffWalkingDistance: Optional[float] = None
    dropoffStairsWidth: Optional[str] = None
    dropoffAccessNotes: Optional[str] = None

    estimatedVolumeCft: Optional[float] = None
    estimatedWeightLbs: Optional[float] = None
    inventoryNotes: Optional[str] = None

    termsText: Optional[str] = None
    internalNotes: Optional[str] = None
    notes: Optional[str] = None
    validityDays: Optional[int] = Field(default=None, le=MAX_VALIDITY_DAYS)

    @field_validator("startTime")
    @classmethod
    def validate_start_time(cls, v):
        return _check_start_time(v)

    @field_validator("estimatedHours")
    @classmethod
    def validate_estimated_hours(cls, v):
        return _check_estimated_hours(v)


# Payload field → Quotation column
FIELD_MAP = {
    "customerId": "customer_id",
    "movingDate": "moving_date",
    "startTime": "start_time",
    "estimatedHours": "estimated_hours",
    "serviceType": "service_type",
    "pricingMethod": "pricing_method",
    "workers": "workers",
    "trucks": "trucks",
    "truckSize": "truck_size",
    "hourlyRate": "hourly_rate",
    "fixedPrice": "fixed_price",
    "travelCost": "travel_cost",
    "materialsCost": "materials_cost",
    "otherFees": "other_fees",
    "discount": "discount",
    "taxTPS": "tax_tps",
    "taxTVQ": "tax_tvq",
    "total": "total",
    "pickupAddress": "pickup_address",
    "pickupUnit": "pickup_unit",
    "pickupFloor": "pickup_floor",
    "pickupElevator": "pickup_elevator",
    "pickupLoadingDock": "pickup_loading_dock",
    "parkingDifficulty": "parking_difficulty",
    "walkingDistance": "walking_distance",
    "stairsWidth": "stairs_width",
    "pickupAccessNotes": "pickup_access_notes",
    "dropoffAddress": "dropoff_address",
    "dropoffUnit": "dropoff_unit",
    "dropoffFloor": "dropoff_floor",
    "dropoffElevator": "dropoff_elevator",
    "dropoffLoadingDock": "dropoff_loading_dock",
    "dropoffParkingDifficulty": "dropoff_parking_difficulty",
    "dropoffWalkingDistance": "dropoff_walking_distance",
    "dropoffStairsWidth": "dropoff_stairs_width",
    "dropoffAccessNotes": "dropoff_access_notes",
    "estimatedVolumeCft": "estimated_volume_cft",
    "estimatedWeightLbs": "estimated_weight_lbs",
    "inventoryNotes": "inventory_notes",
    "termsText": "terms_text",
    "internalNotes": "internal_notes",
    "notes": "notes",
    "validityDays": "validity_days",
}

# Fields that feed the derived start/end instants
SCHEDULE_FIELDS = {"moving_date", "start_time", "estimated_hours"}


class CustomerSummary(BaseModel):
    id: int
    fullName: str
    email: Optional[str] = None
    phone: Optional[str] = None
    pickupAddress: Optional[str] = None
    dropoffAddress: Optional[str] = None


class QuotationResponse(BaseModel):
    """Schema for quotation response"""

    id: int
    quoteNumber: int
    status: str
    customerId: int
    customer: Optional[CustomerSummary] = None
    serviceType: Optional[str] = None
    movingDate: Optional[datetime] = None
    startTime: Optional[str] = None
    estimatedHours: Optional[float] = None
    startAt: Optional[datetime] = None
    endAt: Optional[datetime] = None
    pricingMethod: Optional[str] = None
    workers: Optional[int] = None
    trucks: Optional[int] = None
    total: Optional[float] = None
    pickupAddress: Optional[str] = None
    dropoffAddress: Optional[str] = None
    validityDays: Optional[int] = None
    sentAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
    signedBy: Optional[str] = None
    signedAt: Optional[datetime] = None
    rejectedAt: Optional[datetime] = None
    expiredAt: Optional[datetime] = None
    jobId: Optional[int] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class SendQuotationResponse(BaseModel):
    success: bool = True
    quoteNumber: int
    link: str
    expiresAt: datetime
    jobId: int


class PublicQuotationResponse(BaseModel):
    """What a customer sees behind the public link"""

    quoteNumber: int
    status: str
    customerName: Optional[str] = None
    movingDate: Optional[datetime] = None
    startTime: Optional[str] = None
    estimatedHours: Optional[float] = None
    pickupAddress: Optional[str] = None
    dropoffAddress: Optional[str] = None
    total: Optional[float] = None
    termsText: Optional[str] = None
    expiresAt: Optional[datetime] = None


class SignatureRequest(BaseModel):
    signature: str  # Base64 signature image (data URL)


class RejectRequest(BaseModel):
    reason: Optional[str] = None
