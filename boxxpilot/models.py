import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_token():
    """Generate an opaque token for public quotation access"""
    return str(uuid.uuid4())


class Role:
    OWNER = "OWNER"
    DISPATCHER = "DISPATCHER"
    EMPLOYEE = "EMPLOYEE"

    ALL = (OWNER, DISPATCHER, EMPLOYEE)


class QuotationStatus:
    DRAFT = "DRAFT"
    SENT = "SENT"
    SIGNED = "SIGNED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"

    TERMINAL = frozenset({SIGNED, REJECTED, EXPIRED})


class JobStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    AUTO_ENDED = "AUTO_ENDED"
    MISSED = "MISSED"

    ALL = (PENDING, CONFIRMED, IN_PROGRESS, COMPLETED, CANCELLED, AUTO_ENDED, MISSED)
    TERMINAL = frozenset({COMPLETED, CANCELLED, AUTO_ENDED, MISSED})
    ACTIVE = frozenset({PENDING, CONFIRMED, IN_PROGRESS})


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    users = relationship("User", back_populates="company")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    role = Column(String(20), default=Role.OWNER, nullable=False)
    # Opaque bearer token issued by the auth service
    api_token = Column(String(255), unique=True, index=True, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    company = relationship("Company", back_populates="users")


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    pickup_address = Column(String(500), nullable=True)
    dropoff_address = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    position = Column(String(50), default="MOVER")  # MOVER, DRIVER, LEAD
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class Quotation(Base):
    __tablename__ = "quotations"
    __table_args__ = (UniqueConstraint("company_id", "quote_number", name="uq_quote_number"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    quote_number = Column(Integer, nullable=False)

    # Status workflow: DRAFT → SENT → SIGNED / REJECTED / EXPIRED
    status = Column(String(20), default=QuotationStatus.DRAFT, nullable=False, index=True)
    service_type = Column(String(100), nullable=True)

    # Scheduling inputs and the instants derived from them
    moving_date = Column(DateTime, nullable=True)
    start_time = Column(String(5), nullable=True)  # HH:MM
    estimated_hours = Column(Float, nullable=True)
    start_at = Column(DateTime, nullable=True)
    end_at = Column(DateTime, nullable=True)

    # Pricing (stored as entered, computed by the pricing screens)
    pricing_method = Column(String(20), default="HOURLY")
    workers = Column(Integer, default=1)
    trucks = Column(Integer, default=1)
    truck_size = Column(String(50), nullable=True)
    hourly_rate = Column(Float, nullable=True)
    fixed_price = Column(Float, nullable=True)
    travel_cost = Column(Float, nullable=True)
    materials_cost = Column(Float, nullable=True)
    other_fees = Column(Float, nullable=True)
    discount = Column(Float, nullable=True)
    tax_tps = Column(Float, nullable=True)
    tax_tvq = Column(Float, nullable=True)
    total = Column(Float, default=0)

    # Departure
    pickup_address = Column(String(500), nullable=True)
    pickup_unit = Column(String(50), nullable=True)
    pickup_floor = Column(Integer, nullable=True)
    pickup_elevator = Column(Boolean, nullable=True)
    pickup_loading_dock = Column(Boolean, nullable=True)
    parking_difficulty = Column(String(50), nullable=True)
    walking_distance = Column(Float, nullable=True)
    stairs_width = Column(String(50), nullable=True)
    pickup_access_notes = Column(Text, nullable=True)

    # Arrival
    dropoff_address = Column(String(500), nullable=True)
    dropoff_unit = Column(String(50), nullable=True)
    dropoff_floor = Column(Integer, nullable=True)
    dropoff_elevator = Column(Boolean, nullable=True)
    dropoff_loading_dock = Column(Boolean, nullable=True)
    dropoff_parking_difficulty = Column(String(50), nullable=True)
    dropoff_walking_distance = Column(Float, nullable=True)
    dropoff_stairs_width = Column(String(50), nullable=True)
    dropoff_access_notes = Column(Text, nullable=True)

    # Inventory
    estimated_volume_cft = Column(Float, nullable=True)
    estimated_weight_lbs = Column(Float, nullable=True)
    inventory_notes = Column(Text, nullable=True)

    # Terms
    terms_text = Column(Text, nullable=True)
    internal_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    validity_days = Column(Integer, nullable=True)

    # Sending and customer response
    public_token = Column(String(36), unique=True, nullable=True, index=True)
    sent_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)
    signature = Column(Text, nullable=True)  # Base64 signature image
    signed_by = Column(String(255), nullable=True)
    signed_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String(2000), nullable=True)
    expired_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("Customer")
    job = relationship("Job", back_populates="quotation", uselist=False)


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (UniqueConstraint("company_id", "job_number", name="uq_job_number"),)

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    # One job per quotation
    quotation_id = Column(Integer, ForeignKey("quotations.id"), unique=True, nullable=True)
    job_number = Column(Integer, nullable=False)
    title = Column(String(255), nullable=True)

    # Status workflow: PENDING → CONFIRMED → IN_PROGRESS → COMPLETED / AUTO_ENDED
    # CONFIRMED → MISSED (sweep), PENDING → CANCELLED
    status = Column(String(20), default=JobStatus.PENDING, nullable=False, index=True)

    # Copied from the quotation when the job is created, never re-derived
    scheduled_start_at = Column(DateTime, nullable=True, index=True)
    scheduled_end_at = Column(DateTime, nullable=True, index=True)
    allotted_seconds = Column(Integer, nullable=True)

    actual_start_at = Column(DateTime, nullable=True)
    actual_end_at = Column(DateTime, nullable=True)

    # Audit trail
    confirmed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    started_by = Column(Integer, nullable=True)
    ended_by = Column(Integer, nullable=True)
    resolution = Column(String(20), nullable=True)  # MANUAL, SWEEP

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    quotation = relationship("Quotation", back_populates="job")
    assignments = relationship(
        "JobAssignment", back_populates="job", cascade="all, delete-orphan"
    )


class JobAssignment(Base):
    __tablename__ = "job_assignments"
    __table_args__ = (UniqueConstraint("job_id", "employee_id", name="uq_job_employee"),)

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    role = Column(String(50), nullable=False, default="MOVER")
    created_at = Column(DateTime, server_default=func.now())

    job = relationship("Job", back_populates="assignments")
    employee = relationship("Employee")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id"), nullable=True, index=True)
    # JOB_CREATED, JOB_CONFIRMED, JOB_STARTED, JOB_COMPLETED, JOB_AUTO_ENDED, ...
    type = Column(String(50), nullable=False)
    recipient_role = Column(String(20), nullable=False)
    title = Column(String(255), nullable=True)
    message = Column(Text, nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
