"""
Pytest configuration and shared fixtures for the BoxxPilot test suite.

This module provides:
- Database fixtures (in-memory SQLite for testing)
- A pinned clock and a recording notification emitter
- Seeded company, users, customer and employees
- API client fixtures (FastAPI TestClient)
"""

import os
from datetime import date, datetime
from typing import Generator

# Point the app engine at a throwaway database before anything imports it
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from boxxpilot.clock import FixedClock
from boxxpilot.database import Base
from boxxpilot.domain.quotations.schemas import QuotationCreate, QuotationUpdate
from boxxpilot.domain.quotations.service import QuotationService
from boxxpilot.models import Company, Customer, Employee, Role, User
from boxxpilot.services.notification_service import NotificationEmitter

MOVE_DAY = date(2025, 6, 1)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "api: HTTP boundary tests")


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session_factory(db_engine):
    """Factory for creating multiple database sessions."""
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db_session(db_session_factory) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = db_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# ============================================================================
# CLOCK AND NOTIFICATIONS
# ============================================================================


@pytest.fixture
def clock():
    """Clock pinned a dozen days before the move day."""
    return FixedClock(datetime(2025, 5, 20, 12, 0))


class RecordingEmitter(NotificationEmitter):
    """Keeps every event in memory"""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    def types(self):
        return [event.type for event in self.events]

    def of_type(self, event_type):
        return [event for event in self.events if event.type == event_type]


@pytest.fixture
def emitter():
    return RecordingEmitter()


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================


@pytest.fixture
def company(db_session):
    company = Company(name="Boxx Movers")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture
def other_company(db_session):
    company = Company(name="Rival Movers")
    db_session.add(company)
    db_session.commit()
    return company


def _user(db_session, company, role, email, token):
    user = User(
        company_id=company.id,
        full_name=email.split("@")[0].title(),
        email=email,
        role=role,
        api_token=token,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def owner(db_session, company):
    return _user(db_session, company, Role.OWNER, "owner@boxx.test", "owner-token")


@pytest.fixture
def dispatcher(db_session, company):
    return _user(db_session, company, Role.DISPATCHER, "dispatch@boxx.test", "dispatcher-token")


@pytest.fixture
def operative(db_session, company):
    return _user(db_session, company, Role.EMPLOYEE, "crew@boxx.test", "employee-token")


@pytest.fixture
def customer(db_session, company):
    customer = Customer(
        company_id=company.id,
        full_name="Jane Tremblay",
        email="jane@example.com",
        phone="514-555-0100",
        pickup_address="123 Rue Sainte-Catherine, Montréal",
        dropoff_address="456 Boulevard Saint-Laurent, Montréal",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture
def employees(db_session, company):
    crew = [
        Employee(company_id=company.id, full_name="Alex Roy", position="LEAD"),
        Employee(company_id=company.id, full_name="Sam Gagnon", position="MOVER"),
        Employee(company_id=company.id, full_name="Chris Côté", position="DRIVER"),
    ]
    db_session.add_all(crew)
    db_session.commit()
    return crew


# ============================================================================
# SERVICE HELPERS
# ============================================================================


@pytest.fixture
def quotation_service(db_session, clock, emitter):
    return QuotationService(db_session, clock, emitter)


@pytest.fixture
def ready_quotation(quotation_service, owner, customer):
    """DRAFT quotation for 2025-06-01 09:00, four hours, valid for 30 days"""
    quotation = quotation_service.create(
        QuotationCreate(
            customerId=customer.id, movingDate=MOVE_DAY, startTime="09:00", estimatedHours=4
        ),
        owner,
    )
    return quotation_service.update(quotation.id, QuotationUpdate(validityDays=30), owner)


@pytest.fixture
def sent_quotation(quotation_service, ready_quotation, owner):
    quotation_service.send(ready_quotation.id, owner)
    return quotation_service.get(ready_quotation.id, owner)


@pytest.fixture
def pending_job(sent_quotation):
    return sent_quotation.job


@pytest.fixture
def lose_race(monkeypatch):
    """
    Make a repository's next compare-and-swap run just after a competing write.

    The competing write moves the row to `status` (with `values`) as another
    request would between the service's read and its conditional update.
    """

    def patch(repository, status, **values):
        real = repository.transition
        raced = []

        def transition(db, entity_id, expected, new, **changes):
            if not raced:
                raced.append(entity_id)
                real(db, entity_id, expected, status, **values)
            return real(db, entity_id, expected, new, **changes)

        monkeypatch.setattr(repository, "transition", transition)

    return patch


# ============================================================================
# API CLIENT FIXTURES
# ============================================================================


@pytest.fixture(scope="function")
def api_client(db_session, clock, emitter) -> Generator[TestClient, None, None]:
    """Create a FastAPI test client with database, clock and emitter overrides."""
    from boxxpilot.clock import get_clock
    from boxxpilot.database import get_db
    from boxxpilot.domain.scheduling.timer import TimerSessions
    from boxxpilot.main import app
    from boxxpilot.services.notification_service import get_notification_emitter

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_notification_emitter] = lambda: emitter

    previous_sessions = app.state.timer_sessions
    app.state.timer_sessions = TimerSessions(clock=clock)

    with TestClient(app) as client:
        yield client

    app.state.timer_sessions = previous_sessions
    app.dependency_overrides.clear()


@pytest.fixture
def owner_headers(owner):
    return {"Authorization": f"Bearer {owner.api_token}"}


@pytest.fixture
def dispatcher_headers(dispatcher):
    return {"Authorization": f"Bearer {dispatcher.api_token}"}


@pytest.fixture
def operative_headers(operative):
    return {"Authorization": f"Bearer {operative.api_token}"}
