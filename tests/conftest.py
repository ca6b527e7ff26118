"""Shared test fixtures."""
from datetime import datetime

import pytest

from booking.availability import AvailabilityHorizon
from booking.calendar import BusinessCalendar
from booking.clock import FixedClock
from booking.ledger import AppointmentLedger
from booking.models import AppointmentCreate, BusinessHours, Client, Service
from booking.storage import InMemoryStore

# Monday, 08:00 local time
MONDAY = datetime(2025, 5, 5, 8, 0)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def clock():
    return FixedClock(MONDAY)


@pytest.fixture
def calendar(store):
    return BusinessCalendar(store)


@pytest.fixture
def ledger(store):
    return AppointmentLedger(store)


@pytest.fixture
def horizon(calendar, ledger, clock):
    return AvailabilityHorizon(calendar, ledger, clock=clock)


@pytest.fixture
def open_every_day(calendar):
    """Open all seven days 09:00-17:00 without lunch."""
    def _open(lunch_start=None, lunch_end=None):
        for dow in range(7):
            calendar.update_business_hours(BusinessHours(
                day_of_week=dow,
                is_open=True,
                open_time="09:00",
                close_time="17:00",
                lunch_start=lunch_start,
                lunch_end=lunch_end,
            ))
        return calendar
    return _open


@pytest.fixture
def strategy_session() -> Service:
    return Service(
        id="service-2",
        name="Strategy Session",
        description="Develop a strategic plan for your business",
        duration_minutes=60,
        price=200.0,
    )


@pytest.fixture
def client() -> Client:
    return Client(id="client-1", name="Test Client", email="client@example.com", phone="123456789")


@pytest.fixture
def book(ledger, strategy_session, client):
    """Add an appointment straight to the ledger."""
    def _book(starts_at: datetime, service: Service = None, notes: str = None):
        return ledger.add_appointment(AppointmentCreate(
            service=service or strategy_session,
            client=client,
            starts_at=starts_at,
            notes=notes,
        ))
    return _book
