"""Tests for the service catalog."""
from datetime import datetime

import pytest

from booking.catalog import ServiceCatalog
from booking.errors import NotFoundError
from booking.models import ServiceCreate, ServicePatch


@pytest.fixture
def catalog(store):
    return ServiceCatalog(store)


def test_seeds_default_services(catalog):
    """Should seed the three default services."""
    services = catalog.list_services()

    assert [s.id for s in services] == ["service-1", "service-2", "service-3"]
    assert [s.duration_minutes for s in services] == [30, 60, 90]


def test_add_service_persists(store, catalog):
    """Should persist an added service."""
    added = catalog.add_service(ServiceCreate(name="Audit", duration_minutes=45, price=150))

    reloaded = ServiceCatalog(store)

    assert added.id.startswith("srv-")
    assert reloaded.get_service(added.id).name == "Audit"


def test_update_service_changes_only_given_fields(catalog):
    """Should change only the patched fields."""
    updated = catalog.update_service("service-1", ServicePatch(price=120))

    assert updated.price == 120
    assert updated.duration_minutes == 30
    assert catalog.get_service("service-1").price == 120


def test_delete_service(catalog):
    """Should remove the service."""
    catalog.delete_service("service-3")

    with pytest.raises(NotFoundError):
        catalog.get_service("service-3")


def test_unknown_service(catalog):
    """Should raise NotFoundError for an unknown service."""
    with pytest.raises(NotFoundError, match="Service 'nope' not found"):
        catalog.update_service("nope", ServicePatch(price=1))


def test_edit_does_not_touch_booked_snapshot(catalog, ledger, book):
    """Should leave booked service snapshots unchanged."""
    appointment = book(
        datetime(2025, 5, 5, 10, 0),
        service=catalog.get_service("service-2"),
    )

    catalog.update_service("service-2", ServicePatch(duration_minutes=120))

    assert ledger.get_appointment(appointment.id).duration_minutes == 60
