"""Tests for the appointment ledger."""
import json
from datetime import date, datetime

import pytest

from booking.errors import InvalidTransitionError, NotFoundError, SlotUnavailableError
from booking.ledger import AppointmentLedger, check_transition
from booking.models import AppointmentCreate, AppointmentPatch, AppointmentStatus, Client

TEN_AM = datetime(2025, 5, 5, 10, 0)


class TestMutations:

    def test_add_creates_scheduled_appointment(self, ledger, book):
        """Should create a scheduled appointment."""
        appointment = book(TEN_AM, notes="First visit")

        assert appointment.status == AppointmentStatus.SCHEDULED
        assert appointment.id.startswith("apt-")
        assert appointment.notes == "First visit"
        assert ledger.get_appointment(appointment.id) == appointment

    def test_add_persists_collection(self, store, book):
        """Should persist the collection on add."""
        book(TEN_AM)

        saved = json.loads(store.get("appointments"))
        assert len(saved) == 1
        assert saved[0]["status"] == "scheduled"

    def test_cancel_keeps_record(self, ledger, book):
        """Should flag the appointment cancelled and keep it."""
        appointment = book(TEN_AM)

        cancelled = ledger.cancel_appointment(appointment.id)

        assert cancelled.status == AppointmentStatus.CANCELLED
        assert ledger.get_appointment(appointment.id).status == AppointmentStatus.CANCELLED
        assert len(ledger.appointments) == 1

    def test_delete_removes_record(self, ledger, book):
        """Should remove the record and return it."""
        appointment = book(TEN_AM)

        removed = ledger.delete_appointment(appointment.id)

        assert removed.id == appointment.id
        assert ledger.find_appointment(appointment.id) is None
        with pytest.raises(NotFoundError):
            ledger.get_appointment(appointment.id)

    def test_missing_ids_raise_not_found_without_mutation(self, store, ledger, book):
        """Should raise NotFoundError and leave storage untouched."""
        book(TEN_AM)
        before = store.get("appointments")

        for operation in (ledger.cancel_appointment, ledger.delete_appointment):
            with pytest.raises(NotFoundError, match="not found"):
                operation("apt-missing")

        assert store.get("appointments") == before

    def test_cancel_twice_is_rejected(self, ledger, book):
        """Should refuse to cancel twice."""
        appointment = book(TEN_AM)
        ledger.cancel_appointment(appointment.id)

        with pytest.raises(InvalidTransitionError, match="already cancelled"):
            ledger.cancel_appointment(appointment.id)

    def test_update_replaces_fields(self, ledger, book):
        """Should apply the patch and persist it."""
        appointment = book(TEN_AM)

        updated = ledger.update_appointment(appointment.id, AppointmentPatch(notes="Bring documents"))

        assert updated.notes == "Bring documents"
        assert updated.starts_at == TEN_AM
        assert ledger.get_appointment(appointment.id).notes == "Bring documents"

    def test_complete_is_manual_transition(self, ledger, book):
        """Should complete and then refuse cancellation."""
        appointment = book(TEN_AM)

        completed = ledger.complete_appointment(appointment.id)

        assert completed.status == AppointmentStatus.COMPLETED
        with pytest.raises(InvalidTransitionError):
            ledger.cancel_appointment(appointment.id)


class TestDoubleBooking:

    def test_overlapping_booking_rejected(self, book):
        """Should reject an overlapping booking."""
        book(TEN_AM)

        with pytest.raises(SlotUnavailableError):
            book(datetime(2025, 5, 5, 10, 30))

    def test_adjacent_booking_allowed(self, ledger, book):
        """Should allow back-to-back bookings."""
        book(TEN_AM)
        book(datetime(2025, 5, 5, 11, 0))

        assert len(ledger.get_appointments_for_date(date(2025, 5, 5))) == 2

    def test_cancelled_time_can_be_rebooked(self, ledger, book):
        """Should allow rebooking cancelled time."""
        first = book(TEN_AM)
        ledger.cancel_appointment(first.id)

        second = book(TEN_AM)

        assert second.id != first.id

    def test_reschedule_onto_other_booking_rejected(self, ledger, book):
        """Should reject moving onto another booking."""
        book(TEN_AM)
        other = book(datetime(2025, 5, 5, 14, 0))

        with pytest.raises(SlotUnavailableError):
            ledger.update_appointment(other.id, AppointmentPatch(starts_at=datetime(2025, 5, 5, 10, 30)))

    def test_reschedule_overlapping_itself_allowed(self, ledger, book):
        """Should allow moving over its own time."""
        appointment = book(TEN_AM)

        moved = ledger.update_appointment(appointment.id, AppointmentPatch(starts_at=datetime(2025, 5, 5, 10, 30)))

        assert moved.starts_at == datetime(2025, 5, 5, 10, 30)

    def test_check_can_be_disabled(self, store, strategy_session, client):
        """Should accept overlaps when the check is disabled."""
        ledger = AppointmentLedger(store, prevent_double_booking=False)
        for _ in range(2):
            ledger.add_appointment(AppointmentCreate(
                service=strategy_session, client=client, starts_at=TEN_AM
            ))

        assert len(ledger.appointments) == 2


class TestQueries:

    def test_appointments_for_date_exclude_cancelled(self, ledger, book):
        """Should list the day's active appointments only."""
        kept = book(TEN_AM)
        dropped = book(datetime(2025, 5, 5, 14, 0))
        book(datetime(2025, 5, 6, 10, 0))
        ledger.cancel_appointment(dropped.id)

        result = ledger.get_appointments_for_date(date(2025, 5, 5))

        assert [a.id for a in result] == [kept.id]

    def test_appointments_for_client_ignore_case(self, ledger, strategy_session):
        """Should match client email case-insensitively."""
        ledger.add_appointment(AppointmentCreate(
            service=strategy_session,
            client=Client(name="Maria", email="Maria@Example.com"),
            starts_at=TEN_AM,
        ))

        assert len(ledger.get_appointments_for_client("maria@example.com")) == 1
        assert ledger.get_appointments_for_client("other@example.com") == []

    def test_list_filters_by_status(self, ledger, book):
        """Should filter the list by status."""
        first = book(TEN_AM)
        book(datetime(2025, 5, 5, 14, 0))
        ledger.cancel_appointment(first.id)

        assert len(ledger.list_appointments()) == 2
        assert [a.id for a in ledger.list_appointments(AppointmentStatus.CANCELLED)] == [first.id]

    def test_search_matches_client_and_service(self, ledger, book):
        """Should match client and service names."""
        book(TEN_AM)

        assert len(ledger.search_appointments("test client")) == 1
        assert len(ledger.search_appointments("strategy")) == 1
        assert ledger.search_appointments("massage") == []

    def test_find_conflicts(self, ledger, book):
        """Should report overlapping appointments only."""
        booked = book(TEN_AM)

        assert ledger.find_conflicts(datetime(2025, 5, 5, 9, 30), 60) == [booked]
        assert ledger.find_conflicts(datetime(2025, 5, 5, 9, 0), 60) == []
        assert ledger.find_conflicts(TEN_AM, 60, exclude_id=booked.id) == []


class TestPersistence:

    def test_round_trip_preserves_id_status_and_instant(self, store, ledger, book):
        """Should reload the same id, status and start."""
        first = book(TEN_AM)
        second = book(datetime(2025, 5, 6, 15, 30))
        ledger.cancel_appointment(second.id)

        reloaded = AppointmentLedger(store)

        triples = {(a.id, a.status, a.starts_at) for a in reloaded.appointments}
        assert triples == {
            (first.id, AppointmentStatus.SCHEDULED, TEN_AM),
            (second.id, AppointmentStatus.CANCELLED, datetime(2025, 5, 6, 15, 30)),
        }

    def test_corrupt_collection_starts_empty(self, store):
        """Should start empty when storage is corrupt."""
        store.set("appointments", '[{"id": 1')

        assert AppointmentLedger(store).appointments == []


@pytest.mark.parametrize("current,new,allowed", [
    (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED, True),
    (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED, True),
    (AppointmentStatus.CANCELLED, AppointmentStatus.SCHEDULED, False),
    (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, False),
])
def test_status_transitions(current, new, allowed):
    """Should allow only scheduled to cancelled or completed."""
    if allowed:
        check_transition(current, new)
    else:
        with pytest.raises(InvalidTransitionError):
            check_transition(current, new)
