"""End-to-end booking flows through the orchestrator."""
from datetime import date, datetime
from unittest.mock import Mock

import pytest

from booking.booking_service import BookingRequest, build_booking_app
from booking.clock import FixedClock
from booking.config import Settings
from booking.errors import InvalidTransitionError, NotFoundError, SlotUnavailableError
from booking.models import AppointmentStatus, Client, NotificationPreferences
from booking.notifications import EmailNotifier, WhatsAppNotifier
from booking.storage import InMemoryStore

# Monday 08:00; default week is Mon-Fri 09:00-18:00 with lunch 12:00-13:00
NOW = datetime(2025, 5, 5, 8, 0)
TUESDAY = date(2025, 5, 6)


@pytest.fixture
def channel():
    channel = Mock(channel="email")
    channel.send_confirmation.return_value = True
    channel.send_cancellation.return_value = True
    channel.send_reminder.return_value = True
    return channel


@pytest.fixture
def app(channel):
    return build_booking_app(
        Settings(), store=InMemoryStore(), clock=FixedClock(NOW), channels=[channel]
    )


@pytest.fixture
def service(app):
    return app.booking


def request_for(starts_at, service_id="service-2", email="maria@example.com"):
    return BookingRequest(
        service_id=service_id,
        client=Client(name="Maria Lopez", email=email, phone="+34600000000"),
        starts_at=starts_at,
    )


def slot_state(service, day, time, service_id="service-2"):
    slots = service.get_service_availability(service_id, day)
    return next(s.available for s in slots if s.time == time)


class TestBooking:

    def test_book_confirms_and_notifies(self, service, channel):
        """Should book the slot, notify the client and block overlapping starts."""
        result = service.book(request_for(datetime(2025, 5, 6, 10, 0)))

        assert result.notified is True
        assert result.appointment.status == AppointmentStatus.SCHEDULED
        assert result.appointment.service.name == "Strategy Session"
        channel.send_confirmation.assert_called_once_with(result.appointment)
        assert slot_state(service, TUESDAY, "10:00") is False
        assert slot_state(service, TUESDAY, "09:30") is False
        assert slot_state(service, TUESDAY, "11:00") is True

    def test_failed_notification_keeps_booking(self, service, channel):
        """Should keep the booking when no channel delivers."""
        channel.send_confirmation.return_value = False

        result = service.book(request_for(datetime(2025, 5, 6, 10, 0)))

        assert result.notified is False
        assert service.ledger.get_appointment(result.appointment.id)

    def test_raising_channel_keeps_booking(self, service, channel):
        """Should keep the booking when a channel raises."""
        channel.send_confirmation.side_effect = RuntimeError("smtp down")

        result = service.book(request_for(datetime(2025, 5, 6, 10, 0)))

        assert result.notified is False
        assert len(service.ledger.appointments) == 1

    def test_taken_slot_rejected(self, service, channel):
        """Should refuse an overlapping booking without notifying."""
        service.book(request_for(datetime(2025, 5, 6, 10, 0)))

        with pytest.raises(SlotUnavailableError, match="no longer available"):
            service.book(request_for(datetime(2025, 5, 6, 10, 30), email="other@example.com"))
        assert channel.send_confirmation.call_count == 1

    @pytest.mark.parametrize("starts_at", [
        datetime(2025, 5, 6, 10, 15),
        datetime(2025, 5, 6, 12, 0),
        datetime(2025, 5, 6, 17, 30),
        datetime(2025, 5, 6, 7, 0),
    ])
    def test_unbookable_times_rejected(self, service, starts_at):
        """Should refuse off-grid, lunch, late and early starts."""
        with pytest.raises(SlotUnavailableError):
            service.book(request_for(starts_at))
        assert service.ledger.appointments == []

    def test_closed_day_rejected(self, service):
        """Should refuse bookings on a closed day."""
        with pytest.raises(SlotUnavailableError, match="closed"):
            service.book(request_for(datetime(2025, 5, 11, 10, 0)))

    def test_unknown_service(self, service):
        """Should raise NotFoundError for an unknown service."""
        with pytest.raises(NotFoundError):
            service.book(request_for(datetime(2025, 5, 6, 10, 0), service_id="service-9"))


class TestChanges:

    @pytest.fixture
    def booked(self, service):
        return service.book(request_for(datetime(2025, 5, 6, 10, 0))).appointment

    def test_reschedule_moves_and_frees_old_time(self, service, channel, booked):
        """Should free the old slot and take the new one."""
        result = service.reschedule(booked.id, datetime(2025, 5, 7, 14, 0))

        assert result.appointment.starts_at == datetime(2025, 5, 7, 14, 0)
        assert slot_state(service, TUESDAY, "10:00") is True
        assert slot_state(service, date(2025, 5, 7), "14:00") is False
        assert channel.send_confirmation.call_count == 2

    def test_reschedule_may_overlap_own_time(self, service, booked):
        """Should allow moving into time the same booking occupies."""
        result = service.reschedule(booked.id, datetime(2025, 5, 6, 10, 30))

        assert result.appointment.id == booked.id

    def test_cancelled_cannot_be_rescheduled(self, service, booked):
        """Should refuse to reschedule a cancelled appointment."""
        service.cancel_appointment(booked.id)

        with pytest.raises(InvalidTransitionError):
            service.reschedule(booked.id, datetime(2025, 5, 7, 14, 0))

    def test_cancel_frees_slot_and_keeps_record(self, service, channel, booked):
        """Should keep the record, free the slot and notify."""
        result = service.cancel_appointment(booked.id)

        assert result.appointment.status == AppointmentStatus.CANCELLED
        assert service.ledger.get_appointment(booked.id).status == AppointmentStatus.CANCELLED
        assert slot_state(service, TUESDAY, "10:00") is True
        channel.send_cancellation.assert_called_once()

    def test_delete_removes_and_notifies(self, service, channel, booked):
        """Should delete the record and send a cancellation."""
        service.delete_appointment(booked.id)

        with pytest.raises(NotFoundError):
            service.ledger.get_appointment(booked.id)
        channel.send_cancellation.assert_called_once()

    def test_complete(self, service, booked):
        """Should mark the appointment completed."""
        completed = service.complete_appointment(booked.id)

        assert completed.status == AppointmentStatus.COMPLETED


class TestReminders:

    def test_send_reminder(self, service, channel):
        """Should send a reminder for one appointment."""
        booked = service.book(request_for(datetime(2025, 5, 6, 10, 0))).appointment

        assert service.send_reminder(booked.id) is True
        channel.send_reminder.assert_called_once_with(booked)

    def test_due_reminders_follow_window(self, service, channel):
        """Should remind only appointments inside the reminder window."""
        today = service.book(request_for(datetime(2025, 5, 5, 10, 0))).appointment
        service.book(request_for(datetime(2025, 5, 6, 10, 0)))

        sent = service.send_due_reminders("maria@example.com", NotificationPreferences())

        assert sent == [(today, True)]
        assert len(service.send_due_reminders("maria@example.com", NotificationPreferences(reminder_hours=48))) == 2


class TestAvailability:

    def test_horizon_skips_sundays(self, service):
        """Should list twelve open days over two weeks."""
        dates = service.get_service_available_dates("service-1")

        assert len(dates) == 12
        assert dates[0].date == date(2025, 5, 5)
        assert all(d.date.weekday() != 6 for d in dates)

    def test_saturday_hours(self, service):
        """Should stop the Saturday grid at half past noon."""
        slots = service.get_service_availability("service-1", date(2025, 5, 10))

        assert [s.time for s in slots][-1] == "12:30"

    def test_unknown_service_availability(self, service):
        """Should raise NotFoundError when querying an unknown service."""
        with pytest.raises(NotFoundError):
            service.get_service_availability("missing", TUESDAY)


def test_default_channels_and_shared_store():
    """Should wire email and WhatsApp over one shared store."""
    store = InMemoryStore()
    app = build_booking_app(Settings(), store=store, clock=FixedClock(NOW))

    channels = app.booking.dispatcher.channels
    assert [type(c) for c in channels] == [EmailNotifier, WhatsAppNotifier]
    assert channels[1] is app.whatsapp

    result = app.booking.book(request_for(datetime(2025, 5, 6, 10, 0)))

    assert result.notified is True
    reopened = build_booking_app(Settings(), store=store, clock=FixedClock(NOW))
    assert reopened.booking.ledger.get_appointment(result.appointment.id).status == AppointmentStatus.SCHEDULED
