"""Booking orchestrator.

Each operation performs the state change first (ledger / calendar /
catalog) and then, as a separate follow-up step, dispatches the client
notification. A failed notification is reported in the result but never
undoes the change.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field

from booking.availability import AvailabilityHorizon
from booking.calendar import BusinessCalendar
from booking.catalog import ServiceCatalog
from booking.clock import SystemClock
from booking.config import Settings, load_settings
from booking.errors import InvalidTransitionError, SlotUnavailableError
from booking.ledger import AppointmentLedger
from booking.logging_config import get_logger
from booking.models import (
    Appointment,
    AppointmentCreate,
    AppointmentPatch,
    AppointmentStatus,
    Client,
    DateWithSlots,
    NotificationPreferences,
    TimeSlot,
)
from booking.notifications import (
    EmailNotifier,
    NotificationDispatcher,
    NotificationPreferencesStore,
    WhatsAppNotifier,
    appointments_due_for_reminder,
)
from booking.slots import find_slot
from booking.storage import KeyValueStore, create_store
from booking.users import AuthSession, UserDirectory

logger = get_logger(__name__)


class BookingRequest(BaseModel):
    """Client-facing booking input."""
    service_id: str = Field(..., min_length=1)
    client: Client
    starts_at: datetime
    notes: Optional[str] = Field(None, max_length=1000)


@dataclass
class BookingResult:
    """Outcome of a mutation plus whether the client was notified."""
    appointment: Appointment
    notified: bool


class BookingService:
    """Coordinates catalog, calendar, ledger, availability and notifications."""

    def __init__(
        self,
        catalog: ServiceCatalog,
        calendar: BusinessCalendar,
        ledger: AppointmentLedger,
        horizon: AvailabilityHorizon,
        dispatcher: NotificationDispatcher,
        clock=None,
    ):
        self.catalog = catalog
        self.calendar = calendar
        self.ledger = ledger
        self.horizon = horizon
        self.dispatcher = dispatcher
        self.clock = clock or SystemClock()

    def _notify(self, kind: str, appointment: Appointment) -> bool:
        sent = getattr(self.dispatcher, f"send_{kind}")(appointment)
        if not sent:
            logger.warning("client_not_notified", kind=kind, appointment_id=appointment.id)
        return sent

    def _check_slot(
        self,
        starts_at: datetime,
        duration_minutes: int,
        ignore_appointment_id: Optional[str] = None,
    ) -> None:
        day = starts_at.date()
        if not self.calendar.is_date_available(day):
            raise SlotUnavailableError(f"The business is closed on {day.isoformat()}")

        slots = self.horizon.get_available_time_slots(
            day, duration_minutes, ignore_appointment_id=ignore_appointment_id
        )
        slot = find_slot(slots, starts_at)
        if slot is None or starts_at.second or starts_at.microsecond:
            raise SlotUnavailableError(f"{starts_at:%H:%M} is not a bookable start time")
        if not slot.available:
            raise SlotUnavailableError(
                f"This time slot is no longer available ({starts_at:%Y-%m-%d %H:%M})"
            )

    # Bookings

    def book(self, request: BookingRequest) -> BookingResult:
        """
        Book a service at the requested start time.

        Raises:
            NotFoundError: Unknown service
            SlotUnavailableError: Closed day, off-grid time, or slot taken
        """
        service = self.catalog.get_service(request.service_id)
        self._check_slot(request.starts_at, service.duration_minutes)

        appointment = self.ledger.add_appointment(AppointmentCreate(
            service=service,
            client=request.client,
            starts_at=request.starts_at,
            notes=request.notes,
        ))
        return BookingResult(appointment, self._notify("confirmation", appointment))

    def reschedule(self, appointment_id: str, starts_at: datetime) -> BookingResult:
        current = self.ledger.get_appointment(appointment_id)
        if current.status != AppointmentStatus.SCHEDULED:
            raise InvalidTransitionError(
                f"Cannot reschedule {current.status.value} appointment {appointment_id}"
            )
        self._check_slot(starts_at, current.duration_minutes, ignore_appointment_id=appointment_id)

        appointment = self.ledger.update_appointment(appointment_id, AppointmentPatch(starts_at=starts_at))
        return BookingResult(appointment, self._notify("confirmation", appointment))

    def update_appointment(self, appointment_id: str, patch: AppointmentPatch) -> BookingResult:
        appointment = self.ledger.update_appointment(appointment_id, patch)
        return BookingResult(appointment, self._notify("confirmation", appointment))

    def cancel_appointment(self, appointment_id: str) -> BookingResult:
        appointment = self.ledger.cancel_appointment(appointment_id)
        return BookingResult(appointment, self._notify("cancellation", appointment))

    def delete_appointment(self, appointment_id: str) -> BookingResult:
        appointment = self.ledger.delete_appointment(appointment_id)
        return BookingResult(appointment, self._notify("cancellation", appointment))

    def complete_appointment(self, appointment_id: str) -> Appointment:
        return self.ledger.complete_appointment(appointment_id)

    # Reminders

    def send_reminder(self, appointment_id: str) -> bool:
        appointment = self.ledger.get_appointment(appointment_id)
        return self._notify("reminder", appointment)

    def send_due_reminders(
        self,
        email: str,
        preferences: NotificationPreferences,
    ) -> List[Tuple[Appointment, bool]]:
        """Remind ``email`` of every appointment inside their reminder window."""
        due = appointments_due_for_reminder(
            self.ledger.appointments, email, preferences, self.clock.now()
        )
        return [(apt, self._notify("reminder", apt)) for apt in due]

    # Availability

    def get_available_time_slots(self, day: date, duration_minutes: int) -> List[TimeSlot]:
        return self.horizon.get_available_time_slots(day, duration_minutes)

    def get_available_dates(self, duration_minutes: int) -> List[DateWithSlots]:
        return self.horizon.get_available_dates(duration_minutes)

    def get_service_availability(self, service_id: str, day: date) -> List[TimeSlot]:
        service = self.catalog.get_service(service_id)
        return self.get_available_time_slots(day, service.duration_minutes)

    def get_service_available_dates(self, service_id: str) -> List[DateWithSlots]:
        service = self.catalog.get_service(service_id)
        return self.get_available_dates(service.duration_minutes)


@dataclass
class BookingApp:
    """Everything wired for one process: the orchestrator plus its collaborators."""
    settings: Settings
    store: KeyValueStore
    booking: BookingService
    users: UserDirectory
    auth: AuthSession
    preferences: NotificationPreferencesStore
    whatsapp: WhatsAppNotifier


def build_booking_app(
    settings: Optional[Settings] = None,
    store: Optional[KeyValueStore] = None,
    clock=None,
    channels: Optional[list] = None,
) -> BookingApp:
    """
    Construct every store and service once, sharing a single storage backend.

    Args:
        settings: Runtime settings (defaults to the environment)
        store: Storage backend (defaults to the one selected in settings)
        clock: Clock used for "today"/"now"
        channels: Notification channels (defaults to email + WhatsApp)
    """
    settings = settings or load_settings()
    store = store if store is not None else create_store(settings)
    clock = clock or SystemClock()

    whatsapp = WhatsAppNotifier(store)
    if channels is None:
        channels = [EmailNotifier(delay_seconds=settings.notification_delay_seconds), whatsapp]

    calendar = BusinessCalendar(store, special_date_lunch=settings.special_date_lunch)
    ledger = AppointmentLedger(store, prevent_double_booking=settings.prevent_double_booking)
    horizon = AvailabilityHorizon(
        calendar, ledger, clock=clock, exclude_past_slots=settings.exclude_past_slots
    )
    booking = BookingService(
        catalog=ServiceCatalog(store),
        calendar=calendar,
        ledger=ledger,
        horizon=horizon,
        dispatcher=NotificationDispatcher(channels),
        clock=clock,
    )
    users = UserDirectory(store, settings.admin_email, settings.admin_password)

    return BookingApp(
        settings=settings,
        store=store,
        booking=booking,
        users=users,
        auth=AuthSession(store, users),
        preferences=NotificationPreferencesStore(store),
        whatsapp=whatsapp,
    )
