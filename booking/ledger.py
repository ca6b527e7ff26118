"""Appointment ledger: the appointment collection and its mutations.

Mutations are synchronous and persist the whole collection. Notifications
are not sent from here; the booking orchestrator dispatches them after a
mutation succeeds.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional

from booking import config
from booking.errors import InvalidTransitionError, NotFoundError, SlotUnavailableError
from booking.logging_config import get_logger
from booking.models import (
    Appointment,
    AppointmentCreate,
    AppointmentPatch,
    AppointmentStatus,
    apply_patch,
)
from booking.slots import intervals_overlap
from booking.storage import KeyValueStore, load_collection, save_collection

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}


def check_transition(current: AppointmentStatus, new: AppointmentStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> new`` is allowed."""
    if current == new:
        return
    if new not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"Cannot change appointment status from {current.value} to {new.value}"
        )


class AppointmentLedger:
    """Owns the appointment records."""

    def __init__(self, store: KeyValueStore, prevent_double_booking: bool = True):
        """
        Args:
            store: Key-value storage backend
            prevent_double_booking: Reject writes whose time overlaps another
                non-cancelled appointment
        """
        self.store = store
        self.prevent_double_booking = prevent_double_booking
        self._appointments = load_collection(store, config.APPOINTMENTS_KEY, Appointment)

    def _save(self) -> None:
        save_collection(self.store, config.APPOINTMENTS_KEY, self._appointments)

    @property
    def appointments(self) -> List[Appointment]:
        return list(self._appointments)

    def find_conflicts(
        self,
        starts_at: datetime,
        duration_minutes: int,
        exclude_id: Optional[str] = None,
    ) -> List[Appointment]:
        """Non-cancelled appointments overlapping the given window."""
        ends_at = starts_at + timedelta(minutes=duration_minutes)
        return [
            apt for apt in self._appointments
            if apt.occupies_slot
            and apt.id != exclude_id
            and intervals_overlap(starts_at, ends_at, apt.starts_at, apt.ends_at)
        ]

    def _ensure_free(self, appointment: Appointment) -> None:
        if not self.prevent_double_booking or not appointment.occupies_slot:
            return
        conflicts = self.find_conflicts(
            appointment.starts_at, appointment.duration_minutes, exclude_id=appointment.id
        )
        if conflicts:
            raise SlotUnavailableError(
                f"Time {appointment.starts_at:%Y-%m-%d %H:%M} overlaps appointment {conflicts[0].id}"
            )

    def add_appointment(self, data: AppointmentCreate) -> Appointment:
        """Create a scheduled appointment."""
        appointment = Appointment(
            service=data.service,
            client=data.client,
            starts_at=data.starts_at,
            notes=data.notes,
        )
        self._ensure_free(appointment)

        self._appointments = [*self._appointments, appointment]
        self._save()
        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            service_id=appointment.service.id,
            starts_at=appointment.starts_at.isoformat(),
        )
        return appointment

    def update_appointment(self, appointment_id: str, patch: AppointmentPatch) -> Appointment:
        current = self.get_appointment(appointment_id)
        if patch.status is not None:
            check_transition(current.status, patch.status)

        updated = apply_patch(current, patch)
        if patch.starts_at is not None or patch.service is not None:
            self._ensure_free(updated)

        self._replace(updated)
        logger.info(
            "appointment_updated",
            appointment_id=appointment_id,
            fields=sorted(patch.model_dump(exclude_unset=True)),
        )
        return updated

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Flag as cancelled; the record is kept."""
        current = self.get_appointment(appointment_id)
        if current.status == AppointmentStatus.CANCELLED:
            raise InvalidTransitionError(f"Appointment {appointment_id} is already cancelled")
        check_transition(current.status, AppointmentStatus.CANCELLED)

        cancelled = current.model_copy(update={"status": AppointmentStatus.CANCELLED})
        self._replace(cancelled)
        logger.info("appointment_cancelled", appointment_id=appointment_id)
        return cancelled

    def complete_appointment(self, appointment_id: str) -> Appointment:
        """Manual admin action; nothing marks appointments completed automatically."""
        current = self.get_appointment(appointment_id)
        check_transition(current.status, AppointmentStatus.COMPLETED)

        completed = current.model_copy(update={"status": AppointmentStatus.COMPLETED})
        self._replace(completed)
        logger.info("appointment_completed", appointment_id=appointment_id)
        return completed

    def delete_appointment(self, appointment_id: str) -> Appointment:
        """Remove the record entirely and return what was removed."""
        removed = self.get_appointment(appointment_id)
        self._appointments = [apt for apt in self._appointments if apt.id != appointment_id]
        self._save()
        logger.info("appointment_deleted", appointment_id=appointment_id)
        return removed

    def _replace(self, appointment: Appointment) -> None:
        self._appointments = [
            appointment if apt.id == appointment.id else apt for apt in self._appointments
        ]
        self._save()

    def find_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return next((apt for apt in self._appointments if apt.id == appointment_id), None)

    def get_appointment(self, appointment_id: str) -> Appointment:
        appointment = self.find_appointment(appointment_id)
        if appointment is None:
            raise NotFoundError("appointment", appointment_id)
        return appointment

    def get_appointments_for_date(self, day: date) -> List[Appointment]:
        """Non-cancelled appointments on ``day``, earliest first."""
        return sorted(
            (apt for apt in self._appointments if apt.starts_at.date() == day and apt.occupies_slot),
            key=lambda apt: apt.starts_at,
        )

    def get_appointments_for_client(self, email: str) -> List[Appointment]:
        email = email.strip().lower()
        return sorted(
            (apt for apt in self._appointments if apt.client.email.lower() == email),
            key=lambda apt: apt.starts_at,
        )

    def list_appointments(self, status: Optional[AppointmentStatus] = None) -> List[Appointment]:
        appointments = self._appointments
        if status is not None:
            appointments = [apt for apt in appointments if apt.status == status]
        return sorted(appointments, key=lambda apt: apt.starts_at)

    def search_appointments(self, text: str) -> List[Appointment]:
        """Match client name, client email or service name (case-insensitive)."""
        needle = text.strip().lower()
        if not needle:
            return self.list_appointments()
        return [
            apt for apt in self.list_appointments()
            if needle in apt.client.name.lower()
            or needle in apt.client.email.lower()
            or needle in apt.service.name.lower()
        ]
