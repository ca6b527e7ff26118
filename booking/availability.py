"""Availability over a rolling horizon of days.

Projects the slot generator over the next N calendar days starting today,
skipping days the business calendar reports closed.
"""
from datetime import date, timedelta
from typing import List, Optional

from booking import config
from booking.calendar import BusinessCalendar
from booking.clock import SystemClock
from booking.ledger import AppointmentLedger
from booking.models import DateWithSlots, TimeSlot
from booking.slots import generate_time_slots


class AvailabilityHorizon:
    """Bookable slots for a day, and for every open day in the horizon."""

    def __init__(
        self,
        calendar: BusinessCalendar,
        ledger: AppointmentLedger,
        clock=None,
        days: int = config.AVAILABILITY_HORIZON_DAYS,
        exclude_past_slots: bool = False,
    ):
        """
        Args:
            calendar: Source of opening hours
            ledger: Source of existing bookings
            clock: Object with ``now()``/``today()`` (defaults to wall clock)
            days: Horizon length, today included
            exclude_past_slots: Mark ticks earlier than now unavailable
        """
        self.calendar = calendar
        self.ledger = ledger
        self.clock = clock or SystemClock()
        self.days = days
        self.exclude_past_slots = exclude_past_slots

    def get_available_time_slots(
        self,
        day: date,
        duration_minutes: int,
        ignore_appointment_id: Optional[str] = None,
    ) -> List[TimeSlot]:
        """
        Slot grid for one day; empty when the day is closed.

        Args:
            day: Calendar day
            duration_minutes: Length of the service being booked
            ignore_appointment_id: Booking to leave out (when moving it)
        """
        if not self.calendar.is_date_available(day):
            return []

        existing = [
            apt for apt in self.ledger.get_appointments_for_date(day)
            if apt.id != ignore_appointment_id
        ]
        not_before = self.clock.now() if self.exclude_past_slots else None
        return generate_time_slots(
            day,
            duration_minutes,
            existing,
            self.calendar.get_hours_for_date(day),
            not_before=not_before,
        )

    def get_available_dates(self, duration_minutes: int, start: Optional[date] = None) -> List[DateWithSlots]:
        """
        Open days in the horizon with their slot grids.

        Days whose slots are all unavailable are still included.
        """
        first_day = start or self.clock.today()
        dates = []

        for offset in range(self.days):
            day = first_day + timedelta(days=offset)
            if not self.calendar.is_date_available(day):
                continue
            dates.append(DateWithSlots(
                date=day,
                slots=self.get_available_time_slots(day, duration_minutes),
            ))

        return dates
