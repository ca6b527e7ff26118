"""Slot generation for a single day.

The grid starts exactly at the opening time and advances in fixed steps
until (excluding) the closing time. Every tick is emitted; ticks that
cannot host the service are marked unavailable rather than dropped.
"""
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional

from booking import config
from booking.models import Appointment, DayHours, TimeSlot


def parse_time(value: str) -> time:
    """Parse an ``HH:MM`` string."""
    return datetime.strptime(value, "%H:%M").time()


def at(day: date, hhmm: str) -> datetime:
    """Anchor an ``HH:MM`` wall-clock time to ``day``."""
    return datetime.combine(day, parse_time(hhmm))


def intervals_overlap(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    """
    Half-open overlap of [start, end) and [other_start, other_end).

    Covers start inside the other window, end inside it, and full
    containment. Windows that only touch do not overlap.
    """
    return start < other_end and end > other_start


def generate_time_slots(
    day: date,
    duration_minutes: int,
    existing_appointments: Iterable[Appointment],
    hours: Optional[DayHours],
    not_before: Optional[datetime] = None,
    interval_minutes: int = config.SLOT_INTERVAL_MINUTES,
) -> List[TimeSlot]:
    """
    Build the slot grid for ``day``.

    Args:
        day: Calendar day to generate slots for
        duration_minutes: Length of the service being booked
        existing_appointments: Bookings on that day that occupy time
        hours: Opening window for the day, ``None`` when closed
        not_before: Ticks starting earlier than this are unavailable
        interval_minutes: Grid step

    Returns:
        Slots in ascending time order (empty when closed)
    """
    if hours is None:
        return []

    open_at = at(day, hours.open_time)
    close_at = at(day, hours.close_time)

    lunch = None
    if hours.lunch_start and hours.lunch_end:
        lunch = (at(day, hours.lunch_start), at(day, hours.lunch_end))

    booked = [
        (apt.starts_at, apt.ends_at)
        for apt in existing_appointments
        if apt.occupies_slot and apt.starts_at.date() == day
    ]

    duration = timedelta(minutes=duration_minutes)
    step = timedelta(minutes=interval_minutes)

    slots = []
    current = open_at
    while current < close_at:
        slot_end = current + duration

        is_during_lunch = lunch is not None and intervals_overlap(current, slot_end, *lunch)
        ends_before_close = slot_end <= close_at
        is_overlapping = any(
            intervals_overlap(current, slot_end, start, end) for start, end in booked
        )
        is_past = not_before is not None and current < not_before

        slots.append(TimeSlot(
            time=current.strftime("%H:%M"),
            available=not (is_overlapping or is_during_lunch or is_past) and ends_before_close,
        ))
        current += step

    return slots


def find_slot(slots: List[TimeSlot], starts_at: datetime) -> Optional[TimeSlot]:
    """Slot whose tick matches the wall-clock time of ``starts_at``."""
    label = starts_at.strftime("%H:%M")
    return next((slot for slot in slots if slot.time == label), None)
