"""Business calendar: weekly hours plus special-date overrides.

Precedence: a special date for a calendar day replaces that weekday's
template entirely. Weekdays are numbered 0 = Sunday ... 6 = Saturday.
"""
from datetime import date
from typing import List, Optional

from booking import config
from booking.errors import NotFoundError
from booking.logging_config import get_logger
from booking.models import (
    BusinessHours,
    DayHours,
    SpecialDate,
    SpecialDateCreate,
    SpecialDatePatch,
    apply_patch,
)
from booking.storage import KeyValueStore, load_collection, save_collection

logger = get_logger(__name__)


def day_of_week(day: date) -> int:
    """Weekday with Sunday as 0."""
    return (day.weekday() + 1) % 7


def default_business_hours() -> List[BusinessHours]:
    return [BusinessHours(**hours) for hours in config.DEFAULT_BUSINESS_HOURS]


class BusinessCalendar:
    """
    Owns the seven weekly templates and the special-date overrides.

    Every mutation persists the full collection it touched.
    """

    def __init__(self, store: KeyValueStore, special_date_lunch: bool = True):
        """
        Args:
            store: Key-value storage backend
            special_date_lunch: Whether lunch breaks configured on special
                dates are part of their hours
        """
        self.store = store
        self.special_date_lunch = special_date_lunch
        self._business_hours = self._load_business_hours()
        self._special_dates = load_collection(store, config.SPECIAL_DATES_KEY, SpecialDate)

    def _load_business_hours(self) -> List[BusinessHours]:
        hours = load_collection(
            self.store, config.BUSINESS_HOURS_KEY, BusinessHours, default_business_hours
        )
        days = sorted(h.day_of_week for h in hours)
        if days != list(range(7)):
            logger.warning("storage_reset", key=config.BUSINESS_HOURS_KEY, reason="incomplete_week")
            hours = default_business_hours()
        return sorted(hours, key=lambda h: h.day_of_week)

    @property
    def business_hours(self) -> List[BusinessHours]:
        return list(self._business_hours)

    @property
    def special_dates(self) -> List[SpecialDate]:
        return list(self._special_dates)

    def get_business_hours(self, dow: int) -> Optional[BusinessHours]:
        return next((h for h in self._business_hours if h.day_of_week == dow), None)

    def update_business_hours(self, hours: BusinessHours) -> None:
        """Replace the template for ``hours.day_of_week``."""
        if self.get_business_hours(hours.day_of_week) is None:
            return

        self._business_hours = [
            hours if h.day_of_week == hours.day_of_week else h
            for h in self._business_hours
        ]
        save_collection(self.store, config.BUSINESS_HOURS_KEY, self._business_hours)
        logger.info("business_hours_updated", day_of_week=hours.day_of_week, is_open=hours.is_open)

    def add_special_date(self, data: SpecialDateCreate) -> SpecialDate:
        """Append an override. Existing entries for the same day are kept."""
        special_date = SpecialDate(**data.model_dump())
        self._special_dates = [*self._special_dates, special_date]
        save_collection(self.store, config.SPECIAL_DATES_KEY, self._special_dates)
        logger.info(
            "special_date_added",
            special_date_id=special_date.id,
            date=special_date.date.isoformat(),
            is_open=special_date.is_open,
        )
        return special_date

    def update_special_date(self, special_date_id: str, patch: SpecialDatePatch) -> SpecialDate:
        current = self._get_special_date(special_date_id)
        updated = apply_patch(current, patch)
        self._special_dates = [
            updated if sd.id == special_date_id else sd for sd in self._special_dates
        ]
        save_collection(self.store, config.SPECIAL_DATES_KEY, self._special_dates)
        logger.info("special_date_updated", special_date_id=special_date_id)
        return updated

    def delete_special_date(self, special_date_id: str) -> None:
        self._get_special_date(special_date_id)
        self._special_dates = [sd for sd in self._special_dates if sd.id != special_date_id]
        save_collection(self.store, config.SPECIAL_DATES_KEY, self._special_dates)
        logger.info("special_date_deleted", special_date_id=special_date_id)

    def _get_special_date(self, special_date_id: str) -> SpecialDate:
        special_date = next((sd for sd in self._special_dates if sd.id == special_date_id), None)
        if special_date is None:
            raise NotFoundError("special date", special_date_id)
        return special_date

    def find_special_date(self, day: date) -> Optional[SpecialDate]:
        """Override for ``day``; the most recently added one wins."""
        matches = [sd for sd in self._special_dates if sd.date == day]
        return matches[-1] if matches else None

    def is_date_available(self, day: date) -> bool:
        special_date = self.find_special_date(day)
        if special_date is not None:
            return special_date.is_open

        hours = self.get_business_hours(day_of_week(day))
        return hours.is_open if hours else False

    def get_hours_for_date(self, day: date) -> Optional[DayHours]:
        """Opening window for ``day``, or ``None`` when closed."""
        special_date = self.find_special_date(day)
        if special_date is not None:
            if not special_date.is_open:
                return None
            hours = DayHours(
                open_time=special_date.open_time or config.SPECIAL_DATE_DEFAULT_OPEN,
                close_time=special_date.close_time or config.SPECIAL_DATE_DEFAULT_CLOSE,
            )
            if self.special_date_lunch:
                hours.lunch_start = special_date.lunch_start
                hours.lunch_end = special_date.lunch_end
            return hours

        weekly = self.get_business_hours(day_of_week(day))
        if weekly is None or not weekly.is_open:
            return None

        return DayHours(
            open_time=weekly.open_time,
            close_time=weekly.close_time,
            lunch_start=weekly.lunch_start,
            lunch_end=weekly.lunch_end,
        )
