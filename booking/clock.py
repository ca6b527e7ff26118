"""Clock abstraction so "now" can be pinned in tests."""
from datetime import date, datetime, timedelta
from typing import Optional


class SystemClock:
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock frozen at a given moment; can be moved forward explicitly."""

    def __init__(self, moment: datetime):
        self._moment = moment

    def now(self) -> datetime:
        return self._moment

    def today(self) -> date:
        return self._moment.date()

    def advance(self, delta: Optional[timedelta] = None, **kwargs) -> datetime:
        """Move the clock forward by ``delta`` or ``timedelta(**kwargs)``."""
        self._moment += delta if delta is not None else timedelta(**kwargs)
        return self._moment
