"""Time source for the engine.

Everything that depends on "today" goes through a Clock so tests and the
test mode can pin the calendar.
"""

from calendar import monthrange
from datetime import datetime

from nissekomm.config import Settings


class Clock:
    """Base clock. Subclasses only need to implement now()."""

    def now(self) -> datetime:
        raise NotImplementedError

    def current_day(self) -> int:
        return self.now().day

    def current_month(self) -> int:
        return self.now().month

    def iso_now(self) -> str:
        return self.now().isoformat()

    def hhmm(self) -> str:
        return self.now().strftime("%H:%M")

    def timestamp_ms(self) -> int:
        return int(self.now().timestamp() * 1000)


class FixedClock(Clock):
    """Clock frozen at a given moment. Used by tests and test mode."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance_to(self, moment: datetime) -> None:
        self.moment = moment


class SystemClock(Clock):
    """Wall clock, with optional mock day/month overrides from settings."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def now(self) -> datetime:
        moment = datetime.now()
        month = self.settings.mock_month or moment.month
        day = self.settings.mock_day or moment.day
        # Clamp so a mock day of 31 still works in a 30-day month
        day = min(day, monthrange(moment.year, month)[1])
        return moment.replace(month=month, day=day)

    def current_day(self) -> int:
        if self.settings.mock_day is not None:
            return self.settings.mock_day
        return super().current_day()

    def current_month(self) -> int:
        if self.settings.mock_month is not None:
            return self.settings.mock_month
        return super().current_month()
