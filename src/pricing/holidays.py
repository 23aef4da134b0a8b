from datetime import date
from typing import Iterable

class HolidayCalendar:
    """Holiday lookup used by the pricing calendar rule.

    No holiday source is wired in yet, so the default calendar is empty and every
    date resolves to weekday or weekend pricing. Pass explicit dates to enable
    holiday rates.
    """

    def __init__(self, holidays: Iterable[date] = ()):
        self._holidays = frozenset(holidays)

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays
