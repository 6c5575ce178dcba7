"""
Availability Horizon Scanner for calendar pickers.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator

from .availability import resolve_day
from .schedule import PractitionerSchedule
from .slots import DEFAULT_SLOT_MINUTES
from .weekdays import weekday_code, weekday_label, weekday_of


@dataclass(frozen=True)
class HorizonDay:
    date: date
    weekday: int
    is_today: bool
    is_tomorrow: bool

    @property
    def weekday_code(self) -> str:
        return weekday_code(self.weekday)

    @property
    def weekday_label(self) -> str:
        return weekday_label(self.weekday)

    @property
    def display(self) -> str:
        return self.date.strftime('%d/%m/%Y')

    def as_dict(self) -> dict:
        return {
            'date': self.date.isoformat(),
            'weekday': self.weekday,
            'weekdayCode': self.weekday_code,
            'weekdayLabel': self.weekday_label,
            'display': self.display,
            'isToday': self.is_today,
            'isTomorrow': self.is_tomorrow,
        }


def scan_horizon(schedule: PractitionerSchedule, days_ahead: int = 7, *, today: date,
                 slot_duration_minutes: int = DEFAULT_SLOT_MINUTES) -> Iterator[HorizonDay]:
    """Yield the days in ``[today, today + days_ahead)`` with at least one slot.

    ``today`` comes from the caller's clock; the scanner never reads one.
    """
    if isinstance(days_ahead, bool) or not isinstance(days_ahead, int) or days_ahead < 0:
        raise ValueError(f'days_ahead must be a non-negative integer, got {days_ahead!r}')
    for offset in range(days_ahead):
        day = today + timedelta(days=offset)
        if resolve_day(schedule, day, slot_duration_minutes).is_open:
            yield HorizonDay(date=day, weekday=weekday_of(day), is_today=offset == 0, is_tomorrow=offset == 1)
