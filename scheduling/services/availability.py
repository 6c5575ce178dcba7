"""
Availability Resolver.

Resolves the offerable slots for one practitioner on one date:

    1. Look for a date override.
    2. If there is one (even an empty one) slot its open intervals and stop.
    3. Otherwise compute the weekday, take the weekly rules effective on the
       date and slot their working intervals.

Also hosts the working-hours check used before a booking is accepted.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from .overrides import override_for_date
from .schedule import PractitionerSchedule, Slot
from .slots import DEFAULT_SLOT_MINUTES, generate_slots
from .templates import intervals_for_weekday
from .timeutils import ClockTime, Interval
from .weekdays import weekday_of

SOURCE_OVERRIDE = 'override'
SOURCE_WEEKLY = 'weekly'


@dataclass(frozen=True)
class DayAvailability:
    date: date
    source: str
    intervals: tuple[Interval, ...]
    slots: tuple[Slot, ...]
    # leave reason when an override closes the day
    reason: str = ''

    @property
    def is_open(self) -> bool:
        return bool(self.slots)


def resolve_day(schedule: PractitionerSchedule, target_date: date,
                slot_duration_minutes: int = DEFAULT_SLOT_MINUTES) -> DayAvailability:
    """Resolve working intervals and slots for ``target_date``.

    Raises:
        InvalidScheduleData: the schedule holds a malformed record.
    """
    override = override_for_date(schedule.date_overrides, target_date)
    if override is not None:
        intervals = override.open_intervals()
        source = SOURCE_OVERRIDE
        reason = override.reason if override.is_closed else ''
    else:
        intervals = intervals_for_weekday(schedule.weekly_rules, weekday_of(target_date), on=target_date)
        source = SOURCE_WEEKLY
        reason = ''
    slots = generate_slots(intervals, slot_duration_minutes)
    return DayAvailability(
        date=target_date,
        source=source,
        intervals=tuple(intervals),
        slots=tuple(slots),
        reason=reason,
    )


def resolve_availability(schedule: PractitionerSchedule, target_date: date,
                         slot_duration_minutes: int = DEFAULT_SLOT_MINUTES) -> list[Slot]:
    return list(resolve_day(schedule, target_date, slot_duration_minutes).slots)


class WorkingHoursReason(str, enum.Enum):
    AVAILABLE = 'AVAILABLE'
    NO_SCHEDULE = 'NO_SCHEDULE'
    OUTSIDE_WORKING_HOURS = 'OUTSIDE_WORKING_HOURS'


@dataclass(frozen=True)
class WorkingHoursCheck:
    reason: WorkingHoursReason
    interval: Optional[Interval] = None
    suggested_slots: tuple[Slot, ...] = field(default_factory=tuple)

    @property
    def available(self) -> bool:
        return self.reason is WorkingHoursReason.AVAILABLE


def check_working_hours(day: DayAvailability, start: ClockTime, duration_minutes: int) -> WorkingHoursCheck:
    """Check that ``[start, start + duration)`` fits inside one working interval.

    Outside working hours the day's slots come back as suggestions.
    """
    if not day.intervals:
        return WorkingHoursCheck(WorkingHoursReason.NO_SCHEDULE)
    proposed = Interval.starting_at(start, duration_minutes)
    for interval in day.intervals:
        if interval.contains(proposed):
            return WorkingHoursCheck(WorkingHoursReason.AVAILABLE, interval=interval)
    return WorkingHoursCheck(WorkingHoursReason.OUTSIDE_WORKING_HOURS, suggested_slots=day.slots)
