"""
Value types consumed and produced by the scheduling core.

Weekly rules, date overrides and bookings are owned by the persistence
layer; the core only reads them.  Records can be handed over either as the
dataclasses below or as plain mappings (ORM ``values()`` rows, JSON
payloads).  ``coerce`` converts and validates them, raising
InvalidScheduleData that names the offending record.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Mapping, Optional, Sequence, Union

from django.utils.dateparse import parse_date

from ..exceptions import InvalidScheduleData, InvalidTime
from .timeutils import MINUTES_PER_DAY, ClockTime, Interval, add_minutes, format_minutes, parse_clock
from .weekdays import WeekdayIndex, to_weekday_index


def _pick(record: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in record and record[key] is not None:
            return record[key]
    return default


def _record_clock(value: Any, *, what: str, record: Any) -> ClockTime:
    if value in (None, ''):
        raise InvalidScheduleData(f'{what} is required', record=record)
    try:
        return parse_clock(value)
    except InvalidTime as exc:
        raise InvalidScheduleData(f'{what}: {exc}', record=record) from exc


def _optional_clock(value: Any, *, what: str, record: Any) -> Optional[ClockTime]:
    if value in (None, ''):
        return None
    return _record_clock(value, what=what, record=record)


_FLAG_TEXT = {'true': True, '1': True, 'false': False, '0': False}


def _record_flag(value: Any, *, what: str, record: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str) and value.strip().lower() in _FLAG_TEXT:
        return _FLAG_TEXT[value.strip().lower()]
    raise InvalidScheduleData(f'{what} is not a boolean: {value!r}', record=record)


def _record_date(value: Any, *, what: str, record: Any) -> Optional[date]:
    if value in (None, ''):
        return None
    if isinstance(value, date):
        return value
    try:
        parsed = parse_date(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise InvalidScheduleData(f'{what} is not a valid date: {value!r}', record=record)
    return parsed


@dataclass(frozen=True)
class WeeklyRule:
    """A recurring working interval on one weekday.

    With a break both ends must be set and lie inside ``[start, end]``;
    the rule then contributes two intervals, before and after the break.
    """

    weekday: WeekdayIndex
    start: ClockTime
    end: ClockTime
    break_start: Optional[ClockTime] = None
    break_end: Optional[ClockTime] = None
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    record_id: Any = None

    def __post_init__(self) -> None:
        ref = self.record_id if self.record_id is not None else f'weekly rule {self.weekday}/{self.start}-{self.end}'
        if isinstance(self.weekday, bool) or not isinstance(self.weekday, int) or not 0 <= self.weekday <= 6:
            raise InvalidScheduleData(f'Weekday {self.weekday!r} outside 0..6', record=ref)
        if self.start >= self.end:
            raise InvalidScheduleData(f'Start {self.start} must be before end {self.end}', record=ref)
        if (self.break_start is None) != (self.break_end is None):
            raise InvalidScheduleData('Break needs both a start and an end', record=ref)
        if self.break_start is not None and self.break_end is not None:
            if not (self.start <= self.break_start < self.break_end <= self.end):
                raise InvalidScheduleData(
                    f'Break {self.break_start}-{self.break_end} must lie inside {self.start}-{self.end}',
                    record=ref,
                )
        if self.effective_from and self.effective_to and self.effective_from > self.effective_to:
            raise InvalidScheduleData('effective_from is after effective_to', record=ref)

    @classmethod
    def coerce(cls, record: Union['WeeklyRule', Mapping[str, Any]]) -> 'WeeklyRule':
        if isinstance(record, cls):
            return record
        if not isinstance(record, Mapping):
            raise InvalidScheduleData(f'Unsupported weekly rule record {type(record).__name__}')
        ref = _pick(record, 'record_id', 'id', 'pk')
        raw_weekday = _pick(record, 'weekday', 'day_of_week', 'dayOfWeek')
        if raw_weekday is None:
            raise InvalidScheduleData('Weekday is required', record=ref)
        try:
            weekday = to_weekday_index(raw_weekday)
        except ValueError as exc:
            raise InvalidScheduleData(str(exc), record=ref) from exc
        return cls(
            weekday=weekday,
            start=_record_clock(_pick(record, 'start', 'start_time', 'startTime'), what='Start time', record=ref),
            end=_record_clock(_pick(record, 'end', 'end_time', 'endTime'), what='End time', record=ref),
            break_start=_optional_clock(_pick(record, 'break_start', 'breakStart'), what='Break start', record=ref),
            break_end=_optional_clock(_pick(record, 'break_end', 'breakEnd'), what='Break end', record=ref),
            effective_from=_record_date(
                _pick(record, 'effective_from', 'effectiveFrom'), what='effective_from', record=ref
            ),
            effective_to=_record_date(_pick(record, 'effective_to', 'effectiveTo'), what='effective_to', record=ref),
            record_id=ref,
        )

    def is_effective_on(self, day: date) -> bool:
        if self.effective_from and day < self.effective_from:
            return False
        if self.effective_to and day > self.effective_to:
            return False
        return True

    def intervals(self) -> list[Interval]:
        if self.break_start is None or self.break_end is None:
            return [Interval.between(self.start, self.end)]
        parts = [Interval.between(self.start, self.break_start), Interval.between(self.break_end, self.end)]
        return [p for p in parts if p.duration > 0]

    @property
    def working_minutes(self) -> int:
        return sum(i.duration for i in self.intervals())


@dataclass(frozen=True)
class OverrideSlot:
    start: ClockTime
    end: ClockTime
    is_open: bool = True

    @property
    def interval(self) -> Interval:
        return Interval.between(self.start, self.end)


@dataclass(frozen=True)
class DateOverride:
    """Date-specific schedule that fully replaces the weekly template.

    An override with no open slots closes the practitioner for the day.
    """

    date: date
    slots: tuple[OverrideSlot, ...] = ()
    reason: str = ''
    record_id: Any = None

    def __post_init__(self) -> None:
        ref = self.record_id if self.record_id is not None else f'override {self.date}'
        for position, slot in enumerate(self.slots, 1):
            if slot.start >= slot.end:
                raise InvalidScheduleData(
                    f'Slot {position}: start {slot.start} must be before end {slot.end}', record=ref
                )

    @classmethod
    def coerce(cls, record: Union['DateOverride', Mapping[str, Any]]) -> 'DateOverride':
        if isinstance(record, cls):
            return record
        if not isinstance(record, Mapping):
            raise InvalidScheduleData(f'Unsupported date override record {type(record).__name__}')
        ref = _pick(record, 'record_id', 'id', 'pk')
        day = _record_date(_pick(record, 'date', 'specific_date', 'specificDate'), what='Date', record=ref)
        if day is None:
            raise InvalidScheduleData('Date is required', record=ref)
        slots = []
        for position, raw in enumerate(_pick(record, 'slots', default=()) or (), 1):
            if isinstance(raw, OverrideSlot):
                slots.append(raw)
                continue
            if not isinstance(raw, Mapping):
                raise InvalidScheduleData(f'Slot {position} is not a mapping', record=ref)
            slots.append(OverrideSlot(
                start=_record_clock(_pick(raw, 'start', 'start_time', 'startTime'), what=f'Slot {position} start',
                                    record=ref),
                end=_record_clock(_pick(raw, 'end', 'end_time', 'endTime'), what=f'Slot {position} end',
                                  record=ref),
                is_open=_record_flag(_pick(raw, 'is_open', 'isOpen', default=True), what=f'Slot {position} isOpen',
                                     record=ref),
            ))
        return cls(date=day, slots=tuple(slots), reason=_pick(record, 'reason', 'leave_reason', default='') or '',
                   record_id=ref)

    def open_intervals(self) -> list[Interval]:
        return [slot.interval for slot in self.slots if slot.is_open]

    @property
    def is_closed(self) -> bool:
        return not any(slot.is_open for slot in self.slots)


@dataclass(frozen=True)
class Slot:
    """A discrete offerable appointment window; never persisted."""

    start: ClockTime
    end: ClockTime

    @property
    def interval(self) -> Interval:
        return Interval.between(self.start, self.end)

    def as_dict(self) -> dict:
        return {'start': str(self.start), 'end': str(self.end)}


class BookingStatus(str, enum.Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    CANCELLED = 'CANCELLED'
    COMPLETED = 'COMPLETED'
    NO_SHOW = 'NO_SHOW'

    @property
    def blocks_slot(self) -> bool:
        return self in BLOCKING_STATUSES


BLOCKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


@dataclass(frozen=True)
class Booking:
    practitioner_id: Any
    date: date
    start: ClockTime
    duration_minutes: int
    status: BookingStatus = BookingStatus.CONFIRMED
    booking_id: Any = None

    def __post_init__(self) -> None:
        if isinstance(self.duration_minutes, bool) or not isinstance(self.duration_minutes, int) \
                or self.duration_minutes <= 0:
            raise ValueError(f'Booking duration must be a positive integer, got {self.duration_minutes!r}')
        if self.end_minutes > MINUTES_PER_DAY:
            raise InvalidTime(f'Booking at {self.start} (+{self.duration_minutes} min) runs past midnight')

    @classmethod
    def coerce(cls, record: Union['Booking', Mapping[str, Any]]) -> 'Booking':
        if isinstance(record, cls):
            return record
        day = _pick(record, 'date')
        if not isinstance(day, date):
            day = parse_date(str(day))
            if day is None:
                raise ValueError(f'Invalid booking date {record.get("date")!r}')
        status = _pick(record, 'status', default=BookingStatus.CONFIRMED)
        if not isinstance(status, BookingStatus):
            status = BookingStatus(status.upper())
        return cls(
            practitioner_id=_pick(record, 'practitioner_id', 'practitionerId', 'practitioner'),
            date=day,
            start=parse_clock(_pick(record, 'start', 'start_time', 'startTime')),
            duration_minutes=int(_pick(record, 'duration_minutes', 'durationMinutes', 'duration', default=30)),
            status=status,
            booking_id=_pick(record, 'booking_id', 'id', 'pk'),
        )

    @property
    def end_minutes(self) -> int:
        return add_minutes(self.start, self.duration_minutes)

    @property
    def interval(self) -> Interval:
        return Interval(self.start.minutes, self.end_minutes)

    def as_dict(self) -> dict:
        return {
            'id': self.booking_id,
            'practitionerId': self.practitioner_id,
            'date': self.date.isoformat(),
            'start': str(self.start),
            'end': format_minutes(self.end_minutes),
            'durationMinutes': self.duration_minutes,
            'status': self.status.value,
        }


@dataclass(frozen=True)
class PractitionerSchedule:
    """Everything the schedule source knows about one practitioner.

    Items of ``weekly_rules`` and ``date_overrides`` may still be raw
    mappings; resolvers coerce them on every query.
    """

    practitioner_id: Any
    weekly_rules: Sequence[Union[WeeklyRule, Mapping[str, Any]]] = field(default_factory=tuple)
    date_overrides: Sequence[Union[DateOverride, Mapping[str, Any]]] = field(default_factory=tuple)
