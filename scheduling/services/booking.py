"""
Booking orchestration.

``BookingService`` ties the pure resolvers to a schedule source, a booking
source and a clock.  A booking request runs through:

    resolve availability -> working-hours check -> conflict check -> persist

The sources are injected so the whole flow runs in tests without a
database; ``scheduling.services.sources`` provides the ORM-backed ones.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Protocol, Sequence

from ..exceptions import (
    BookingConflict,
    BookingNotFound,
    BookingNotMovable,
    InvalidScheduleData,
    InvalidTime,
    OutsideWorkingHours,
    SlotAlreadyTaken,
)
from .availability import DayAvailability, WorkingHoursCheck, check_working_hours, resolve_day
from .clock import Clock, SystemClock
from .conflicts import ConflictResult, check_booking_conflict
from .horizon import HorizonDay, scan_horizon
from .schedule import Booking, BookingStatus, PractitionerSchedule, Slot
from .slots import DEFAULT_SLOT_MINUTES
from .stats import WorkStats, summarize_week
from .timeutils import ClockLike, ClockTime, parse_clock

logger = logging.getLogger(__name__)


class ScheduleSource(Protocol):
    def get_schedule(self, practitioner_id: Any) -> PractitionerSchedule: ...


class BookingSource(Protocol):
    def bookings_for(self, practitioner_id: Any, target_date: date) -> Sequence[Booking]: ...

    def get(self, booking_id: Any) -> Optional[Booking]: ...

    def create(self, *, practitioner_id: Any, target_date: date, start: ClockTime, duration_minutes: int,
               patient_id: Any = None, notes: str = '',
               status: BookingStatus = BookingStatus.PENDING) -> Booking: ...

    def move(self, booking_id: Any, *, target_date: date, start: ClockTime, duration_minutes: int) -> Booking: ...


@dataclass(frozen=True)
class SlotView:
    slot: Slot
    is_booked: bool
    is_past: bool

    @property
    def is_available(self) -> bool:
        return not (self.is_booked or self.is_past)

    def as_dict(self) -> dict:
        return {
            **self.slot.as_dict(),
            'isBooked': self.is_booked,
            'isPast': self.is_past,
            'isAvailable': self.is_available,
        }


@dataclass(frozen=True)
class DayOverview:
    day: DayAvailability
    slots: tuple[SlotView, ...]

    def as_dict(self) -> dict:
        return {
            'date': self.day.date.isoformat(),
            'source': self.day.source,
            'reason': self.day.reason,
            'workingHours': [str(i) for i in self.day.intervals],
            'slots': [s.as_dict() for s in self.slots],
        }


@dataclass(frozen=True)
class BookingEvaluation:
    working_hours: WorkingHoursCheck
    conflict: Optional[ConflictResult] = None

    @property
    def accepted(self) -> bool:
        return self.working_hours.available and self.conflict is not None and self.conflict.accepted

    def as_dict(self) -> dict:
        data = {
            'accepted': self.accepted,
            'reason': self.working_hours.reason.value,
            'suggestedSlots': [s.as_dict() for s in self.working_hours.suggested_slots],
            'conflictingBooking': None,
        }
        if self.conflict is not None and self.conflict.conflicting is not None:
            data['conflictingBooking'] = self.conflict.conflicting.as_dict()
        return data


def _positive_minutes(value: Any, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f'{what} must be a positive integer, got {value!r}')
    return value


class BookingService:
    def __init__(self, schedule_source: ScheduleSource, booking_source: BookingSource,
                 clock: Optional[Clock] = None, default_slot_minutes: int = DEFAULT_SLOT_MINUTES,
                 default_horizon_days: int = 7) -> None:
        self.schedule_source = schedule_source
        self.booking_source = booking_source
        self.clock = clock or SystemClock()
        self.default_slot_minutes = _positive_minutes(default_slot_minutes, 'Default slot duration')
        self.default_horizon_days = default_horizon_days

    def _slot_minutes(self, slot_minutes: Optional[int]) -> int:
        if slot_minutes is None:
            return self.default_slot_minutes
        return _positive_minutes(slot_minutes, 'Slot duration')

    def _resolve_day(self, practitioner_id: Any, target_date: date, slot_minutes: int) -> DayAvailability:
        schedule = self.schedule_source.get_schedule(practitioner_id)
        try:
            return resolve_day(schedule, target_date, slot_minutes)
        except InvalidScheduleData as exc:
            logger.warning('Corrupt schedule for practitioner %s on %s: %s', practitioner_id, target_date, exc)
            raise

    def _is_past(self, target_date: date, start: ClockTime) -> bool:
        now: datetime = self.clock.now()
        today = now.date()
        if target_date != today:
            return target_date < today
        return start.minutes <= now.hour * 60 + now.minute

    def resolve_availability(self, practitioner_id: Any, target_date: date,
                             slot_minutes: Optional[int] = None) -> list[Slot]:
        return list(self._resolve_day(practitioner_id, target_date, self._slot_minutes(slot_minutes)).slots)

    def day_overview(self, practitioner_id: Any, target_date: date,
                     slot_minutes: Optional[int] = None) -> DayOverview:
        """Slots of the day flagged as booked (overlapping a live booking) or past."""
        day = self._resolve_day(practitioner_id, target_date, self._slot_minutes(slot_minutes))
        taken = [b.interval for b in self.booking_source.bookings_for(practitioner_id, target_date)
                 if b.status.blocks_slot and b.date == target_date]
        views = tuple(
            SlotView(
                slot=slot,
                is_booked=any(slot.interval.overlaps(i) for i in taken),
                is_past=self._is_past(target_date, slot.start),
            )
            for slot in day.slots
        )
        return DayOverview(day=day, slots=views)

    def check_booking_conflict(self, practitioner_id: Any, target_date: date, start: ClockLike,
                               duration_minutes: int, existing: Optional[Sequence[Any]] = None,
                               exclude_booking_id: Any = None) -> ConflictResult:
        if existing is None:
            existing = self.booking_source.bookings_for(practitioner_id, target_date)
        return check_booking_conflict(
            target_date, start, duration_minutes, existing,
            practitioner_id=practitioner_id, exclude_booking_id=exclude_booking_id,
        )

    def evaluate(self, practitioner_id: Any, target_date: date, start: ClockLike,
                 duration_minutes: Optional[int] = None, exclude_booking_id: Any = None) -> BookingEvaluation:
        """Working-hours check, then the conflict check; nothing is persisted.

        The day is sliced with the booking's own duration so that suggested
        slots can actually be booked.
        """
        start = parse_clock(start)
        duration = self._slot_minutes(duration_minutes)
        day = self._resolve_day(practitioner_id, target_date, duration)
        working_hours = check_working_hours(day, start, duration)
        if not working_hours.available:
            return BookingEvaluation(working_hours)
        conflict = self.check_booking_conflict(
            practitioner_id, target_date, start, duration, exclude_booking_id=exclude_booking_id
        )
        return BookingEvaluation(working_hours, conflict)

    def scan_horizon(self, practitioner_id: Any, days_ahead: Optional[int] = None,
                     slot_minutes: Optional[int] = None) -> list[HorizonDay]:
        schedule = self.schedule_source.get_schedule(practitioner_id)
        days = self.default_horizon_days if days_ahead is None else days_ahead
        try:
            return list(scan_horizon(schedule, days, today=self.clock.today(),
                                     slot_duration_minutes=self._slot_minutes(slot_minutes)))
        except InvalidScheduleData as exc:
            logger.warning('Corrupt schedule for practitioner %s: %s', practitioner_id, exc)
            raise

    def work_stats(self, practitioner_id: Any) -> WorkStats:
        schedule: PractitionerSchedule = self.schedule_source.get_schedule(practitioner_id)
        return summarize_week(schedule.weekly_rules)

    def _ensure_bookable(self, practitioner_id: Any, target_date: date, start: ClockTime, duration: int,
                         exclude_booking_id: Any = None) -> None:
        if self._is_past(target_date, start):
            raise InvalidTime(f'Cannot book {target_date.isoformat()} {start}, it is in the past')

        evaluation = self.evaluate(practitioner_id, target_date, start, duration,
                                   exclude_booking_id=exclude_booking_id)
        if not evaluation.working_hours.available:
            reason = evaluation.working_hours.reason.value
            logger.info('Booking rejected for practitioner %s at %s %s: %s',
                        practitioner_id, target_date, start, reason)
            raise OutsideWorkingHours(
                f'{target_date.isoformat()} {start} (+{duration} min) is outside working hours',
                reason=reason,
                suggested_slots=list(evaluation.working_hours.suggested_slots),
            )
        conflicting = evaluation.conflict.conflicting if evaluation.conflict else None
        if conflicting is not None:
            logger.info('Booking rejected for practitioner %s at %s %s: overlaps booking %s',
                        practitioner_id, target_date, start, conflicting.booking_id)
            raise BookingConflict(
                f'{target_date.isoformat()} {start} overlaps an existing booking at {conflicting.start}',
                conflicting=conflicting,
            )

    def book(self, practitioner_id: Any, target_date: date, start: ClockLike,
             duration_minutes: Optional[int] = None, *, patient_id: Any = None, notes: str = '',
             status: BookingStatus = BookingStatus.PENDING) -> Booking:
        """Evaluate and persist a booking.

        Raises:
            InvalidTime: ``start`` is malformed or already in the past.
            OutsideWorkingHours: the booking does not fit a working interval.
            BookingConflict: it overlaps a pending or confirmed booking.
            SlotAlreadyTaken: a concurrent request won the slot.
        """
        start = parse_clock(start)
        duration = self._slot_minutes(duration_minutes)
        self._ensure_bookable(practitioner_id, target_date, start, duration)

        try:
            booking = self.booking_source.create(
                practitioner_id=practitioner_id, target_date=target_date, start=start,
                duration_minutes=duration, patient_id=patient_id, notes=notes, status=status,
            )
        except SlotAlreadyTaken:
            logger.warning('Slot %s %s for practitioner %s was taken concurrently',
                           target_date, start, practitioner_id)
            raise
        logger.info('Booking %s accepted for practitioner %s at %s %s',
                    booking.booking_id, practitioner_id, target_date, start)
        return booking

    def reschedule(self, booking_id: Any, target_date: date, start: ClockLike,
                   duration_minutes: Optional[int] = None) -> Booking:
        """Move a live booking to a new date and start.

        The booking keeps its duration unless a new one is given and is
        never reported as conflicting with itself.

        Raises:
            BookingNotFound: no booking has ``booking_id``.
            BookingNotMovable: the booking is cancelled, completed or a no-show.
            InvalidTime, OutsideWorkingHours, BookingConflict, SlotAlreadyTaken:
                as for :meth:`book`.
        """
        current = self.booking_source.get(booking_id)
        if current is None:
            raise BookingNotFound(f'Booking {booking_id} does not exist')
        if not current.status.blocks_slot:
            raise BookingNotMovable(f'Booking {booking_id} is {current.status.value} and cannot be moved')
        start = parse_clock(start)
        duration = current.duration_minutes if duration_minutes is None \
            else _positive_minutes(duration_minutes, 'Booking duration')
        practitioner_id = current.practitioner_id
        self._ensure_bookable(practitioner_id, target_date, start, duration, exclude_booking_id=booking_id)

        try:
            moved = self.booking_source.move(booking_id, target_date=target_date, start=start,
                                             duration_minutes=duration)
        except SlotAlreadyTaken:
            logger.warning('Slot %s %s for practitioner %s was taken concurrently',
                           target_date, start, practitioner_id)
            raise
        logger.info('Booking %s moved from %s %s to %s %s',
                    booking_id, current.date, current.start, target_date, start)
        return moved
