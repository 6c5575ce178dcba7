"""
ORM-backed schedule and booking sources for ``BookingService``.

Rows are handed to the core as plain mappings; the core validates them on
every query.  Creating or moving a booking is guarded twice: the
practitioner row is locked while the day's live bookings are re-read, and
the partial unique constraint on ``Booking`` rejects a second live
booking at the same start.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from .. import models
from ..exceptions import BookingNotFound, BookingNotMovable, SlotAlreadyTaken
from .booking import BookingService
from .clock import Clock
from .conflicts import check_booking_conflict
from .schedule import Booking, BookingStatus, PractitionerSchedule
from .timeutils import ClockTime


class OrmScheduleSource:
    def get_schedule(self, practitioner_id: Any) -> PractitionerSchedule:
        rules = list(
            models.WeeklyRule.objects
            .filter(practitioner_id=practitioner_id, is_active=True)
            .order_by('weekday', 'start_time', 'id')
            .values('id', 'weekday', 'start_time', 'end_time', 'break_start', 'break_end',
                    'effective_from', 'effective_to')
        )
        overrides = [
            o.as_record()
            for o in models.DateOverride.objects
            .filter(practitioner_id=practitioner_id, is_active=True)
            .prefetch_related('slots')
        ]
        return PractitionerSchedule(practitioner_id=practitioner_id, weekly_rules=rules, date_overrides=overrides)


class OrmBookingSource:
    def bookings_for(self, practitioner_id: Any, target_date: date) -> list[Booking]:
        qs = models.Booking.objects.filter(practitioner_id=practitioner_id, date=target_date).order_by('start_time', 'id')
        return [b.to_core() for b in qs]

    def create(self, *, practitioner_id: Any, target_date: date, start: ClockTime, duration_minutes: int,
               patient_id: Any = None, notes: str = '',
               status: BookingStatus = BookingStatus.PENDING) -> Booking:
        """Persist a booking the core has accepted.

        Raises:
            SlotAlreadyTaken: another live booking took the interval meanwhile.
        """
        try:
            with transaction.atomic():
                # Serialize bookings per practitioner
                models.User.objects.select_for_update().filter(pk=practitioner_id).first()
                live = [
                    b.to_core()
                    for b in models.Booking.objects.filter(
                        practitioner_id=practitioner_id, date=target_date, status__in=models.Booking.BLOCKING,
                    )
                ]
                if not check_booking_conflict(target_date, start, duration_minutes, live).accepted:
                    raise SlotAlreadyTaken(f'{target_date.isoformat()} {start} was booked by another request')
                row = models.Booking.objects.create(
                    practitioner_id=practitioner_id,
                    patient_id=patient_id,
                    date=target_date,
                    start_time=str(start),
                    duration_minutes=duration_minutes,
                    status=status.value,
                    notes=notes,
                )
        except IntegrityError as exc:
            raise SlotAlreadyTaken(f'{target_date.isoformat()} {start} was booked by another request') from exc
        return row.to_core()

    def get(self, booking_id: Any) -> Optional[Booking]:
        row = models.Booking.objects.filter(pk=booking_id).first()
        return row.to_core() if row else None

    def move(self, booking_id: Any, *, target_date: date, start: ClockTime, duration_minutes: int) -> Booking:
        """Move a live booking, re-checking the target day under the same locks as ``create``.

        Raises:
            BookingNotFound: the booking was deleted meanwhile.
            BookingNotMovable: the booking left the live statuses meanwhile.
            SlotAlreadyTaken: another live booking took the interval meanwhile.
        """
        try:
            with transaction.atomic():
                row = models.Booking.objects.select_for_update().filter(pk=booking_id).first()
                if row is None:
                    raise BookingNotFound(f'Booking {booking_id} does not exist')
                models.User.objects.select_for_update().filter(pk=row.practitioner_id).first()
                if row.status not in models.Booking.BLOCKING:
                    raise BookingNotMovable(f'Booking {booking_id} is {row.status} and cannot be moved')
                live = [
                    b.to_core()
                    for b in models.Booking.objects.filter(
                        practitioner_id=row.practitioner_id, date=target_date, status__in=models.Booking.BLOCKING,
                    )
                ]
                result = check_booking_conflict(target_date, start, duration_minutes, live,
                                                exclude_booking_id=row.pk)
                if not result.accepted:
                    raise SlotAlreadyTaken(f'{target_date.isoformat()} {start} was booked by another request')
                row.date = target_date
                row.start_time = str(start)
                row.duration_minutes = duration_minutes
                row.save(update_fields=['date', 'start_time', 'duration_minutes', 'updated_at'])
        except IntegrityError as exc:
            raise SlotAlreadyTaken(f'{target_date.isoformat()} {start} was booked by another request') from exc
        return row.to_core()


def scheduling_setting(name: str) -> Any:
    return settings.SCHEDULING[name]


def build_booking_service(clock: Optional[Clock] = None) -> BookingService:
    """BookingService wired to the database and the SCHEDULING settings."""
    return BookingService(
        OrmScheduleSource(),
        OrmBookingSource(),
        clock=clock,
        default_slot_minutes=scheduling_setting('DEFAULT_SLOT_MINUTES'),
        default_horizon_days=scheduling_setting('DEFAULT_HORIZON_DAYS'),
    )
