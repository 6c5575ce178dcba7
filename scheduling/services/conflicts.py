"""
Booking Conflict Checker.

Runs after the working-hours check: a slot can be inside working hours and
still be taken.  The scan is linear and the first overlapping booking wins.
Order is the order of ``existing`` unless ``sort_by_start`` is set, which
makes the answer independent of how storage returned the rows.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union

from .schedule import Booking
from .timeutils import ClockLike, Interval, parse_clock


class Decision(str, enum.Enum):
    ACCEPT = 'ACCEPT'
    REJECT = 'REJECT'


@dataclass(frozen=True)
class ConflictResult:
    decision: Decision
    conflicting: Optional[Booking] = None

    @classmethod
    def accept(cls) -> 'ConflictResult':
        return cls(Decision.ACCEPT)

    @classmethod
    def reject(cls, booking: Booking) -> 'ConflictResult':
        return cls(Decision.REJECT, booking)

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT


def check_booking_conflict(
    target_date: date,
    start: ClockLike,
    duration_minutes: int,
    existing: Iterable[Union[Booking, Mapping[str, Any]]],
    *,
    practitioner_id: Any = None,
    exclude_booking_id: Any = None,
    sort_by_start: bool = False,
) -> ConflictResult:
    """Decide whether a proposed booking may be accepted.

    Bookings that are cancelled, completed or no-show, that fall on another
    date, that belong to another practitioner (when ``practitioner_id`` is
    given) or that are the booking being rescheduled never block.

    Raises:
        InvalidTime: ``start`` is not a clock time.
        ValueError: ``duration_minutes`` is not a positive integer.
    """
    start = parse_clock(start)
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValueError(f'Duration must be a positive integer, got {duration_minutes!r}')
    proposed = Interval.starting_at(start, duration_minutes)

    candidates = [Booking.coerce(b) for b in existing]
    if sort_by_start:
        candidates.sort(key=lambda b: b.start)

    for booking in candidates:
        if not booking.status.blocks_slot:
            continue
        if booking.date != target_date:
            continue
        if practitioner_id is not None and str(booking.practitioner_id) != str(practitioner_id):
            continue
        if exclude_booking_id is not None and str(booking.booking_id) == str(exclude_booking_id):
            continue
        if proposed.overlaps(booking.interval):
            return ConflictResult.reject(booking)
    return ConflictResult.accept()
