"""
Clock-time arithmetic shared by every scheduling resolver.

Working hours, override slots and bookings are all expressed as wall-clock
times on a single calendar day.  Internally everything is reduced to an
integer number of minutes since midnight so that comparisons and interval
maths stay exact.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time
from typing import Union

from ..exceptions import InvalidTime

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r'^\s*(\d{1,2}):(\d{2})\s*$')


@dataclass(frozen=True, order=True)
class ClockTime:
    """An immutable wall-clock time with minute precision."""

    hour: int
    minute: int

    def __post_init__(self) -> None:
        if isinstance(self.hour, bool) or isinstance(self.minute, bool):
            raise InvalidTime(f'Invalid clock time {self.hour!r}:{self.minute!r}')
        if not isinstance(self.hour, int) or not isinstance(self.minute, int):
            raise InvalidTime(f'Invalid clock time {self.hour!r}:{self.minute!r}')
        if not (0 <= self.hour <= 23 and 0 <= self.minute <= 59):
            raise InvalidTime(f'Clock time out of range: {self.hour:02d}:{self.minute:02d}')

    @classmethod
    def parse(cls, value: 'ClockLike') -> 'ClockTime':
        return parse_clock(value)

    @property
    def minutes(self) -> int:
        return self.hour * 60 + self.minute

    def __str__(self) -> str:
        return f'{self.hour:02d}:{self.minute:02d}'


ClockLike = Union[ClockTime, time, str]
MinuteLike = Union[ClockTime, int]


def parse_clock(value: ClockLike) -> ClockTime:
    """Convert ``HH:MM`` text, a ``datetime.time`` or a ClockTime to a ClockTime.

    Raises:
        InvalidTime: the value is not a recognisable clock time.
    """
    if isinstance(value, ClockTime):
        return value
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise InvalidTime(f'Clock time must have minute precision: {value.isoformat()}')
        return ClockTime(value.hour, value.minute)
    if isinstance(value, str):
        match = _CLOCK_RE.match(value)
        if not match:
            raise InvalidTime(f'Invalid clock time {value!r}, expected HH:MM')
        return ClockTime(int(match.group(1)), int(match.group(2)))
    raise InvalidTime(f'Cannot convert {type(value).__name__} to a clock time')


def to_minutes(value: ClockTime) -> int:
    return value.minutes


def from_minutes(minutes: int) -> ClockTime:
    """Inverse of :func:`to_minutes`.

    Raises:
        InvalidTime: ``minutes`` lies outside ``[0, 1440)``.
    """
    if isinstance(minutes, bool) or not isinstance(minutes, int):
        raise InvalidTime(f'Minute offset must be an integer, got {minutes!r}')
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidTime(f'Minute offset {minutes} outside [0, {MINUTES_PER_DAY})')
    return ClockTime(minutes // 60, minutes % 60)


def format_minutes(minutes: int) -> str:
    """Render a minute offset as ``HH:MM``; 1440 renders as ``24:00``."""
    if minutes == MINUTES_PER_DAY:
        return '24:00'
    return str(from_minutes(minutes))


def add_minutes(value: ClockTime, minutes: int) -> int:
    """Return ``value + minutes`` as a raw offset, which may reach 1440."""
    return value.minutes + minutes


def _as_minutes(value: MinuteLike) -> int:
    return value.minutes if isinstance(value, ClockTime) else value


def overlaps(a_start: MinuteLike, a_end: MinuteLike, b_start: MinuteLike, b_end: MinuteLike) -> bool:
    """Half-open interval overlap; touching endpoints do not overlap."""
    return _as_minutes(a_start) < _as_minutes(b_end) and _as_minutes(b_start) < _as_minutes(a_end)


@dataclass(frozen=True, order=True)
class Interval:
    """A half-open ``[start, end)`` range of minutes on one day."""

    start: int
    end: int

    @classmethod
    def between(cls, start: ClockTime, end: ClockTime) -> 'Interval':
        return cls(start.minutes, end.minutes)

    @classmethod
    def starting_at(cls, start: ClockTime, duration_minutes: int) -> 'Interval':
        return cls(start.minutes, add_minutes(start, duration_minutes))

    @property
    def duration(self) -> int:
        return self.end - self.start

    def overlaps(self, other: 'Interval') -> bool:
        return overlaps(self.start, self.end, other.start, other.end)

    def contains(self, other: 'Interval') -> bool:
        return contains(self, other)

    def __str__(self) -> str:
        return f'{format_minutes(self.start)}-{format_minutes(self.end)}'


def contains(outer: Interval, inner: Interval) -> bool:
    return inner.start >= outer.start and inner.end <= outer.end
