"""
Slot Generator.

Cuts working intervals into fixed-length slots.  Intervals are walked
independently and never merged: overlapping input yields overlapping
slots, so callers must pass non-overlapping intervals.
"""
from __future__ import annotations

from typing import Iterable, Iterator, Sequence

from .schedule import Slot
from .timeutils import Interval, from_minutes

DEFAULT_SLOT_MINUTES = 30


class SlotSequence:
    """Lazy, finite, restartable sequence of slots.

    Each iteration starts from the first interval again; nothing is
    materialised until iterated.
    """

    def __init__(self, intervals: Iterable[Interval], slot_duration_minutes: int = DEFAULT_SLOT_MINUTES) -> None:
        if isinstance(slot_duration_minutes, bool) or not isinstance(slot_duration_minutes, int) \
                or slot_duration_minutes <= 0:
            raise ValueError(f'Slot duration must be a positive integer, got {slot_duration_minutes!r}')
        self._intervals: Sequence[Interval] = tuple(intervals)
        self.slot_duration_minutes = slot_duration_minutes

    def __iter__(self) -> Iterator[Slot]:
        step = self.slot_duration_minutes
        for interval in self._intervals:
            current = interval.start
            while current + step <= interval.end:
                yield Slot(from_minutes(current), from_minutes(current + step))
                current += step

    def __len__(self) -> int:
        step = self.slot_duration_minutes
        return sum(max(0, i.duration) // step for i in self._intervals)

    def __bool__(self) -> bool:
        return len(self) > 0

    @property
    def intervals(self) -> tuple[Interval, ...]:
        return tuple(self._intervals)

    def __repr__(self) -> str:
        return f'SlotSequence({len(self)} slots of {self.slot_duration_minutes} min)'


def generate_slots(intervals: Iterable[Interval], slot_duration_minutes: int = DEFAULT_SLOT_MINUTES) -> SlotSequence:
    return SlotSequence(intervals, slot_duration_minutes)
