"""
The one weekday table.

Schedules reach the system with weekdays spelled three ways: numeric
indexes, English enum codes (``MONDAY``) and Vietnamese labels
(``Thứ 2``).  Everything is normalised here to a WeekdayIndex, 0 = Sunday,
before any resolver compares weekdays.
"""
from __future__ import annotations

import unicodedata
from datetime import date
from typing import Union

WeekdayIndex = int

# (index, code, label)
WEEKDAYS: tuple[tuple[int, str, str], ...] = (
    (0, 'SUNDAY', 'Chủ nhật'),
    (1, 'MONDAY', 'Thứ 2'),
    (2, 'TUESDAY', 'Thứ 3'),
    (3, 'WEDNESDAY', 'Thứ 4'),
    (4, 'THURSDAY', 'Thứ 5'),
    (5, 'FRIDAY', 'Thứ 6'),
    (6, 'SATURDAY', 'Thứ 7'),
)

WEEKDAY_CHOICES = [(index, code.title()) for index, code, _ in WEEKDAYS]


def _fold(text: str) -> str:
    return ' '.join(unicodedata.normalize('NFC', text).casefold().split())


_BY_NAME: dict[str, int] = {}
for _index, _code, _label in WEEKDAYS:
    _BY_NAME[_fold(_code)] = _index
    _BY_NAME[_fold(_label)] = _index


def to_weekday_index(value: Union[int, str]) -> WeekdayIndex:
    """Normalise any supported weekday encoding to a WeekdayIndex.

    Raises:
        ValueError: the value is not a known weekday.
    """
    if isinstance(value, bool):
        raise ValueError(f'Unknown weekday {value!r}')
    if isinstance(value, int):
        if 0 <= value <= 6:
            return value
        raise ValueError(f'Weekday index {value} outside 0..6')
    if isinstance(value, str):
        folded = _fold(value)
        if folded.isdigit():
            return to_weekday_index(int(folded))
        if folded in _BY_NAME:
            return _BY_NAME[folded]
    raise ValueError(f'Unknown weekday {value!r}')


def weekday_of(day: date) -> WeekdayIndex:
    return day.isoweekday() % 7


def weekday_code(index: WeekdayIndex) -> str:
    return WEEKDAYS[to_weekday_index(index)][1]


def weekday_label(index: WeekdayIndex) -> str:
    return WEEKDAYS[to_weekday_index(index)][2]
