"""
Date Override Resolver.

An override for a date replaces the weekly template for that date
entirely.  ``None`` means "no override, fall back to the template"; an
empty list means "explicitly closed".  Callers must keep the two apart.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union

from ..exceptions import InvalidScheduleData
from .schedule import DateOverride
from .timeutils import Interval

OverrideRecord = Union[DateOverride, Mapping[str, Any]]


def override_for_date(overrides: Iterable[OverrideRecord], target_date: date) -> Optional[DateOverride]:
    """Return the override for ``target_date`` or None.

    Raises:
        InvalidScheduleData: a record is malformed or two overrides share the date.
    """
    found: Optional[DateOverride] = None
    for record in overrides:
        override = DateOverride.coerce(record)
        if override.date != target_date:
            continue
        if found is not None:
            raise InvalidScheduleData(
                f'Two overrides for {target_date.isoformat()} ({found.record_id} and {override.record_id})',
                record=override.record_id,
            )
        found = override
    return found


def open_intervals_for_date(overrides: Iterable[OverrideRecord], target_date: date) -> Optional[list[Interval]]:
    override = override_for_date(overrides, target_date)
    if override is None:
        return None
    return override.open_intervals()
