from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .templates import RuleRecord, coerce_rules
from .weekdays import weekday_code


@dataclass(frozen=True)
class WorkStats:
    total_hours_per_week: float = 0.0
    days_per_week: int = 0
    average_hours_per_day: float = 0.0
    hours_per_day: dict = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            'totalHoursPerWeek': self.total_hours_per_week,
            'daysPerWeek': self.days_per_week,
            'averageHoursPerDay': self.average_hours_per_day,
            'hoursPerDay': dict(self.hours_per_day),
        }


def summarize_week(rules: Iterable[RuleRecord]) -> WorkStats:
    """Weekly working time of a template, break time excluded."""
    minutes_per_day: dict[str, int] = {}
    for rule in coerce_rules(rules):
        code = weekday_code(rule.weekday)
        minutes_per_day[code] = minutes_per_day.get(code, 0) + rule.working_minutes
    if not minutes_per_day:
        return WorkStats()
    total_hours = sum(minutes_per_day.values()) / 60
    days = len(minutes_per_day)
    return WorkStats(
        total_hours_per_week=total_hours,
        days_per_week=days,
        average_hours_per_day=total_hours / days,
        hours_per_day={code: minutes / 60 for code, minutes in minutes_per_day.items()},
    )
