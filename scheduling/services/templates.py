"""
Weekly Template Resolver.

Selects the recurring rules that apply to one weekday.  Every rule is
validated on every call so a corrupt record surfaces as
InvalidScheduleData instead of silently shrinking availability.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Iterable, Mapping, Optional, Union

from .schedule import WeeklyRule
from .timeutils import Interval
from .weekdays import to_weekday_index

RuleRecord = Union[WeeklyRule, Mapping[str, Any]]


def coerce_rules(rules: Iterable[RuleRecord]) -> list[WeeklyRule]:
    return [WeeklyRule.coerce(rule) for rule in rules]


def rules_for_weekday(rules: Iterable[RuleRecord], weekday: Union[int, str],
                      on: Optional[date] = None) -> list[WeeklyRule]:
    """Return the rules targeting ``weekday`` in input order.

    Rules sharing a weekday (split shifts) stay separate entries.  When
    ``on`` is given, rules outside their effective window are dropped.

    Raises:
        InvalidScheduleData: a rule is malformed.
        ValueError: ``weekday`` is not a known weekday.
    """
    target = to_weekday_index(weekday)
    matched = []
    for rule in coerce_rules(rules):
        if rule.weekday != target:
            continue
        if on is not None and not rule.is_effective_on(on):
            continue
        matched.append(rule)
    return matched


def intervals_for_weekday(rules: Iterable[RuleRecord], weekday: Union[int, str],
                          on: Optional[date] = None) -> list[Interval]:
    intervals: list[Interval] = []
    for rule in rules_for_weekday(rules, weekday, on=on):
        intervals.extend(rule.intervals())
    return intervals
