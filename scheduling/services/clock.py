"""
"Now" providers.  Resolvers take dates as arguments; only the
orchestrator asks a clock what day it is.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Protocol

from django.utils import timezone


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in the project's TIME_ZONE."""

    def now(self) -> datetime:
        return timezone.localtime()

    def today(self) -> date:
        return timezone.localdate()


class FixedClock:
    """A clock frozen at ``at``; used by tests and replays."""

    def __init__(self, at: datetime) -> None:
        self.at = at

    def now(self) -> datetime:
        return self.at

    def today(self) -> date:
        return self.at.date()
