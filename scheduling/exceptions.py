"""
Error taxonomy for the scheduling app and the DRF exception handler.

The scheduling core raises the typed errors below and never recovers from
them locally.  ``api_exception_handler`` turns them into the unified
``{'ok': False, 'error': {...}}`` envelope used by every endpoint.
"""
from __future__ import annotations

from typing import Any, Optional

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler


class SchedulingError(Exception):
    """Base class for every error raised by the scheduling core."""

    code = 'scheduling_error'
    http_status = status.HTTP_400_BAD_REQUEST


class InvalidTime(SchedulingError, ValueError):
    """A clock time failed to parse or lies outside ``[00:00, 24:00)``."""

    code = 'invalid_time'


class InvalidScheduleData(SchedulingError):
    """A stored weekly rule or date override is malformed.

    ``record`` identifies the offending record (its id when known, otherwise
    a short description) so that staff can find and fix it.
    """

    code = 'invalid_schedule'
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    public_message = 'Schedule is not configured correctly, contact an administrator'

    def __init__(self, message: str, *, record: Any = None) -> None:
        self.record = record
        if record is not None:
            message = f'{message} (record {record})'
        super().__init__(message)


class OutsideWorkingHours(SchedulingError):
    """The proposed booking does not fit inside any working interval."""

    code = 'outside_working_hours'
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, reason: str, suggested_slots: Optional[list] = None) -> None:
        super().__init__(message)
        self.reason = reason
        self.suggested_slots = list(suggested_slots or [])


class BookingConflict(SchedulingError):
    """The proposed booking overlaps an existing non-cancelled booking."""

    code = 'booking_conflict'
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, message: str, *, conflicting) -> None:
        super().__init__(message)
        self.conflicting = conflicting


class SlotAlreadyTaken(SchedulingError):
    """The write-time uniqueness guard rejected a booking the core had accepted.

    Two requests evaluated against the same snapshot can both pass the
    conflict check; the loser of the race gets this error and may retry.
    """

    code = 'slot_taken'
    http_status = status.HTTP_409_CONFLICT
    retryable = True


class BookingNotFound(SchedulingError):
    code = 'not_found'
    http_status = status.HTTP_404_NOT_FOUND


class BookingNotMovable(SchedulingError):
    """Only pending and confirmed bookings can be moved."""

    code = 'invalid_transition'


def _scheduling_error_payload(exc: SchedulingError) -> dict:
    error: dict[str, Any] = {'code': exc.code, 'message': str(exc)}
    if isinstance(exc, InvalidScheduleData):
        error['message'] = exc.public_message
        error['record'] = exc.record
    elif isinstance(exc, OutsideWorkingHours):
        error['reason'] = exc.reason
        error['suggestedSlots'] = [s.as_dict() for s in exc.suggested_slots]
    elif isinstance(exc, BookingConflict):
        error['conflictingBooking'] = exc.conflicting.as_dict()
    elif isinstance(exc, SlotAlreadyTaken):
        error['retryable'] = True
    return error


def api_exception_handler(exc, context):
    if isinstance(exc, SchedulingError):
        return Response({'ok': False, 'error': _scheduling_error_payload(exc)}, status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
