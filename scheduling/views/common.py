"""Helpers shared by the scheduling endpoints."""
from __future__ import annotations

from typing import Optional

from rest_framework.response import Response

from ..models import User
from ..services.booking import BookingService
from ..services.clock import Clock, SystemClock
from ..services.sources import build_booking_service


def get_clock() -> Clock:
    return SystemClock()


def get_service() -> BookingService:
    return build_booking_service(clock=get_clock())


def error_response(code: str, message: str, status: int) -> Response:
    return Response({'ok': False, 'error': {'code': code, 'message': message}}, status=status)


def get_practitioner(practitioner_id: int) -> Optional[User]:
    return User.objects.filter(id=practitioner_id, role='doctor', is_active=True).first()
