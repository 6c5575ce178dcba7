"""
Booking endpoints.

``check`` and ``create`` run the same evaluation: working hours first,
then overlap with the practitioner's pending and confirmed bookings.
Rejections are raised as scheduling errors and rendered by the project
exception handler.  Patients may only book for themselves and only
cancel their own bookings; practitioners and administrators may act on
any booking.  Every status change and every move is recorded as a
BookingTransition.
"""
from __future__ import annotations

import logging

from django.db import transaction
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Booking, BookingTransition, User
from ..permissions import is_staff_user
from ..serializers.booking import (
    BookingCheckSerializer,
    BookingCreateSerializer,
    BookingListQuerySerializer,
    BookingRescheduleSerializer,
    BookingStatusSerializer,
)
from ..services.schedule import BookingStatus
from .common import error_response, get_practitioner, get_service

logger = logging.getLogger(__name__)


def _can_transition(current: str, new: str) -> bool:
    """Return True if a booking may move from ``current`` to ``new``."""
    transitions = {
        'PENDING': ['CONFIRMED', 'CANCELLED'],
        'CONFIRMED': ['COMPLETED', 'CANCELLED', 'NO_SHOW'],
        'CANCELLED': [],
        'COMPLETED': [],
        'NO_SHOW': [],
    }
    return new in transitions.get(current, [])


def _record_transition(booking_id, from_status, to_status, operator: User, reason: str) -> BookingTransition:
    return BookingTransition.objects.create(
        booking_id=booking_id,
        from_status=from_status,
        to_status=to_status,
        operator=operator,
        reason=reason,
    )


def _booking_payload(b: Booking) -> dict:
    return {
        **b.to_core().as_dict(),
        'patientId': b.patient_id,
        'notes': b.notes,
        'createdAt': b.created_at.strftime('%Y-%m-%d %H:%M'),
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_check(request):
    """Evaluate a proposed booking without persisting it."""
    s = BookingCheckSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    practitioner = get_practitioner(s.validated_data['practitionerId'])
    if not practitioner:
        return error_response('not_found', 'practitioner not found', status.HTTP_404_NOT_FOUND)
    evaluation = get_service().evaluate(
        practitioner.id,
        s.validated_data['date'],
        s.validated_data['start'],
        s.validated_data.get('durationMinutes'),
        exclude_booking_id=s.validated_data.get('excludeBookingId'),
    )
    return Response({'ok': True, 'data': evaluation.as_dict()})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_create(request):
    """Book a slot.

    Patients book for themselves; ``patientId`` is only honoured for staff.
    The new booking starts as PENDING.
    """
    user: User = request.user  # type: ignore[assignment]
    s = BookingCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    practitioner = get_practitioner(s.validated_data['practitionerId'])
    if not practitioner:
        return error_response('not_found', 'practitioner not found', status.HTTP_404_NOT_FOUND)
    patient_id = s.validated_data.get('patientId')
    if not is_staff_user(user):
        if patient_id and patient_id != user.id:
            return error_response('forbidden', 'patients can only book for themselves', status.HTTP_403_FORBIDDEN)
        patient_id = user.id
    elif patient_id and not User.objects.filter(id=patient_id).exists():
        return error_response('not_found', 'patient not found', status.HTTP_404_NOT_FOUND)

    with transaction.atomic():
        booking = get_service().book(
            practitioner.id,
            s.validated_data['date'],
            s.validated_data['start'],
            s.validated_data.get('durationMinutes'),
            patient_id=patient_id,
            notes=s.validated_data.get('notes', ''),
        )
        _record_transition(booking.booking_id, None, booking.status.value, user, 'created')
    return Response({'ok': True, 'data': booking.as_dict()}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def booking_list(request):
    """List a practitioner's bookings for one date; patients see only their own."""
    user: User = request.user  # type: ignore[assignment]
    q = BookingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = Booking.objects.filter(
        practitioner_id=q.validated_data['practitionerId'], date=q.validated_data['date']
    ).order_by('start_time', 'id')
    if not is_staff_user(user):
        qs = qs.filter(patient=user)
    return Response({'ok': True, 'data': [_booking_payload(b) for b in qs]})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_update_status(request):
    """Move a booking to a new status.

    Accepts ``id`` or ``bookingId`` and ``status`` or ``newStatus``.
    Patients may only cancel their own bookings.  The row is locked
    during the update.
    """
    user: User = request.user  # type: ignore[assignment]
    s = BookingStatusSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking_id = s.validated_data['id']
    new_status = s.validated_data['status']
    reason = s.validated_data.get('reason') or 'status update'

    booking = Booking.objects.filter(id=booking_id).first()
    if not booking:
        return error_response('not_found', 'booking not found', status.HTTP_404_NOT_FOUND)
    if not is_staff_user(user):
        if booking.patient_id != user.id:
            return error_response('forbidden', 'forbidden', status.HTTP_403_FORBIDDEN)
        if new_status != BookingStatus.CANCELLED.value:
            return error_response('forbidden', 'patients can only cancel bookings', status.HTTP_403_FORBIDDEN)

    with transaction.atomic():
        locked = Booking.objects.select_for_update().get(id=booking.id)
        old_status = locked.status
        if not _can_transition(old_status, new_status):
            return error_response(
                'invalid_transition', f'cannot move from {old_status} to {new_status}', status.HTTP_400_BAD_REQUEST
            )
        locked.status = new_status
        locked.save(update_fields=['status', 'updated_at'])
        _record_transition(locked.id, old_status, new_status, user, reason)
    logger.info('Booking %s moved from %s to %s by %s', locked.id, old_status, new_status, user.username)
    return Response({'ok': True, 'data': {'id': locked.id, 'status': new_status}})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def booking_reschedule(request):
    """Move a pending or confirmed booking to a new date and start.

    Runs the same checks as ``create``, ignoring the booking's own
    interval.  Patients may only move their own bookings.  The move and
    its BookingTransition row are written together.
    """
    user: User = request.user  # type: ignore[assignment]
    s = BookingRescheduleSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    booking = Booking.objects.filter(id=s.validated_data['id']).first()
    if not booking:
        return error_response('not_found', 'booking not found', status.HTTP_404_NOT_FOUND)
    if not is_staff_user(user) and booking.patient_id != user.id:
        return error_response('forbidden', 'forbidden', status.HTTP_403_FORBIDDEN)
    previous = f'{booking.date.isoformat()} {booking.start_time}'

    with transaction.atomic():
        moved = get_service().reschedule(
            booking.id,
            s.validated_data['date'],
            s.validated_data['start'],
            s.validated_data.get('durationMinutes'),
        )
        reason = s.validated_data.get('reason') or f'rescheduled from {previous}'
        _record_transition(booking.id, moved.status.value, moved.status.value, user, reason)
    return Response({'ok': True, 'data': moved.as_dict()})
