"""
Read-only schedule endpoints.

Availability, horizon and work statistics are computed on every request
from the stored rules, overrides and bookings; nothing is cached, so a
rule edited in the admin shows up on the next call.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..permissions import IsStaffRole
from ..serializers.booking import AvailabilityQuerySerializer, HorizonQuerySerializer, PractitionerQuerySerializer
from .common import error_response, get_practitioner, get_service


def _not_found():
    return error_response('not_found', 'practitioner not found', status.HTTP_404_NOT_FOUND)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def availability(request):
    """Return the practitioner's slots for one date.

    Each slot carries ``isBooked`` (overlaps a pending or confirmed
    booking), ``isPast`` and ``isAvailable``.  ``source`` tells whether the
    day came from a date override or from the weekly template; a closed
    override also returns its ``reason``.
    """
    q = AvailabilityQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    practitioner = get_practitioner(q.validated_data['practitionerId'])
    if not practitioner:
        return _not_found()
    overview = get_service().day_overview(
        practitioner.id, q.validated_data['date'], q.validated_data.get('slotMinutes')
    )
    return Response({'ok': True, 'data': overview.as_dict()})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def horizon(request):
    """Return the upcoming days that have at least one open slot."""
    q = HorizonQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    practitioner = get_practitioner(q.validated_data['practitionerId'])
    if not practitioner:
        return _not_found()
    days = get_service().scan_horizon(
        practitioner.id, q.validated_data.get('days'), q.validated_data.get('slotMinutes')
    )
    return Response({'ok': True, 'data': [d.as_dict() for d in days]})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def work_stats(request):
    q = PractitionerQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    practitioner = get_practitioner(q.validated_data['practitionerId'])
    if not practitioner:
        return _not_found()
    stats = get_service().work_stats(practitioner.id)
    return Response({'ok': True, 'data': stats.as_dict()})
