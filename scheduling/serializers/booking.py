import bleach
from django.conf import settings
from rest_framework import serializers

from scheduling.services.schedule import BookingStatus


def _slot_range():
    conf = settings.SCHEDULING
    return conf['MIN_SLOT_MINUTES'], conf['MAX_SLOT_MINUTES']


def validate_minutes(v):
    if v is None:
        return v
    low, high = _slot_range()
    if not low <= v <= high:
        raise serializers.ValidationError(f'must be between {low} and {high} minutes')
    return v


def clean_text(v):
    return bleach.clean((v or '').strip(), strip=True)


class AvailabilityQuerySerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    slotMinutes = serializers.IntegerField(required=False, validators=[validate_minutes])


class HorizonQuerySerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)
    days = serializers.IntegerField(required=False, min_value=0)
    slotMinutes = serializers.IntegerField(required=False, validators=[validate_minutes])

    def validate_days(self, v):
        limit = settings.SCHEDULING['MAX_HORIZON_DAYS']
        if v > limit:
            raise serializers.ValidationError(f'at most {limit} days')
        return v


class PractitionerQuerySerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)


class BookingListQuerySerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()


class BookingCheckSerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    # parsed by the scheduling core so malformed times surface as invalid_time
    start = serializers.CharField(max_length=8)
    durationMinutes = serializers.IntegerField(required=False, validators=[validate_minutes])
    excludeBookingId = serializers.IntegerField(required=False, min_value=1)


class BookingCreateSerializer(serializers.Serializer):
    practitionerId = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    start = serializers.CharField(max_length=8)
    durationMinutes = serializers.IntegerField(required=False, validators=[validate_minutes])
    patientId = serializers.IntegerField(required=False, min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000)

    def validate_notes(self, v):
        return clean_text(v)


class BookingStatusSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    status = serializers.ChoiceField(choices=[s.value for s in BookingStatus])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def to_internal_value(self, data):
        # legacy names: bookingId / newStatus
        data = {
            'id': data.get('id') or data.get('bookingId'),
            'status': data.get('status') or data.get('newStatus'),
            'reason': data.get('reason') or '',
        }
        if isinstance(data['status'], str):
            data['status'] = data['status'].upper()
        return super().to_internal_value(data)

    def validate_reason(self, v):
        return clean_text(v)


class BookingRescheduleSerializer(serializers.Serializer):
    id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    start = serializers.CharField(max_length=8)
    durationMinutes = serializers.IntegerField(required=False, validators=[validate_minutes])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def to_internal_value(self, data):
        # legacy name: bookingId
        values = {key: data.get(key) for key in ('date', 'start', 'durationMinutes', 'reason') if key in data}
        values['id'] = data.get('id') or data.get('bookingId')
        return super().to_internal_value(values)

    def validate_reason(self, v):
        return clean_text(v)
