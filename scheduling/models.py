"""
Database models for practitioner schedules and bookings.

Weekly rules and date overrides are maintained by staff through the
Django admin and read by ``scheduling.services.sources``.  Clock times
are stored as ``HH:MM`` text so that they reach the scheduling core
exactly as entered; ``clean()`` runs the same validation the core applies
at query time.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import RegexValidator
from django.db import models
from django.db.models import Q

from .exceptions import InvalidScheduleData, InvalidTime
from .services import schedule as core
from .services.timeutils import MINUTES_PER_DAY, parse_clock
from .services.weekdays import WEEKDAY_CHOICES

clock_validator = RegexValidator(r'^\d{1,2}:\d{2}$', 'Enter a time as HH:MM.')


class User(AbstractUser):
    """Custom user model with a role.

    Practitioners are users with role 'doctor'.  'admin' and 'super'
    maintain schedules; patients book for themselves.
    """
    ROLE_CHOICES = [
        ('patient', 'Patient'),
        ('doctor', 'Doctor'),
        ('admin', 'Admin'),
        ('super', 'Super'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default='patient', db_index=True)

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class WeeklyRule(models.Model):
    """A recurring working interval of a practitioner on one weekday."""
    practitioner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='weekly_rules')
    weekday = models.PositiveSmallIntegerField(choices=WEEKDAY_CHOICES, help_text='0 = Sunday')
    start_time = models.CharField(max_length=5, validators=[clock_validator])
    end_time = models.CharField(max_length=5, validators=[clock_validator])
    break_start = models.CharField(max_length=5, blank=True, default='', validators=[clock_validator])
    break_end = models.CharField(max_length=5, blank=True, default='', validators=[clock_validator])
    effective_from = models.DateField(null=True, blank=True)
    effective_to = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['practitioner_id', 'weekday', 'start_time', 'id']
        indexes = [models.Index(fields=['practitioner', 'weekday'], name='sched_rule_pract_wd_idx')]

    def as_record(self) -> dict:
        return {
            'id': self.pk,
            'weekday': self.weekday,
            'start_time': self.start_time,
            'end_time': self.end_time,
            'break_start': self.break_start,
            'break_end': self.break_end,
            'effective_from': self.effective_from,
            'effective_to': self.effective_to,
        }

    def clean(self):
        try:
            core.WeeklyRule.coerce(self.as_record())
        except InvalidScheduleData as exc:
            raise ValidationError(str(exc)) from exc

    def __str__(self) -> str:
        return f"{self.practitioner_id}: {self.get_weekday_display()} {self.start_time}-{self.end_time}"


class DateOverride(models.Model):
    """Replaces the weekly template on one date; no open slot means closed (leave)."""
    practitioner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='date_overrides')
    date = models.DateField(db_index=True)
    reason = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['practitioner_id', 'date']
        constraints = [
            models.UniqueConstraint(fields=['practitioner', 'date'], name='uniq_override_per_day'),
        ]

    def as_record(self) -> dict:
        return {
            'id': self.pk,
            'date': self.date,
            'reason': self.reason,
            'slots': [
                {'start_time': s.start_time, 'end_time': s.end_time, 'is_open': s.is_open}
                for s in self.slots.all()
            ],
        }

    def __str__(self) -> str:
        return f"{self.practitioner_id}: {self.date}"


class OverrideSlot(models.Model):
    override = models.ForeignKey(DateOverride, on_delete=models.CASCADE, related_name='slots')
    position = models.PositiveSmallIntegerField(default=0)
    start_time = models.CharField(max_length=5, validators=[clock_validator])
    end_time = models.CharField(max_length=5, validators=[clock_validator])
    is_open = models.BooleanField(default=True)

    class Meta:
        ordering = ['position', 'id']

    def clean(self):
        try:
            start = parse_clock(self.start_time)
            end = parse_clock(self.end_time)
        except InvalidTime as exc:
            raise ValidationError(str(exc)) from exc
        if start >= end:
            raise ValidationError('Start time must be before end time.')

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}{'' if self.is_open else ' (closed)'}"


class Booking(models.Model):
    """A reserved interval on a practitioner's calendar."""
    STATUS_CHOICES = [(s.value, s.value.replace('_', ' ').title()) for s in core.BookingStatus]
    BLOCKING = [s.value for s in core.BLOCKING_STATUSES]

    practitioner = models.ForeignKey(User, on_delete=models.CASCADE, related_name='practitioner_bookings')
    patient = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_bookings'
    )
    date = models.DateField(db_index=True)
    start_time = models.CharField(max_length=5, validators=[clock_validator])
    duration_minutes = models.PositiveSmallIntegerField(default=30)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='PENDING', db_index=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['date', 'start_time', 'id']
        indexes = [models.Index(fields=['practitioner', 'date'], name='sched_booking_pract_date_idx')]
        constraints = [
            models.UniqueConstraint(
                fields=['practitioner', 'date', 'start_time'],
                condition=Q(status__in=['PENDING', 'CONFIRMED']),
                name='uniq_live_booking_start',
            ),
        ]

    def clean(self):
        try:
            start = parse_clock(self.start_time)
        except InvalidTime as exc:
            raise ValidationError({'start_time': str(exc)}) from exc
        if self.duration_minutes and start.minutes + self.duration_minutes > MINUTES_PER_DAY:
            raise ValidationError({'duration_minutes': 'Booking must end by midnight.'})

    def to_core(self) -> core.Booking:
        return core.Booking(
            practitioner_id=self.practitioner_id,
            date=self.date,
            start=parse_clock(self.start_time),
            duration_minutes=self.duration_minutes,
            status=core.BookingStatus(self.status),
            booking_id=self.pk,
        )

    def __str__(self) -> str:
        return f"{self.practitioner_id} {self.date} {self.start_time} [{self.status}]"


class BookingTransition(models.Model):
    """Records a status transition for a booking."""
    booking = models.ForeignKey(Booking, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=20, null=True, blank=True)
    to_status = models.CharField(max_length=20)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='booking_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.from_status} → {self.to_status}"
