"""
Django admin registrations for the scheduling models.

Weekly rules and date overrides are maintained here by staff; the
scheduling core treats them as read-only input.  Model ``clean()``
applies the same validation the core runs at query time, so a rule
that would break availability is rejected on save.
"""

from django.contrib import admin

from .models import (
    User,
    WeeklyRule,
    DateOverride,
    OverrideSlot,
    Booking,
    BookingTransition,
)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_staff', 'is_superuser')
    list_filter = ('role',)
    search_fields = ('username', 'first_name', 'last_name')


@admin.register(WeeklyRule)
class WeeklyRuleAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'weekday', 'start_time', 'end_time', 'break_start', 'break_end', 'is_active')
    list_filter = ('weekday', 'is_active')
    search_fields = ('practitioner__username',)


class OverrideSlotInline(admin.TabularInline):
    model = OverrideSlot
    extra = 1


@admin.register(DateOverride)
class DateOverrideAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'date', 'reason', 'is_active')
    list_filter = ('is_active',)
    search_fields = ('practitioner__username', 'reason')
    date_hierarchy = 'date'
    inlines = [OverrideSlotInline]


class BookingTransitionInline(admin.TabularInline):
    model = BookingTransition
    extra = 0
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ('practitioner', 'patient', 'date', 'start_time', 'duration_minutes', 'status')
    list_filter = ('status', 'date')
    search_fields = ('practitioner__username', 'patient__username')
    inlines = [BookingTransitionInline]
