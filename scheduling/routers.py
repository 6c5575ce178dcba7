"""
URL mappings for the scheduling API.

Trailing slashes are omitted on purpose (``APPEND_SLASH = False``).
"""
from django.urls import path, include

from .views import health
from .views.availability import availability, horizon, work_stats
from .views.bookings import (
    booking_check,
    booking_create,
    booking_list,
    booking_reschedule,
    booking_update_status,
)

urlpatterns = [
    path('api/schedule/availability', availability),
    path('api/schedule/horizon', horizon),
    path('api/schedule/work-stats', work_stats),
    path('api/bookings', booking_list),
    path('api/bookings/check', booking_check),
    path('api/bookings/create', booking_create),
    path('api/bookings/update-status', booking_update_status),
    path('api/bookings/reschedule', booking_reschedule),
    path('healthz', health.healthz),
    path('metrics', include('django_prometheus.urls')),
]
