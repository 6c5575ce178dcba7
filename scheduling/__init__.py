"""Practitioner availability and booking app.

``scheduling.services`` holds the pure scheduling core; models, views and
admin registrations are the thin layer that feeds it and stores bookings.
"""
