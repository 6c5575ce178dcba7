"""Scheduling core.

Everything here except ``sources`` is free of ORM access, clocks and I/O:
callers pass dates, schedules and bookings in and get values back.
"""
