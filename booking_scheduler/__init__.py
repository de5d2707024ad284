"""Availability scheduling engine for event bookings.

Computes which slots of a day can be booked for a set of services and
drives the pointer/touch selection of a contiguous range over them.
"""

__version__ = "0.1.0"
