"""Booking store abstractions and implementations."""

from .base import BookingNotFound, BookingStore
from .memory import InMemoryBookingStore

__all__ = ["BookingNotFound", "BookingStore", "InMemoryBookingStore"]
