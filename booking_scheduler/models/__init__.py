"""Data models for the scheduling core."""

from .booking import Booking, BookingStatus, DateAvailability, SelectionOutput
from .services import (
    DEFAULT_SERVICE_RULES,
    SchedulingRules,
    ServiceId,
    ServiceRule,
    normalize_services,
    service_key,
)
from .gestures import GestureThresholds
from .slots import SlotRun, TimeSlot

__all__ = [
    "Booking",
    "BookingStatus",
    "DateAvailability",
    "SelectionOutput",
    "DEFAULT_SERVICE_RULES",
    "SchedulingRules",
    "ServiceId",
    "ServiceRule",
    "normalize_services",
    "service_key",
    "GestureThresholds",
    "SlotRun",
    "TimeSlot",
]
