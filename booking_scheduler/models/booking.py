"""Pydantic models for bookings, blocked dates and committed selections."""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, field_validator

from booking_scheduler.models.services import service_key


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """A stored reservation.  Read-only to the scheduling core.

    An ``end_time`` at or before ``start_time`` means the event runs past
    midnight and ends on the following date.
    """

    id: str
    date: date_type
    start_time: time
    end_time: time
    services: list[str] = []
    status: BookingStatus = BookingStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _lower_status(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @field_validator("services", mode="before")
    @classmethod
    def _service_keys(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return [service_key(s) for s in value]
        return value

    @property
    def is_active(self) -> bool:
        return self.status != BookingStatus.CANCELLED

    @property
    def start_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def end_at(self) -> datetime:
        end = datetime.combine(self.date, self.end_time)
        if self.end_time <= self.start_time:
            end += timedelta(days=1)
        return end


class DateAvailability(BaseModel):
    """Whole-date block flag managed from the admin calendar."""

    date: date_type
    available: bool = True
    blocked_reason: Optional[str] = None


class SelectionOutput(BaseModel):
    """What a committed selection hands to the booking-creation flow."""

    date: date_type
    start_time: datetime
    end_time: datetime
    services: list[str]
    duration_minutes: int
