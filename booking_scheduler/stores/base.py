"""Abstract base class for booking stores.

Defines the read/write interface the scheduling core consumes.  Any
persistence backend (SQL, HTTP API, etc.) implements this ABC.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

from booking_scheduler.models.booking import Booking, DateAvailability


class BookingNotFound(KeyError):
    """No booking with the given id."""


class BookingStore(ABC):
    """Abstract booking backend.

    Subclasses must implement booking CRUD plus the per-date block flags.
    """

    @abstractmethod
    async def list_bookings(self, start: date, end: date) -> list[Booking]:
        """Return bookings dated within ``[start, end]``, ordered by start.

        Args:
            start: First date of the range (inclusive).
            end: Last date of the range (inclusive).

        Returns:
            Bookings of every status; callers filter on ``is_active``.
        """

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return the booking with ``booking_id``, or None."""

    @abstractmethod
    async def create_booking(self, booking: Booking) -> Booking:
        """Persist a booking and return it as stored (with its id)."""

    @abstractmethod
    async def update_booking(self, booking_id: str, **changes: Any) -> Booking:
        """Apply field changes to a booking.

        Raises:
            BookingNotFound: if no booking has ``booking_id``.
        """

    @abstractmethod
    async def delete_booking(self, booking_id: str) -> bool:
        """Delete a booking.  Returns True if something was deleted."""

    @abstractmethod
    async def get_date_availability(self, day: date) -> DateAvailability:
        """Block flag for ``day`` (available when never set)."""

    @abstractmethod
    async def set_date_availability(self, availability: DateAvailability) -> DateAvailability:
        """Block or unblock a whole date."""

    @abstractmethod
    async def list_date_availability(self, start: date, end: date) -> list[DateAvailability]:
        """Explicit block flags set within ``[start, end]``."""
