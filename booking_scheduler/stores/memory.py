"""In-memory booking store, used by the HTTP app by default and in tests."""

from __future__ import annotations

import asyncio
import itertools
import logging
from datetime import date
from typing import Any, Iterable, Optional

from booking_scheduler.models.booking import Booking, DateAvailability

from .base import BookingNotFound, BookingStore

log = logging.getLogger("booking_scheduler.stores.memory")


class InMemoryBookingStore(BookingStore):
    """BookingStore kept in process memory.

    Guarded by an ``asyncio.Lock`` so concurrent requests see whole writes.
    """

    def __init__(
        self,
        bookings: Iterable[Booking] = (),
        availability: Iterable[DateAvailability] = (),
    ) -> None:
        self._bookings: dict[str, Booking] = {b.id: b for b in bookings}
        self._availability: dict[date, DateAvailability] = {a.date: a for a in availability}
        self._ids = itertools.count(len(self._bookings) + 1)
        self._lock = asyncio.Lock()

    def _next_id(self) -> str:
        while True:
            candidate = str(next(self._ids))
            if candidate not in self._bookings:
                return candidate

    async def list_bookings(self, start: date, end: date) -> list[Booking]:
        found = [b for b in self._bookings.values() if start <= b.date <= end]
        return sorted(found, key=lambda b: b.start_at)

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    async def create_booking(self, booking: Booking) -> Booking:
        async with self._lock:
            if not booking.id or booking.id in self._bookings:
                booking = booking.model_copy(update={"id": self._next_id()})
            self._bookings[booking.id] = booking
        log.info("Booking %s created for %s %s", booking.id, booking.date, booking.start_time)
        return booking

    async def update_booking(self, booking_id: str, **changes: Any) -> Booking:
        async with self._lock:
            current = self._bookings.get(booking_id)
            if current is None:
                raise BookingNotFound(booking_id)
            # Re-validate so status strings and service enums are normalised
            updated = Booking.model_validate({**current.model_dump(), **changes, "id": booking_id})
            self._bookings[booking_id] = updated
        log.info("Booking %s updated: %s", booking_id, sorted(changes))
        return updated

    async def delete_booking(self, booking_id: str) -> bool:
        async with self._lock:
            removed = self._bookings.pop(booking_id, None)
        if removed is not None:
            log.info("Booking %s deleted", booking_id)
        return removed is not None

    async def get_date_availability(self, day: date) -> DateAvailability:
        return self._availability.get(day) or DateAvailability(date=day)

    async def set_date_availability(self, availability: DateAvailability) -> DateAvailability:
        if availability.available:
            availability = availability.model_copy(update={"blocked_reason": None})
        async with self._lock:
            self._availability[availability.date] = availability
        log.info(
            "Date %s %s%s",
            availability.date,
            "unblocked" if availability.available else "blocked",
            f" ({availability.blocked_reason})" if availability.blocked_reason else "",
        )
        return availability

    async def list_date_availability(self, start: date, end: date) -> list[DateAvailability]:
        return sorted(
            (a for d, a in self._availability.items() if start <= d <= end),
            key=lambda a: a.date,
        )
