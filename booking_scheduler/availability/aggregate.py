"""Slot run merging and plain-overlap conflict lookup."""

from __future__ import annotations

from datetime import date, tzinfo
from typing import Iterable, Sequence, Union

from booking_scheduler.availability.checker import Boundary, candidate_range
from booking_scheduler.availability.slots import resolve_zone, to_instant
from booking_scheduler.models.booking import Booking
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.models.slots import SlotRun, TimeSlot


def merge_slots(slots: Sequence[Union[TimeSlot, SlotRun]]) -> list[SlotRun]:
    """Collapse consecutive slots with the same availability into runs.

    Idempotent, and the runs cover exactly the time of the input: a gap in
    the input starts a new run rather than being bridged.
    """
    runs: list[SlotRun] = []
    for slot in slots:
        if runs and runs[-1].end == slot.start and runs[-1].available == slot.available:
            last = runs[-1]
            runs[-1] = SlotRun(start=last.start, end=slot.end, available=last.available)
        else:
            runs.append(SlotRun(start=slot.start, end=slot.end, available=slot.available))
    return runs


def find_conflicts(
    day: date | str,
    start: Boundary,
    end: Boundary,
    existing_bookings: Iterable[Booking],
    *,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> list[Booking]:
    """Active bookings whose unpadded ``[start, end)`` overlaps the candidate.

    Reports *what* is in the way and ignores padding; ``is_available``
    gives the padded yes/no answer.
    """
    zone = resolve_zone(tz)
    start_dt, end_dt = candidate_range(day, start, end, rules, zone)
    zone = zone or start_dt.tzinfo or end_dt.tzinfo
    start_i, end_i = to_instant(start_dt, zone), to_instant(end_dt, zone)
    return [
        booking
        for booking in existing_bookings
        if booking.is_active
        and start_i < to_instant(booking.end_at, zone)
        and end_i > to_instant(booking.start_at, zone)
    ]
