"""Conflict classification and alternative time suggestions.

Used to explain a rejected range to the user: which bookings are in the
way, whether the clash is with the event itself or only with its padding,
and which nearby windows would work instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from enum import Enum
from typing import Iterable, Optional

from booking_scheduler.availability.checker import (
    Boundary,
    anchor_time,
    candidate_range,
    is_available,
    occupied_window,
)
from booking_scheduler.availability.padding import breakdown_time, setup_time
from booking_scheduler.availability.slots import (
    generate_time_slots,
    parse_date,
    resolve_zone,
    slot_window,
    to_instant,
)
from booking_scheduler.config import default_rules
from booking_scheduler.models.booking import Booking
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.models.slots import elapsed, shift


class ConflictKind(str, Enum):
    DIRECT_OVERLAP = "direct-overlap"
    SETUP_CONFLICT = "setup-conflict"
    BUFFER_VIOLATION = "buffer-violation"


@dataclass(frozen=True)
class ConflictInfo:
    booking: Booking
    kind: ConflictKind

    def to_dict(self) -> dict:
        return {
            "booking_id": self.booking.id,
            "kind": self.kind.value,
            "start": self.booking.start_time.strftime("%H:%M"),
            "end": self.booking.end_time.strftime("%H:%M"),
        }


@dataclass(frozen=True)
class AlternativeSlot:
    start: datetime
    end: datetime
    score: float

    def to_dict(self) -> dict:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "score": round(self.score, 3),
        }


def detect_conflicts(
    day: date | str,
    start: Boundary,
    end: Boundary,
    existing_bookings: Iterable[Booking],
    *,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> list[ConflictInfo]:
    """Classify every active booking whose padded window meets the candidate."""
    rules = rules or default_rules()
    zone = resolve_zone(tz)
    start_dt, end_dt = candidate_range(day, start, end, rules, zone)
    zone = zone or start_dt.tzinfo or end_dt.tzinfo
    start_i, end_i = to_instant(start_dt, zone), to_instant(end_dt, zone)

    def overlaps(window: tuple) -> bool:
        return start_i < to_instant(window[1], zone) and end_i > to_instant(window[0], zone)

    found = []
    for booking in existing_bookings:
        if not booking.is_active:
            continue
        if overlaps((booking.start_at, booking.end_at)):
            kind = ConflictKind.DIRECT_OVERLAP
        elif not overlaps(occupied_window(booking, rules)):
            continue
        elif overlaps(_setup_breakdown_window(booking, rules)):
            kind = ConflictKind.SETUP_CONFLICT
        else:
            kind = ConflictKind.BUFFER_VIOLATION
        found.append(ConflictInfo(booking=booking, kind=kind))
    return found


def _setup_breakdown_window(booking: Booking, rules: SchedulingRules) -> tuple[datetime, datetime]:
    return (
        booking.start_at - timedelta(minutes=setup_time(booking.services, rules)),
        booking.end_at + timedelta(minutes=breakdown_time(booking.services, rules)),
    )


def suggest_alternatives(
    day: date | str,
    duration_minutes: int,
    existing_bookings: Iterable[Booking],
    *,
    preferred_start: Optional[Boundary] = None,
    limit: int = 3,
    blocked: bool = False,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> list[AlternativeSlot]:
    """Bookable windows of ``duration_minutes`` closest to ``preferred_start``.

    Candidates start on slot boundaries.  The score falls from 1.0 with the
    distance (in hours) from the preferred start.
    """
    rules = rules or default_rules()
    target = parse_date(day)
    zone = resolve_zone(tz)
    if blocked:
        return []
    bookings = [b for b in existing_bookings if b.is_active]

    if preferred_start is None:
        preferred = slot_window(target, rules, zone)[0]
    else:
        preferred = anchor_time(target, preferred_start, rules, zone)

    options = []
    for slot in generate_time_slots(target, rules=rules, tz=zone):
        end = shift(slot.start, duration_minutes)
        if not is_available(target, slot.start, end, bookings, rules=rules, tz=zone):
            continue
        distance = abs(elapsed(preferred, slot.start).total_seconds()) / 3600
        options.append(AlternativeSlot(start=slot.start, end=end, score=1 / (1 + distance)))

    options.sort(key=lambda option: (-option.score, to_instant(option.start, zone)))
    return options[:limit]
