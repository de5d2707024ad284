"""Availability checks against existing reservations.

A candidate ``[start, end)`` is bookable when it stays inside the day's
window and misses the effective occupied window of every active booking::

    [start - setup - buffer, end + breakdown + buffer)

Intervals are half-open, so a candidate ending exactly where a padded window
begins is still available.  Everything is compared as absolute datetimes,
which keeps bookings that run past midnight correct.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from booking_scheduler.availability.padding import (
    breakdown_time,
    buffer_between_bookings,
    setup_time,
)
from booking_scheduler.availability.slots import (
    parse_date,
    parse_time,
    resolve_zone,
    slot_window,
    to_instant,
)
from booking_scheduler.config import default_rules
from booking_scheduler.errors import InvalidTimeRange
from booking_scheduler.models.booking import Booking
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.models.slots import TimeSlot, shift

log = logging.getLogger("booking_scheduler.availability.checker")

Boundary = datetime | time | str


def anchor_time(
    day: date,
    value: Boundary,
    rules: SchedulingRules,
    zone: tzinfo | None = None,
) -> datetime:
    """Place a time-of-day on the right date of ``day``'s window.

    On a window that crosses midnight, times earlier than the opening time
    belong to the following date.  Datetimes are returned unchanged.
    """
    if isinstance(value, datetime):
        return value
    t = parse_time(value)
    anchored = datetime.combine(day, t)
    if rules.crosses_midnight and t < rules.open_time:
        anchored += timedelta(days=1)
    if zone is not None:
        anchored = anchored.replace(tzinfo=zone)
    return anchored


def candidate_range(
    day: date | str,
    start: Boundary,
    end: Boundary,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Absolute ``(start, end)`` of a candidate; raises ``InvalidTimeRange`` if inverted."""
    rules = rules or default_rules()
    target = parse_date(day)
    zone = resolve_zone(tz)
    start_dt = anchor_time(target, start, rules, zone)
    end_dt = anchor_time(target, end, rules, zone)
    check_zone = zone or start_dt.tzinfo or end_dt.tzinfo
    if to_instant(end_dt, check_zone) <= to_instant(start_dt, check_zone):
        raise InvalidTimeRange(f"Range {start!s}–{end!s} does not move forward in time")
    return start_dt, end_dt


def occupied_window(
    booking: Booking,
    rules: SchedulingRules | None = None,
    *,
    include_setup: bool = True,
    include_breakdown: bool = True,
) -> tuple[datetime, datetime]:
    """Effective occupied window of a booking (naive wall-clock datetimes)."""
    rules = rules or default_rules()
    before = buffer_between_bookings(rules)
    after = buffer_between_bookings(rules)
    if include_setup:
        before += setup_time(booking.services, rules)
    if include_breakdown:
        after += breakdown_time(booking.services, rules)
    return (
        booking.start_at - timedelta(minutes=before),
        booking.end_at + timedelta(minutes=after),
    )


def is_available(
    day: date | str,
    candidate_start: Boundary,
    candidate_end: Boundary,
    existing_bookings: Iterable[Booking],
    *,
    include_setup: bool = True,
    include_breakdown: bool = True,
    blocked: bool = False,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> bool:
    """Return True when the candidate range can be booked on ``day``.

    Out-of-hours candidates, blocked dates and padded overlaps all answer
    ``False``; only malformed input raises.
    """
    rules = rules or default_rules()
    target = parse_date(day)
    zone = resolve_zone(tz)
    start_dt, end_dt = candidate_range(target, candidate_start, candidate_end, rules, zone)
    if zone is None:
        zone = start_dt.tzinfo or end_dt.tzinfo

    if blocked:
        return False

    window_start, window_end = slot_window(target, rules, zone)
    start_i, end_i = to_instant(start_dt, zone), to_instant(end_dt, zone)
    if start_i < to_instant(window_start, zone) or end_i > to_instant(window_end, zone):
        log.debug("Candidate %s–%s outside window of %s", start_dt, end_dt, target)
        return False

    for booking in existing_bookings:
        if not booking.is_active:
            continue
        occ_start, occ_end = occupied_window(
            booking,
            rules,
            include_setup=include_setup,
            include_breakdown=include_breakdown,
        )
        if start_i < to_instant(occ_end, zone) and end_i > to_instant(occ_start, zone):
            log.debug(
                "Candidate %s–%s hits booking %s (occupied %s–%s)",
                start_dt, end_dt, booking.id, occ_start, occ_end,
            )
            return False
    return True


def annotate_slots(
    slots: Iterable[TimeSlot],
    day: date | str,
    existing_bookings: Iterable[Booking],
    *,
    span_minutes: int | None = None,
    blocked: bool = False,
    include_setup: bool = True,
    include_breakdown: bool = True,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> list[TimeSlot]:
    """Copy ``slots`` with ``available`` set from the checker.

    Each slot is checked for its own span, or for a booking of
    ``span_minutes`` starting at it when given.  A blocked date has no
    available slots.
    """
    rules = rules or default_rules()
    bookings = [b for b in existing_bookings if b.is_active]
    annotated = []
    for slot in slots:
        if blocked:
            available = False
        else:
            end = shift(slot.start, span_minutes) if span_minutes else slot.end
            available = is_available(
                day,
                slot.start,
                end,
                bookings,
                include_setup=include_setup,
                include_breakdown=include_breakdown,
                rules=rules,
                tz=tz,
            )
        annotated.append(dataclasses.replace(slot, available=available))
    return annotated
