"""Slot generation for a calendar day plus the date/time parsing helpers.

Slots are produced in absolute time so that a window crossing midnight
spans two dates in order, and a zone with a DST change yields the real
number of slots (23 or 25 hours' worth on a full-day window).
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

from booking_scheduler.config import default_rules
from booking_scheduler.errors import InvalidDate, InvalidTimeRange
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.models.slots import TimeSlot

log = logging.getLogger("booking_scheduler.availability.slots")

_TIME_24H = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_TIME_12H = re.compile(r"^(\d{1,2}):([0-5]\d)\s*([AaPp][Mm])$")


# ── Parsing and formatting ───────────────────────────────────────


def parse_date(value: date | str | None) -> date:
    """Parse a ``YYYY-MM-DD`` string (or pass a date through)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str) or not value.strip():
        raise InvalidDate(f"Invalid date: {value!r}")
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDate(f"Invalid date: {value!r}")


def parse_time(value: time | str) -> time:
    """Parse a 24-hour ``HH:MM`` string (or pass a time through)."""
    if isinstance(value, time):
        return value
    match = _TIME_24H.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidTimeRange(f"Invalid time format: {value!r}")
    return time(int(match.group(1)), int(match.group(2)))


def format_time_slot(value: time | str, fmt: str = "24h") -> str:
    """Render a time as ``14:30`` (24h) or ``2:30 PM`` (12h)."""
    t = parse_time(value)
    if fmt == "24h":
        return f"{t.hour:02d}:{t.minute:02d}"
    if fmt == "12h":
        period = "PM" if t.hour >= 12 else "AM"
        display = t.hour % 12 or 12
        return f"{display}:{t.minute:02d} {period}"
    raise ValueError(f"Unknown time format: {fmt!r}")


def parse_time_slot(text: str) -> str:
    """Normalise ``2:30 PM`` or ``14:30`` to the 24-hour ``HH:MM`` form."""
    match = _TIME_12H.match(text.strip())
    if match:
        hour, minute, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
        if not 1 <= hour <= 12:
            raise InvalidTimeRange(f"Invalid time format: {text!r}")
        if period == "PM" and hour != 12:
            hour += 12
        elif period == "AM" and hour == 12:
            hour = 0
        return f"{hour:02d}:{minute:02d}"
    return format_time_slot(text, "24h")


def validate_time_range(start: time | str, end: time | str) -> tuple[time, time]:
    """Parse a start/end pair, rejecting malformed or non-increasing ranges."""
    start_t, end_t = parse_time(start), parse_time(end)
    if end_t <= start_t:
        raise InvalidTimeRange(
            f"End time {format_time_slot(end_t)} is not after start time "
            f"{format_time_slot(start_t)}"
        )
    return start_t, end_t


def resolve_zone(tz: str | tzinfo | None) -> tzinfo | None:
    """Turn an IANA zone name into a tzinfo; ``None`` means naive wall time."""
    if tz is None or isinstance(tz, tzinfo):
        return tz
    return ZoneInfo(tz)


def to_instant(value: datetime, zone: tzinfo | None) -> datetime:
    """Comparable form of a datetime: naive as-is, otherwise UTC."""
    if zone is None:
        return value
    if value.tzinfo is None:
        value = value.replace(tzinfo=zone)
    return value.astimezone(timezone.utc)


# ── Window and generation ─────────────────────────────────────────


def slot_window(
    day: date | str,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
) -> tuple[datetime, datetime]:
    """Absolute start and end of the bookable window of ``day``."""
    rules = rules or default_rules()
    target = parse_date(day)
    zone = resolve_zone(tz)

    start = datetime.combine(target, rules.open_time)
    end_day = target + timedelta(days=1) if rules.crosses_midnight else target
    end = datetime.combine(end_day, rules.close_time)
    if zone is not None:
        start = start.replace(tzinfo=zone)
        end = end.replace(tzinfo=zone)
    return start, end


def generate_time_slots(
    day: date | str,
    *,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
    now: datetime | None = None,
) -> list[TimeSlot]:
    """Return the ordered, contiguous slots of ``day``.

    When ``now`` falls on ``day`` the slots starting before it are left out
    entirely, so the count (and every index) depends on when it is called.
    Without ``now`` the full window is returned.
    """
    rules = rules or default_rules()
    target = parse_date(day)
    zone = resolve_zone(tz)
    window_start, window_end = slot_window(target, rules, zone)
    step = timedelta(minutes=rules.slot_minutes)

    cutoff = None
    if now is not None:
        if zone is None:
            local_now = now.replace(tzinfo=None)
        elif now.tzinfo is None:
            local_now = now.replace(tzinfo=zone)
        else:
            local_now = now.astimezone(zone)
        if local_now.date() == target:
            cutoff = to_instant(local_now, zone)

    cursor = to_instant(window_start, zone)
    end = to_instant(window_end, zone)
    slots: list[TimeSlot] = []
    while cursor + step <= end:
        if cutoff is None or cursor >= cutoff:
            if zone is None:
                start_dt, end_dt = cursor, cursor + step
            else:
                start_dt, end_dt = cursor.astimezone(zone), (cursor + step).astimezone(zone)
            slots.append(TimeSlot(start=start_dt, end=end_dt, available=True, index=len(slots)))
        cursor += step

    log.debug("Generated %d slots for %s (tz=%s)", len(slots), target, zone)
    return slots
