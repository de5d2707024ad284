"""Time slot value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class TimeSlot:
    """One fixed-width slot of a calendar day.

    ``index`` is the position in the day's generated sequence, so it is only
    meaningful against the sequence it came from.
    """

    start: datetime
    end: datetime
    available: bool = True
    index: int = 0

    @property
    def duration(self) -> timedelta:
        return elapsed(self.start, self.end)

    @property
    def label(self) -> str:
        return self.start.strftime("%H:%M")

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "start_at": self.start.isoformat(),
            "end_at": self.end.isoformat(),
            "available": self.available,
        }


@dataclass(frozen=True)
class SlotRun:
    """A maximal stretch of consecutive slots sharing one availability flag."""

    start: datetime
    end: datetime
    available: bool

    @property
    def duration(self) -> timedelta:
        return elapsed(self.start, self.end)

    def to_dict(self) -> dict:
        return {
            "start": self.start.strftime("%H:%M"),
            "end": self.end.strftime("%H:%M"),
            "available": self.available,
            "minutes": int(self.duration.total_seconds() // 60),
        }


def elapsed(start: datetime, end: datetime) -> timedelta:
    """Real elapsed time between two datetimes.

    Aware datetimes sharing a tzinfo subtract as wall-clock values, which is
    wrong across a DST change, so they are compared in UTC.
    """
    if start.tzinfo is not None and end.tzinfo is not None:
        return end.astimezone(timezone.utc) - start.astimezone(timezone.utc)
    return end - start


def shift(value: datetime, minutes: float) -> datetime:
    """Move a datetime by real elapsed minutes, keeping its zone."""
    if value.tzinfo is None:
        return value + timedelta(minutes=minutes)
    moved = value.astimezone(timezone.utc) + timedelta(minutes=minutes)
    return moved.astimezone(value.tzinfo)
