"""Versioned availability snapshots loaded from a booking store.

Every load is stamped with a monotonically increasing request id.  When a
newer load was started before an older one resolved, the older response is
discarded, so navigating quickly between dates never shows stale data.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Iterable, Optional

from booking_scheduler.availability.checker import annotate_slots
from booking_scheduler.availability.slots import generate_time_slots, parse_date
from booking_scheduler.config import default_rules
from booking_scheduler.models.booking import Booking
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.models.slots import TimeSlot
from booking_scheduler.stores.base import BookingStore

log = logging.getLogger("booking_scheduler.snapshots")


@dataclass(frozen=True)
class AvailabilitySnapshot:
    """Read-only view of one date: its bookings and annotated slots."""

    version: int
    date: date
    bookings: tuple[Booking, ...]
    slots: tuple[TimeSlot, ...]
    blocked: bool = False
    blocked_reason: Optional[str] = None

    @property
    def open_slots(self) -> int:
        return sum(1 for slot in self.slots if slot.available)


@dataclass(frozen=True)
class DaySummary:
    date: date
    blocked: bool
    blocked_reason: Optional[str]
    booking_count: int
    open_slots: int

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "blocked": self.blocked,
            "blocked_reason": self.blocked_reason,
            "booking_count": self.booking_count,
            "open_slots": self.open_slots,
        }


def build_snapshot(
    day: date | str,
    bookings: Iterable[Booking],
    *,
    version: int = 0,
    blocked: bool = False,
    blocked_reason: Optional[str] = None,
    rules: SchedulingRules | None = None,
    tz: str | tzinfo | None = None,
    now: datetime | None = None,
) -> AvailabilitySnapshot:
    """Generate and annotate the slots of ``day`` against ``bookings``."""
    rules = rules or default_rules()
    target = parse_date(day)
    active = tuple(b for b in bookings if b.is_active)
    slots = generate_time_slots(target, rules=rules, tz=tz, now=now)
    annotated = annotate_slots(slots, target, active, blocked=blocked, rules=rules, tz=tz)
    return AvailabilitySnapshot(
        version=version,
        date=target,
        bookings=active,
        slots=tuple(annotated),
        blocked=blocked,
        blocked_reason=blocked_reason if blocked else None,
    )


class SnapshotLoader:
    """Loads snapshots from a store, discarding responses that went stale."""

    def __init__(
        self,
        store: BookingStore,
        *,
        rules: SchedulingRules | None = None,
        tz: str | tzinfo | None = None,
    ) -> None:
        self._store = store
        self._rules = rules
        self._tz = tz
        self._request_id = 0

    @property
    def latest_request_id(self) -> int:
        return self._request_id

    def invalidate(self) -> None:
        """Drop whatever load is in flight (e.g. the user navigated away)."""
        self._request_id += 1

    async def load(self, day: date | str, *, now: datetime | None = None) -> Optional[AvailabilitySnapshot]:
        """Fetch and build the snapshot of ``day``; None if superseded meanwhile."""
        self._request_id += 1
        request_id = self._request_id
        target = parse_date(day)

        # Neighbouring dates carry bookings that run across midnight
        bookings = await self._store.list_bookings(
            target - timedelta(days=1), target + timedelta(days=1)
        )
        availability = await self._store.get_date_availability(target)

        if request_id != self._request_id:
            log.warning(
                "Discarding stale snapshot for %s (request %d, latest %d)",
                target, request_id, self._request_id,
            )
            return None

        snapshot = build_snapshot(
            target,
            bookings,
            version=request_id,
            blocked=not availability.available,
            blocked_reason=availability.blocked_reason,
            rules=self._rules,
            tz=self._tz,
            now=now,
        )
        log.info(
            "Snapshot v%d for %s: %d bookings, %d/%d open slots%s",
            snapshot.version, target, len(snapshot.bookings),
            snapshot.open_slots, len(snapshot.slots),
            " (blocked)" if snapshot.blocked else "",
        )
        return snapshot

    async def month_overview(
        self, year: int, month: int, *, now: datetime | None = None,
    ) -> list[DaySummary]:
        """Summarise every date of a month for the calendar view."""
        first = date(year, month, 1)
        last = date(year, month, calendar.monthrange(year, month)[1])
        bookings = await self._store.list_bookings(first - timedelta(days=1), last + timedelta(days=1))
        flags = {a.date: a for a in await self._store.list_date_availability(first, last)}

        summaries = []
        day = first
        while day <= last:
            flag = flags.get(day)
            blocked = flag is not None and not flag.available
            snapshot = build_snapshot(
                day,
                bookings,
                blocked=blocked,
                blocked_reason=flag.blocked_reason if flag else None,
                rules=self._rules,
                tz=self._tz,
                now=now,
            )
            summaries.append(DaySummary(
                date=day,
                blocked=blocked,
                blocked_reason=snapshot.blocked_reason,
                booking_count=sum(1 for b in snapshot.bookings if b.date == day),
                open_slots=snapshot.open_slots,
            ))
            day += timedelta(days=1)
        return summaries
