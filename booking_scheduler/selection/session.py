"""Per-user selection session: one engine bound to a snapshot source.

A SelectionSession owns a SelectionEngine for the date the user is looking
at.  It:
  1. Loads availability snapshots through a SnapshotLoader
  2. Forwards pointer and touch events to the engine
  3. Emits trace events to an attached DebugBroadcaster
  4. Books the committed range through the BookingStore
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import date, datetime, timedelta
from typing import Any, Optional

from booking_scheduler.availability.checker import is_available
from booking_scheduler.debug_events import DebugBroadcaster, EventType
from booking_scheduler.models.booking import Booking, BookingStatus, SelectionOutput
from booking_scheduler.selection.engine import SelectionEngine, TouchResult
from booking_scheduler.selection.state import Phase, Point, SelectionRange
from booking_scheduler.snapshots import AvailabilitySnapshot, SnapshotLoader
from booking_scheduler.stores.base import BookingStore

log = logging.getLogger("booking_scheduler.selection.session")


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "SelectionSession"] = {}


def register_session(session: "SelectionSession") -> str:
    """Register a session and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    session._session_id = session_id
    session._started_at = time.time()
    _active_sessions[session_id] = session
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    if _active_sessions.pop(session_id, None) is not None:
        log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "SelectionSession"]:
    return _active_sessions


def get_session(session_id: str) -> "SelectionSession | None":
    return _active_sessions.get(session_id)


def _range_dict(selection: Optional[SelectionRange]) -> Optional[dict]:
    if selection is None:
        return None
    return {
        "start_slot_index": selection.start_slot_index,
        "end_slot_index": selection.end_slot_index,
        "required_duration_minutes": selection.required_duration_minutes,
        "valid": selection.valid,
    }


class SelectionSession:
    """One user's interactive selection over a day of the calendar.

    Typical lifecycle::

        session = SelectionSession(engine, loader, store)
        await session.refresh("2025-06-14")

        session.pointer_down(40, timestamp=0)
        session.pointer_move(52, timestamp=30)
        if session.pointer_up(timestamp=60):
            booking = await session.submit()
    """

    def __init__(
        self,
        engine: SelectionEngine,
        loader: SnapshotLoader,
        store: BookingStore,
    ) -> None:
        self._engine = engine
        self._loader = loader
        self._store = store

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._started_at: float = 0.0

        self._debug_broadcaster: DebugBroadcaster | None = None

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def engine(self) -> SelectionEngine:
        return self._engine

    @property
    def day(self) -> Optional[date]:
        snapshot = self._engine.snapshot
        return snapshot.date if snapshot else None

    def attach_broadcaster(self, broadcaster: DebugBroadcaster) -> None:
        self._debug_broadcaster = broadcaster

    def _emit_event(self, event_type: EventType, data: dict) -> None:
        if self._debug_broadcaster:
            self._debug_broadcaster.emit(event_type, self._engine.phase.value, data)

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API."""
        engine = self._engine
        output = engine.output
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "started_at": self._started_at,
            "date": self.day.isoformat() if self.day else None,
            "phase": engine.phase.value,
            "services": sorted(engine.services),
            "required_duration_minutes": engine.required_duration,
            "selection": _range_dict(engine.selection),
            "output": output.model_dump(mode="json") if output else None,
        }
        if detail:
            snapshot = engine.snapshot
            d["snapshot_version"] = snapshot.version if snapshot else None
            d["slots"] = [s.to_dict() for s in snapshot.slots] if snapshot else []
            if self._debug_broadcaster:
                d["event_log"] = self._debug_broadcaster.event_log
        return d

    async def refresh(
        self, day: date | str | None = None, *, now: datetime | None = None,
    ) -> Optional[AvailabilitySnapshot]:
        """Load the snapshot of ``day`` (default: the current date) and apply it.

        Returns None when the load was superseded or the snapshot was older
        than the one already in use.
        """
        target = day if day is not None else self.day
        if target is None:
            raise ValueError("No date to refresh: pass one on the first call")
        snapshot = await self._loader.load(target, now=now)
        if snapshot is None or not self._engine.apply_snapshot(snapshot):
            return None
        self._emit_event("snapshot", {
            "version": snapshot.version,
            "date": snapshot.date.isoformat(),
            "open_slots": snapshot.open_slots,
            "blocked": snapshot.blocked,
        })
        return snapshot

    def set_services(self, services, custom_duration: Optional[int] = None) -> None:
        self._engine.set_services(services, custom_duration=custom_duration)
        self._emit_event("services", {
            "services": sorted(self._engine.services),
            "required_duration_minutes": self._engine.required_duration,
        })

    # ── Pointer input ─────────────────────────────────────────

    def pointer_down(
        self, index: int, *, timestamp: float, point: Optional[Point] = None,
    ) -> SelectionRange:
        selection = self._engine.begin(index, timestamp=timestamp, point=point)
        self._emit_event("begin", _range_dict(selection))
        return selection

    def pointer_move(
        self, index: int, *, timestamp: float, point: Optional[Point] = None,
    ) -> Optional[SelectionRange]:
        selection = self._engine.move(index, timestamp=timestamp, point=point)
        if selection is not None:
            self._emit_event("move", _range_dict(selection))
        return selection

    def pointer_up(self, *, timestamp: Optional[float] = None) -> Optional[SelectionOutput]:
        if self._engine.phase != Phase.SELECTING:
            return None
        attempted = self._engine.selection
        output = self._engine.end(timestamp=timestamp)
        self._emit_commit(attempted, output)
        return output

    def tap(self, index: int, *, timestamp: float) -> Optional[SelectionOutput]:
        output = self._engine.tap(index, timestamp=timestamp)
        self._emit_commit(self._engine.selection, output, index=index)
        return output

    def cancel(self, reason: str = "cancel") -> None:
        self._engine.cancel()
        self._emit_event("cancel", {"reason": reason})

    # ── Touch input ───────────────────────────────────────────

    def touch_start(self, touch_id: int, point: Point, index: int, *, timestamp: float) -> bool:
        return self._engine.touch_start(touch_id, point, index, timestamp=timestamp)

    def touch_move(
        self, touch_id: int, point: Point, index: int, *, timestamp: float,
    ) -> Optional[SelectionRange]:
        selection = self._engine.touch_move(touch_id, point, index, timestamp=timestamp)
        if selection is not None:
            self._emit_event("move", _range_dict(selection))
        return selection

    def touch_end(self, touch_id: int, *, timestamp: float) -> Optional[TouchResult]:
        result = self._engine.touch_end(touch_id, timestamp=timestamp)
        if result is None:
            return None
        self._emit_event("gesture", {
            "gesture": result.gesture.value,
            "slot_index": result.slot_index,
            "committed": result.output is not None,
        })
        return result

    def touch_cancel(self, touch_id: int) -> None:
        if self._engine.active_touch_id == touch_id:
            self.cancel(reason="touch-cancel")

    # ── Booking ───────────────────────────────────────────────

    async def submit(self) -> Optional[Booking]:
        """Book the committed selection as a pending reservation.

        Availability is checked again against the store, since the snapshot
        may be out of date.  Returns None if nothing is committed or the
        range was taken meanwhile.
        """
        output = self._engine.output
        if output is None:
            return None

        day = output.date
        bookings = await self._store.list_bookings(day - timedelta(days=1), day + timedelta(days=1))
        flag = await self._store.get_date_availability(day)
        engine = self._engine
        if not is_available(
            day,
            output.start_time,
            output.end_time,
            bookings,
            blocked=not flag.available,
            rules=engine.rules,
            tz=engine.tz,
        ):
            log.warning(
                "Session %s: %s %s-%s no longer available",
                self._session_id, day,
                output.start_time.strftime("%H:%M"), output.end_time.strftime("%H:%M"),
            )
            self._emit_event("reject", {"reason": "taken", "date": day.isoformat()})
            engine.cancel()
            await self.refresh()
            return None

        booking = await self._store.create_booking(Booking(
            id="",
            date=output.start_time.date(),
            start_time=output.start_time.time(),
            end_time=output.end_time.time(),
            services=output.services,
            status=BookingStatus.PENDING,
        ))
        self._emit_event("submit", {"booking_id": booking.id, **output.model_dump(mode="json")})
        log.info("Session %s booked %s", self._session_id, booking.id)
        engine.cancel()
        await self.refresh()
        return booking

    # ── Internal ──────────────────────────────────────────────

    def _emit_commit(
        self,
        attempted: Optional[SelectionRange],
        output: Optional[SelectionOutput],
        index: Optional[int] = None,
    ) -> None:
        if output is not None:
            self._emit_event("commit", output.model_dump(mode="json"))
        elif attempted is not None or index is not None:
            data = _range_dict(attempted) or {"start_slot_index": index, "end_slot_index": index}
            self._emit_event("reject", {"reason": "unavailable", **data})
