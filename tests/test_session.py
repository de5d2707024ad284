"""Tests for SelectionSession: snapshot refresh, event forwarding and booking submit."""

import os
import sys
from datetime import date, time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_scheduler.debug_events import DebugBroadcaster
from booking_scheduler.models.booking import Booking, BookingStatus
from booking_scheduler.models.gestures import GestureThresholds
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.selection.engine import SelectionEngine
from booking_scheduler.selection.session import (
    SelectionSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from booking_scheduler.selection.state import Phase, Point
from booking_scheduler.snapshots import SnapshotLoader
from booking_scheduler.stores.memory import InMemoryBookingStore

RULES = SchedulingRules()
DAY = date(2030, 6, 14)


def _session(bookings=(), services=()):
    store = InMemoryBookingStore(bookings)
    engine = SelectionEngine(
        services=services, rules=RULES, move_interval_ms=16, thresholds=GestureThresholds(),
    )
    session = SelectionSession(engine, SnapshotLoader(store, rules=RULES), store)
    broadcaster = DebugBroadcaster("test-session")
    session.attach_broadcaster(broadcaster)
    return session, store, broadcaster


def _types(broadcaster):
    return [e["type"] for e in broadcaster.event_log]


class TestRefresh:
    async def test_first_refresh_needs_a_date(self):
        session, _, _ = _session()
        with pytest.raises(ValueError):
            await session.refresh()

    async def test_refresh_applies_snapshot(self):
        session, _, broadcaster = _session()
        snap = await session.refresh(DAY)
        assert session.day == DAY
        assert session.engine.snapshot is snap
        event = broadcaster.event_log[-1]
        assert event["type"] == "snapshot"
        assert event["data"]["open_slots"] == 60

    async def test_refresh_defaults_to_current_day(self):
        session, store, _ = _session()
        await session.refresh(DAY)
        await store.create_booking(Booking(id="", date=DAY, start_time="14:00", end_time="18:00"))
        snap = await session.refresh()
        assert snap.version == 2
        assert snap.open_slots < 60


class TestPointerEvents:
    async def test_drag_emits_begin_move_commit(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)

        session.pointer_down(10, timestamp=0, point=Point(0, 0))
        session.pointer_move(14, timestamp=20)
        session.pointer_move(12, timestamp=40)
        output = session.pointer_up(timestamp=60)

        assert output.start_time.time() == time(10, 30)
        assert _types(broadcaster)[-4:] == ["begin", "move", "move", "commit"]
        assert broadcaster.event_log[-1]["phase"] == "committed"

    async def test_throttled_move_not_emitted(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        session.pointer_down(10, timestamp=0)
        assert session.pointer_move(11, timestamp=5) is None
        assert _types(broadcaster)[-1] == "begin"

    async def test_rejected_release_emits_reject(self):
        session, _, broadcaster = _session(
            [Booking(id="b", date=DAY, start_time="14:00", end_time="18:00")]
        )
        await session.refresh(DAY)
        session.pointer_down(10, timestamp=0)
        session.pointer_move(20, timestamp=20)
        assert session.pointer_up(timestamp=40) is None
        event = broadcaster.event_log[-1]
        assert event["type"] == "reject"
        assert event["data"]["end_slot_index"] == 20

    async def test_pointer_up_when_idle_is_silent(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        count = len(broadcaster.event_log)
        assert session.pointer_up(timestamp=0) is None
        assert len(broadcaster.event_log) == count

    async def test_tap_reject(self):
        session, _, broadcaster = _session(
            [Booking(id="b", date=DAY, start_time="10:00", end_time="11:00")]
        )
        await session.refresh(DAY)
        assert session.tap(6, timestamp=0) is None
        event = broadcaster.event_log[-1]
        assert event["type"] == "reject"
        assert event["data"]["start_slot_index"] == 6

    async def test_cancel(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        session.pointer_down(10, timestamp=0)
        session.cancel(reason="escape")
        assert session.engine.phase == Phase.IDLE
        assert broadcaster.event_log[-1]["data"] == {"reason": "escape"}

    async def test_set_services(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        session.set_services(["DJ", "Karaoke"])
        event = broadcaster.event_log[-1]
        assert event["type"] == "services"
        assert event["data"]["required_duration_minutes"] == 300


class TestTouchEvents:
    async def test_touch_tap_emits_gesture(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        session.touch_start(1, Point(5, 5), 8, timestamp=0)
        result = session.touch_end(1, timestamp=100)
        assert result.output is not None
        assert broadcaster.event_log[-1]["data"] == {
            "gesture": "tap", "slot_index": 8, "committed": True,
        }

    async def test_touch_drag_emits_moves(self):
        session, _, broadcaster = _session()
        await session.refresh(DAY)
        session.touch_start(1, Point(0, 0), 8, timestamp=0)
        session.touch_move(1, Point(0, 90), 12, timestamp=50)
        assert _types(broadcaster)[-1] == "move"
        session.touch_cancel(1)
        assert broadcaster.event_log[-1]["data"]["reason"] == "touch-cancel"


class TestSubmit:
    async def test_nothing_committed(self):
        session, _, _ = _session()
        await session.refresh(DAY)
        assert await session.submit() is None

    async def test_books_pending_reservation(self):
        session, store, broadcaster = _session(services=["Karaoke"])
        await session.refresh(DAY)
        session.tap(8, timestamp=0)

        booking = await session.submit()
        assert booking.id
        assert booking.status == BookingStatus.PENDING
        assert booking.date == DAY
        assert booking.start_time == time(10, 0)
        assert booking.end_time == time(13, 0)
        assert booking.services == ["Karaoke"]
        assert await store.get_booking(booking.id) == booking

        assert "submit" in _types(broadcaster)
        # Engine is reset and the new booking is visible
        assert session.engine.phase == Phase.IDLE
        assert session.engine.snapshot.open_slots < 60

    async def test_taken_meanwhile(self):
        session, store, broadcaster = _session()
        await session.refresh(DAY)
        session.tap(10, timestamp=0)

        await store.create_booking(Booking(id="", date=DAY, start_time="10:00", end_time="11:00"))
        assert await session.submit() is None
        assert len(await store.list_bookings(DAY, DAY)) == 1
        assert any(e["type"] == "reject" and e["data"]["reason"] == "taken"
                   for e in broadcaster.event_log)
        assert session.engine.phase == Phase.IDLE


class TestRegistry:
    def test_register_and_lookup(self):
        session, _, _ = _session()
        sid = register_session(session)
        try:
            assert sid
            assert session.session_id == sid
            assert get_session(sid) is session
            assert sid in get_active_sessions()
        finally:
            unregister_session(sid)
        assert get_session(sid) is None

    def test_unregister_unknown_is_noop(self):
        unregister_session("does-not-exist")

    async def test_to_dict(self):
        session, _, _ = _session(services=["DJ"])
        await session.refresh(DAY)
        session.pointer_down(3, timestamp=0)
        d = session.to_dict()
        assert d["date"] == "2030-06-14"
        assert d["phase"] == "selecting"
        assert d["services"] == ["DJ"]
        assert d["required_duration_minutes"] == 300
        assert d["selection"]["start_slot_index"] == 3
        assert d["output"] is None
        assert "slots" not in d

        detail = session.to_dict(detail=True)
        assert len(detail["slots"]) == 60
        assert detail["snapshot_version"] == 1
        assert detail["event_log"]
