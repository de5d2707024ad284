"""Tests for selection trace events, from session to broadcaster.

These tests verify that:
1. DebugBroadcaster delivers events to subscribers
2. The broadcaster registry hands out one broadcaster per session
3. SelectionSession emits events with the engine phase attached
"""

import os
import sys
from datetime import date

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_scheduler.debug_events import (
    QUEUE_SIZE,
    DebugBroadcaster,
    get_broadcaster,
    remove_broadcaster,
)
from booking_scheduler.models.gestures import GestureThresholds
from booking_scheduler.models.services import SchedulingRules
from booking_scheduler.selection.engine import SelectionEngine
from booking_scheduler.selection.session import (
    SelectionSession,
    register_session,
    unregister_session,
)
from booking_scheduler.snapshots import SnapshotLoader
from booking_scheduler.stores.memory import InMemoryBookingStore

RULES = SchedulingRules()


def _session():
    store = InMemoryBookingStore()
    engine = SelectionEngine(rules=RULES, move_interval_ms=16, thresholds=GestureThresholds())
    return SelectionSession(engine, SnapshotLoader(store, rules=RULES), store)


# ── DebugBroadcaster unit tests ─────────────────────────────────────


class TestDebugBroadcaster:
    def test_emit_without_subscribers(self):
        b = DebugBroadcaster("test-1")
        b.emit("begin", "selecting", {"start_slot_index": 3})
        assert len(b.event_log) == 1

    def test_emit_to_subscriber(self):
        b = DebugBroadcaster("test-2")
        q = b.subscribe()
        b.emit("move", "selecting", {"end_slot_index": 7})

        event = q.get_nowait()
        assert event["type"] == "move"
        assert event["phase"] == "selecting"
        assert event["data"]["end_slot_index"] == 7
        assert event["session_id"] == "test-2"
        assert "timestamp" in event

    def test_multiple_subscribers(self):
        b = DebugBroadcaster("test-3")
        q1 = b.subscribe()
        q2 = b.subscribe()
        b.emit("cancel", "idle", {})
        assert q1.get_nowait()["type"] == q2.get_nowait()["type"] == "cancel"

    def test_unsubscribe(self):
        b = DebugBroadcaster("test-4")
        q = b.subscribe()
        b.unsubscribe(q)
        assert b.subscriber_count == 0
        b.emit("begin", "selecting", {})
        assert q.empty()

    def test_unsubscribe_twice(self):
        b = DebugBroadcaster("test-4b")
        q = b.subscribe()
        b.unsubscribe(q)
        b.unsubscribe(q)
        assert b.subscriber_count == 0

    def test_event_log_returns_copy(self):
        b = DebugBroadcaster("test-5")
        b.emit("begin", "selecting", {})
        b.event_log.clear()
        assert len(b.event_log) == 1

    def test_event_log_is_bounded(self):
        b = DebugBroadcaster("test-6", max_log=5)
        for i in range(8):
            b.emit("move", "selecting", {"n": i})
        assert [e["data"]["n"] for e in b.event_log] == [3, 4, 5, 6, 7]

    def test_sequence_numbers(self):
        b = DebugBroadcaster("test-seq")
        first = b.emit("begin", "selecting", {})
        second = b.emit("move", "selecting", {})
        assert (first["seq"], second["seq"]) == (1, 2)
        assert b.last_seq == 2

    def test_filtered_subscriber(self):
        b = DebugBroadcaster("test-filter")
        q = b.subscribe(["commit", "reject"])
        b.emit("begin", "selecting", {})
        b.emit("move", "selecting", {})
        b.emit("commit", "committed", {})
        assert q.qsize() == 1
        assert q.get_nowait()["type"] == "commit"

    def test_unknown_type_filter_rejected(self):
        b = DebugBroadcaster("test-filter-bad")
        with pytest.raises(ValueError):
            b.subscribe(["wiggle"])
        assert b.subscriber_count == 0

    def test_events_since_replays_missed(self):
        b = DebugBroadcaster("test-replay")
        for kind in ("begin", "move", "commit"):
            b.emit(kind, "selecting", {})
        assert [e["type"] for e in b.events_since(1)] == ["move", "commit"]
        assert [e["type"] for e in b.events_since(0, ["commit"])] == ["commit"]
        assert b.events_since(3) == []

    def test_queue_overflow_drops_oldest(self):
        b = DebugBroadcaster("test-7")
        q = b.subscribe()
        for i in range(QUEUE_SIZE):
            b.emit("move", "selecting", {"n": i})
        assert q.full()

        b.emit("move", "selecting", {"n": QUEUE_SIZE})
        assert q.qsize() == QUEUE_SIZE
        assert q.get_nowait()["data"]["n"] == 1


# ── Broadcaster registry tests ──────────────────────────────────────


class TestBroadcasterRegistry:
    def test_get_broadcaster_returns_same(self):
        b1 = get_broadcaster("registry-test-1")
        b2 = get_broadcaster("registry-test-1")
        assert b1 is b2
        assert b1.session_id == "registry-test-1"

    def test_remove_broadcaster(self):
        b1 = get_broadcaster("registry-test-2")
        remove_broadcaster("registry-test-2")
        assert get_broadcaster("registry-test-2") is not b1

    def test_remove_unknown_is_noop(self):
        remove_broadcaster("registry-test-missing")


# ── Session + Broadcaster wiring ────────────────────────────────────


class TestSessionBroadcasterWiring:
    def test_no_broadcaster_no_error(self):
        session = _session()
        session.cancel()

    async def test_register_session_and_attach(self):
        session = _session()
        sid = register_session(session)
        b = get_broadcaster(sid)
        session.attach_broadcaster(b)
        q = b.subscribe()

        await session.refresh(date(2030, 6, 14))
        session.pointer_down(4, timestamp=0)

        snapshot_event = q.get_nowait()
        begin_event = q.get_nowait()
        assert snapshot_event["type"] == "snapshot"
        assert snapshot_event["phase"] == "idle"
        assert begin_event["type"] == "begin"
        assert begin_event["phase"] == "selecting"
        assert begin_event["session_id"] == sid

        unregister_session(sid)
        remove_broadcaster(sid)
