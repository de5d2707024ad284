"""Tests for the pure drag-state transition functions."""

import dataclasses
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from booking_scheduler.selection import state as fsm
from booking_scheduler.selection.state import DragState, Phase, Point, SelectionRange


class TestBegin:
    def test_from_idle(self):
        s = fsm.begin(fsm.IDLE, 7, timestamp=100.0, origin=Point(1, 2))
        assert s.phase == Phase.SELECTING
        assert s.anchor_index == s.current_index == 7
        assert s.pointer_origin == Point(1, 2)
        assert s.last_processed_at == 100.0

    def test_noop_while_selecting(self):
        s = fsm.begin(fsm.IDLE, 7, timestamp=0.0)
        assert fsm.begin(s, 12, timestamp=50.0) is s

    def test_from_committed_starts_fresh(self):
        s = fsm.commit(fsm.begin(fsm.IDLE, 7, timestamp=0.0))
        s = fsm.begin(s, 3, timestamp=100.0)
        assert s.phase == Phase.SELECTING
        assert s.anchor_index == 3

    def test_input_state_unchanged(self):
        fsm.begin(fsm.IDLE, 7, timestamp=0.0)
        assert fsm.IDLE == DragState()

    def test_state_is_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            fsm.IDLE.anchor_index = 3


class TestMove:
    def _selecting(self):
        return fsm.begin(fsm.IDLE, 10, timestamp=0.0)

    def test_ignored_when_idle(self):
        s, process = fsm.move(fsm.IDLE, 4, timestamp=100.0, min_interval_ms=16)
        assert s is fsm.IDLE
        assert process is False

    def test_processed_after_interval(self):
        s, process = fsm.move(self._selecting(), 14, timestamp=16.0, min_interval_ms=16)
        assert process is True
        assert s.current_index == 14
        assert s.last_processed_at == 16.0

    def test_throttled_inside_interval(self):
        s, process = fsm.move(self._selecting(), 14, timestamp=5.0, min_interval_ms=16)
        assert process is False
        assert s.current_index == 10
        assert s.pending_index == 14

    def test_processed_move_clears_pending(self):
        s, _ = fsm.move(self._selecting(), 14, timestamp=5.0, min_interval_ms=16)
        s, _ = fsm.move(s, 12, timestamp=30.0, min_interval_ms=16)
        assert s.current_index == 12
        assert s.pending_index is None

    def test_zero_interval_processes_everything(self):
        s, process = fsm.move(self._selecting(), 11, timestamp=0.0, min_interval_ms=0)
        assert process is True


class TestSpan:
    def test_forward(self):
        s = dataclasses.replace(fsm.begin(fsm.IDLE, 10, timestamp=0.0), current_index=14)
        assert s.span == (10, 14)

    def test_backward_past_anchor(self):
        s = dataclasses.replace(fsm.begin(fsm.IDLE, 10, timestamp=0.0), current_index=6)
        assert s.span == (6, 10)

    def test_idle_has_no_span(self):
        assert fsm.IDLE.span is None


class TestSettleCommitCancel:
    def test_settle_applies_pending(self):
        s, _ = fsm.move(fsm.begin(fsm.IDLE, 10, timestamp=0.0), 12, timestamp=1.0, min_interval_ms=16)
        s = fsm.settle(s)
        assert s.current_index == 12
        assert s.pending_index is None

    def test_settle_without_pending_is_identity(self):
        s = fsm.begin(fsm.IDLE, 10, timestamp=0.0)
        assert fsm.settle(s) is s

    def test_commit_keeps_last_position(self):
        s, _ = fsm.move(fsm.begin(fsm.IDLE, 10, timestamp=0.0), 12, timestamp=1.0, min_interval_ms=16)
        s = fsm.commit(s)
        assert s.phase == Phase.COMMITTED
        assert s.span == (10, 12)

    def test_cancel_clears_everything(self):
        s = fsm.begin(fsm.IDLE, 10, timestamp=0.0)
        assert fsm.cancel(s) == DragState()
        assert fsm.cancel(fsm.commit(s)) == DragState()


class TestSelectionRange:
    def test_slot_count(self):
        r = SelectionRange(start_slot_index=10, end_slot_index=12, required_duration_minutes=0, valid=True)
        assert r.slot_count == 3
