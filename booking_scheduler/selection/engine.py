"""Interactive slot selection driven by pointer and touch events.

The engine turns raw input events into a contiguous, validated range of
slots over an availability snapshot::

    engine = SelectionEngine(snapshot, services=["DJ"])
    engine.begin(10, timestamp=0)          # pointer-down on slot 10
    engine.move(14, timestamp=20)          # drag down ...
    engine.move(12, timestamp=40)          # ... and back up
    output = engine.end(timestamp=60)      # commit slots 10-12, or None

States run ``Idle → Selecting → Committed``; an invalid range at release
falls back to ``Idle`` and an explicit cancel returns to ``Idle`` from
anywhere.  Nothing here raises for an unbookable range: it only reports
``valid=False``.  All work is synchronous and uses only the snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import tzinfo
from enum import Enum
from typing import Iterable, Optional

from booking_scheduler.availability.checker import is_available
from booking_scheduler.availability.durations import resolve_duration
from booking_scheduler.config import default_rules, settings
from booking_scheduler.models.booking import SelectionOutput
from booking_scheduler.models.gestures import GestureThresholds
from booking_scheduler.models.services import SchedulingRules, normalize_services
from booking_scheduler.models.slots import elapsed, shift
from booking_scheduler.selection import state as fsm
from booking_scheduler.selection.gestures import Gesture, TouchTracker
from booking_scheduler.selection.state import DragState, Phase, Point, SelectionRange
from booking_scheduler.snapshots import AvailabilitySnapshot

log = logging.getLogger("booking_scheduler.selection.engine")


@dataclass(frozen=True)
class TouchResult:
    """Outcome of a finished touch.

    A long-press carries only the slot index it was held on, for a
    contextual action; it never changes the selection.
    """

    gesture: Gesture
    slot_index: int
    output: Optional[SelectionOutput] = None


class SelectionEngine:
    """State machine for one interactive selection session."""

    def __init__(
        self,
        snapshot: Optional[AvailabilitySnapshot] = None,
        services: Iterable[str | Enum] = (),
        *,
        custom_duration: Optional[int] = None,
        rules: SchedulingRules | None = None,
        tz: str | tzinfo | None = None,
        move_interval_ms: Optional[float] = None,
        thresholds: GestureThresholds | None = None,
    ) -> None:
        self._rules = rules or default_rules()
        self._tz = tz
        self._move_interval_ms = (
            settings.move_interval_ms if move_interval_ms is None else move_interval_ms
        )
        self._touches = TouchTracker(thresholds or settings.gesture_thresholds())

        self._snapshot = snapshot
        self._state: DragState = fsm.IDLE
        self._range: Optional[SelectionRange] = None
        self._output: Optional[SelectionOutput] = None

        self._services: frozenset[str] = frozenset()
        self._custom_duration: Optional[int] = None
        self._required = 0
        self.set_services(services, custom_duration=custom_duration)

    # ── Public API ────────────────────────────────────────────

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def drag_state(self) -> DragState:
        return self._state

    @property
    def selection(self) -> Optional[SelectionRange]:
        return self._range

    @property
    def output(self) -> Optional[SelectionOutput]:
        """The committed selection, while in ``Committed``."""
        return self._output

    @property
    def snapshot(self) -> Optional[AvailabilitySnapshot]:
        return self._snapshot

    @property
    def services(self) -> frozenset[str]:
        return self._services

    @property
    def required_duration(self) -> int:
        return self._required

    @property
    def rules(self) -> SchedulingRules:
        return self._rules

    @property
    def tz(self) -> str | tzinfo | None:
        return self._tz

    @property
    def active_touch_id(self) -> Optional[int]:
        track = self._touches.active
        return track.touch_id if track else None

    def set_services(
        self, services: Iterable[str | Enum], custom_duration: Optional[int] = None,
    ) -> Optional[SelectionRange]:
        """Change the requested services and re-resolve the needed duration.

        With no services the engine still runs, requiring no minimum length.
        """
        self._services = normalize_services(services)
        self._custom_duration = custom_duration
        if self._services:
            self._required = resolve_duration(self._services, custom_duration, self._rules)
        else:
            self._required = custom_duration or 0
        log.debug("Services %s need %d minutes", sorted(self._services), self._required)

        if self._state.phase == Phase.SELECTING:
            self._range = self._evaluate()
        return self._range

    def apply_snapshot(self, snapshot: AvailabilitySnapshot) -> bool:
        """Swap in a newer snapshot.  Returns False if it was not newer.

        A drag in progress is not invalidated here; its range is revalidated
        against the new data on the next move or release.  A snapshot of a
        different date ends the session.
        """
        current = self._snapshot
        if current is not None and snapshot.version <= current.version:
            log.debug("Ignoring snapshot v%d (have v%d)", snapshot.version, current.version)
            return False
        if current is not None and snapshot.date != current.date and self.phase != Phase.IDLE:
            self.cancel()
        self._snapshot = snapshot
        return True

    def begin(
        self, index: int, *, timestamp: float, point: Optional[Point] = None,
    ) -> SelectionRange:
        """Pointer-down / touch-start / click on ``index``.

        Starting on an unavailable slot is allowed so the user sees the
        rejection while dragging, but such a range can never be committed.
        """
        if self._state.phase == Phase.SELECTING:
            return self._range  # type: ignore[return-value]
        self._output = None
        self._state = fsm.begin(self._state, index, timestamp=timestamp, origin=point)
        self._range = self._evaluate()
        log.debug("Selection begun at slot %d (valid=%s)", index, self._range.valid)
        return self._range

    def move(
        self, index: int, *, timestamp: float, point: Optional[Point] = None,
    ) -> Optional[SelectionRange]:
        """Pointer/touch move over ``index``.

        Returns the recomputed range, or None when the move was not processed
        (not selecting, or inside the rate-limit interval).
        """
        self._state, process = fsm.move(
            self._state, index, timestamp=timestamp, min_interval_ms=self._move_interval_ms,
        )
        if not process:
            return None
        self._range = self._evaluate()
        return self._range

    def end(self, *, timestamp: Optional[float] = None) -> Optional[SelectionOutput]:
        """Pointer-up / touch-end: commit a valid range, drop an invalid one."""
        if self._state.phase != Phase.SELECTING:
            return None
        self._state = fsm.settle(self._state)
        self._range = self._evaluate()

        if not self._range.valid:
            log.warning(
                "Selection %d-%d rejected", self._range.start_slot_index, self._range.end_slot_index,
            )
            self._reset()
            return None

        self._state = fsm.commit(self._state)
        self._output = self._build_output(self._range)
        log.info(
            "Selection committed: %s %s-%s (%d min, services=%s)",
            self._output.date,
            self._output.start_time.strftime("%H:%M"),
            self._output.end_time.strftime("%H:%M"),
            self._output.duration_minutes,
            self._output.services,
        )
        return self._output

    def tap(self, index: int, *, timestamp: float) -> Optional[SelectionOutput]:
        """Single click/tap: select exactly one slot."""
        self.begin(index, timestamp=timestamp)
        return self.end(timestamp=timestamp)

    def cancel(self) -> None:
        """Escape, pointer leaving the surface, or teardown."""
        if self._state.phase != Phase.IDLE:
            log.debug("Selection cancelled from %s", self._state.phase.value)
        self._touches.reset()
        self._reset()

    # ── Touch input ───────────────────────────────────────────

    def touch_start(self, touch_id: int, point: Point, index: int, *, timestamp: float) -> bool:
        """Start tracking a touch.  Later concurrent touches are ignored."""
        return self._touches.start(touch_id, point, index, timestamp)

    def touch_move(
        self, touch_id: int, point: Point, index: int, *, timestamp: float,
    ) -> Optional[SelectionRange]:
        gesture = self._touches.update(touch_id, point, timestamp)
        track = self._touches.active
        # A still finger may classify as DRAG between the tap and long-press
        # windows; the selection only follows once it has really moved.
        if gesture != Gesture.DRAG or not track.dragging:
            return None
        if self._state.phase != Phase.SELECTING:
            self.begin(track.anchor_index, timestamp=track.started_at, point=track.origin)
        return self.move(index, timestamp=timestamp, point=point)

    def touch_end(self, touch_id: int, *, timestamp: float) -> Optional[TouchResult]:
        finished = self._touches.finish(touch_id, timestamp)
        if finished is None:
            return None
        track, gesture = finished

        if gesture == Gesture.LONG_PRESS:
            log.debug("Long-press on slot %d", track.anchor_index)
            return TouchResult(gesture=gesture, slot_index=track.anchor_index)

        if self._state.phase != Phase.SELECTING:
            # Tap, or a press that never moved far enough to start dragging
            output = self.tap(track.anchor_index, timestamp=timestamp)
        else:
            output = self.end(timestamp=timestamp)
        return TouchResult(gesture=gesture, slot_index=track.anchor_index, output=output)

    def touch_cancel(self, touch_id: int) -> None:
        if self.active_touch_id == touch_id:
            self.cancel()

    # ── Internal ──────────────────────────────────────────────

    def _reset(self) -> None:
        self._state = fsm.cancel(self._state)
        self._range = None
        self._output = None

    def _evaluate(self) -> SelectionRange:
        low, high = self._state.span
        return SelectionRange(
            start_slot_index=low,
            end_slot_index=high,
            required_duration_minutes=self._required,
            valid=self._is_valid(low, high),
        )

    def _booked_minutes(self, low: int, high: int) -> int:
        slots = self._snapshot.slots
        selected = int(elapsed(slots[low].start, slots[high].end).total_seconds() // 60)
        return max(selected, self._required)

    def _is_valid(self, low: int, high: int) -> bool:
        snapshot = self._snapshot
        if snapshot is None or snapshot.blocked:
            return False
        slots = snapshot.slots
        if low < 0 or high >= len(slots):
            return False
        if not all(slot.available for slot in slots[low:high + 1]):
            return False
        # The event occupies at least the resolved duration from the first slot
        start = slots[low].start
        end = shift(start, self._booked_minutes(low, high))
        return is_available(
            snapshot.date, start, end, snapshot.bookings, rules=self._rules, tz=self._tz,
        )

    def _build_output(self, selection: SelectionRange) -> SelectionOutput:
        low, high = selection.start_slot_index, selection.end_slot_index
        minutes = self._booked_minutes(low, high)
        start = self._snapshot.slots[low].start
        return SelectionOutput(
            date=self._snapshot.date,
            start_time=start,
            end_time=shift(start, minutes),
            services=sorted(self._services),
            duration_minutes=minutes,
        )
