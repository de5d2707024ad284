"""Touch gesture recognition: tap, long-press or drag.

Classification uses cumulative movement and elapsed time since
touch-start, re-evaluated on every move.  Only the first active touch point
is tracked; others are ignored until it is released.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from booking_scheduler.models.gestures import GestureThresholds
from booking_scheduler.selection.state import Point


class Gesture(str, Enum):
    TAP = "tap"
    LONG_PRESS = "long-press"
    DRAG = "drag"


def classify_gesture(
    distance: float,
    duration_ms: float,
    thresholds: GestureThresholds | None = None,
) -> Gesture:
    t = thresholds or GestureThresholds()
    if distance > t.drag_min_distance:
        return Gesture.DRAG
    if distance < t.tap_max_distance:
        if duration_ms < t.tap_max_ms:
            return Gesture.TAP
        if duration_ms > t.long_press_ms:
            return Gesture.LONG_PRESS
    return Gesture.DRAG


@dataclass
class TouchTrack:
    touch_id: int
    origin: Point
    last: Point
    started_at: float
    anchor_index: int
    distance: float = 0.0
    dragging: bool = False

    def classify(self, now: float, thresholds: GestureThresholds) -> Gesture:
        if self.dragging:
            return Gesture.DRAG
        return classify_gesture(self.distance, now - self.started_at, thresholds)


class TouchTracker:
    """Follows the primary touch point of a gesture."""

    def __init__(self, thresholds: GestureThresholds | None = None) -> None:
        self._thresholds = thresholds or GestureThresholds()
        self._track: Optional[TouchTrack] = None

    @property
    def thresholds(self) -> GestureThresholds:
        return self._thresholds

    @property
    def active(self) -> Optional[TouchTrack]:
        return self._track

    def start(self, touch_id: int, point: Point, index: int, timestamp: float) -> bool:
        """Begin tracking; False when another touch is already primary."""
        if self._track is not None:
            return False
        self._track = TouchTrack(
            touch_id=touch_id,
            origin=point,
            last=point,
            started_at=timestamp,
            anchor_index=index,
        )
        return True

    def update(self, touch_id: int, point: Point, timestamp: float) -> Optional[Gesture]:
        """Accumulate movement and return the current classification."""
        track = self._track
        if track is None or track.touch_id != touch_id:
            return None
        track.distance += track.last.distance_to(point)
        track.last = point
        # Movement past the tap distance at any point makes it a drag for good
        if track.distance > self._thresholds.tap_max_distance:
            track.dragging = True
        return track.classify(timestamp, self._thresholds)

    def finish(self, touch_id: int, timestamp: float) -> Optional[tuple[TouchTrack, Gesture]]:
        """Release the primary touch and return its final classification."""
        track = self._track
        if track is None or track.touch_id != touch_id:
            return None
        self._track = None
        return track, track.classify(timestamp, self._thresholds)

    def reset(self) -> None:
        self._track = None
