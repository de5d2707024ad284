"""Selection state machine: drag state, gesture recognition and the engine."""

from booking_scheduler.selection.engine import SelectionEngine, TouchResult
from booking_scheduler.selection.gestures import Gesture, TouchTracker, classify_gesture
from booking_scheduler.selection.state import DragState, Phase, Point, SelectionRange

__all__ = [
    "DragState",
    "Gesture",
    "Phase",
    "Point",
    "SelectionEngine",
    "SelectionRange",
    "TouchResult",
    "TouchTracker",
    "classify_gesture",
]
