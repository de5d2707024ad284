"""Touch gesture thresholds."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GestureThresholds:
    """Limits used to tell a tap, a long-press and a drag apart.

    Distances are in pixels of cumulative movement, durations in milliseconds
    since touch-start.
    """

    tap_max_ms: float = 200
    tap_max_distance: float = 10
    long_press_ms: float = 800
    drag_min_distance: float = 50
