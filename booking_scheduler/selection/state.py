"""Drag state and its pure transition functions.

``DragState`` is immutable; each transition returns a new state so the
selection logic can be exercised without any UI binding.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    COMMITTED = "committed"


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(other.x - self.x, other.y - self.y)


@dataclass(frozen=True)
class DragState:
    """Ephemeral interaction state of one selection session.

    ``last_processed_at`` is the timestamp (ms) of the last move that was
    recomputed; ``pending_index`` holds the newest position of a move that
    arrived inside the rate-limit interval.
    """

    phase: Phase = Phase.IDLE
    anchor_index: Optional[int] = None
    current_index: Optional[int] = None
    pointer_origin: Optional[Point] = None
    last_processed_at: Optional[float] = None
    pending_index: Optional[int] = None

    @property
    def span(self) -> Optional[tuple[int, int]]:
        """Inclusive ``(low, high)`` slot indices, whichever way the drag went."""
        if self.anchor_index is None or self.current_index is None:
            return None
        return (
            min(self.anchor_index, self.current_index),
            max(self.anchor_index, self.current_index),
        )


@dataclass(frozen=True)
class SelectionRange:
    start_slot_index: int
    end_slot_index: int
    required_duration_minutes: int
    valid: bool

    @property
    def slot_count(self) -> int:
        return self.end_slot_index - self.start_slot_index + 1


IDLE = DragState()


def begin(
    state: DragState,
    index: int,
    *,
    timestamp: float,
    origin: Optional[Point] = None,
) -> DragState:
    """Idle/Committed → Selecting, anchored at ``index``.  No-op while selecting."""
    if state.phase == Phase.SELECTING:
        return state
    return DragState(
        phase=Phase.SELECTING,
        anchor_index=index,
        current_index=index,
        pointer_origin=origin,
        last_processed_at=timestamp,
    )


def move(
    state: DragState,
    index: int,
    *,
    timestamp: float,
    min_interval_ms: float,
) -> tuple[DragState, bool]:
    """Track a move; the flag says whether it should be recomputed now."""
    if state.phase != Phase.SELECTING:
        return state, False
    if (
        state.last_processed_at is not None
        and timestamp - state.last_processed_at < min_interval_ms
    ):
        return replace(state, pending_index=index), False
    return (
        replace(state, current_index=index, pending_index=None, last_processed_at=timestamp),
        True,
    )


def settle(state: DragState) -> DragState:
    """Apply a rate-limited position so the last move always wins."""
    if state.pending_index is None:
        return state
    return replace(state, current_index=state.pending_index, pending_index=None)


def commit(state: DragState) -> DragState:
    return replace(settle(state), phase=Phase.COMMITTED)


def cancel(state: DragState) -> DragState:
    return IDLE
