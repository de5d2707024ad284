"""Slot generation, duration/padding rules and availability checks.

Everything here is pure: it works on an already-loaded list of bookings and
never performs I/O, so it is safe to call from a pointer-move handler.
"""

from .aggregate import find_conflicts, merge_slots
from .checker import annotate_slots, candidate_range, is_available, occupied_window
from .conflicts import (
    AlternativeSlot,
    ConflictInfo,
    ConflictKind,
    detect_conflicts,
    suggest_alternatives,
)
from .durations import duration_bounds, resolve_duration
from .padding import breakdown_time, buffer_between_bookings, setup_complexity, setup_time
from .slots import (
    format_time_slot,
    generate_time_slots,
    parse_date,
    parse_time,
    parse_time_slot,
    slot_window,
    validate_time_range,
)

__all__ = [
    "find_conflicts",
    "merge_slots",
    "annotate_slots",
    "candidate_range",
    "is_available",
    "occupied_window",
    "AlternativeSlot",
    "ConflictInfo",
    "ConflictKind",
    "detect_conflicts",
    "suggest_alternatives",
    "duration_bounds",
    "resolve_duration",
    "breakdown_time",
    "buffer_between_bookings",
    "setup_complexity",
    "setup_time",
    "format_time_slot",
    "generate_time_slots",
    "parse_date",
    "parse_time",
    "parse_time_slot",
    "slot_window",
    "validate_time_range",
]
