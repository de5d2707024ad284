"""Live trace of a selection session, for debugging the grid from outside.

A SelectionSession with a DebugBroadcaster attached reports every phase
change of its engine.  Each event carries a per-session sequence number,
so a client that reconnects can replay what it missed from the log with
``events_since()`` and then keep following the live queue.  Subscribers
may ask for a subset of event types (e.g. only commits and rejects).
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Iterable, Literal, Optional, TypedDict

log = logging.getLogger("booking_scheduler.debug_events")

QUEUE_SIZE = 200

EventType = Literal[
    "snapshot", "services", "begin", "move", "commit", "reject", "cancel", "gesture", "submit",
]
EVENT_TYPES: frozenset[str] = frozenset(EventType.__args__)  # type: ignore[attr-defined]


class DebugEvent(TypedDict):
    seq: int
    type: EventType
    timestamp: float
    session_id: str
    phase: str  # engine phase after the event
    data: dict


class DebugBroadcaster:
    """Fans selection events out to subscriber queues and keeps a bounded log."""

    def __init__(self, session_id: str, max_log: int = 1000) -> None:
        self._session_id = session_id
        self._subscribers: dict[asyncio.Queue[DebugEvent], Optional[frozenset[str]]] = {}
        self._event_log: deque[DebugEvent] = deque(maxlen=max_log)
        self._seq = 0

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def last_seq(self) -> int:
        return self._seq

    def subscribe(self, types: Iterable[str] | None = None) -> asyncio.Queue[DebugEvent]:
        """New subscriber queue, receiving only ``types`` when given."""
        wanted = frozenset(types) if types else None
        if wanted is not None and not wanted <= EVENT_TYPES:
            raise ValueError(f"Unknown event types: {sorted(wanted - EVENT_TYPES)}")
        q: asyncio.Queue[DebugEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._subscribers[q] = wanted
        log.info("Trace subscriber added for session %s (total: %d)",
                 self._session_id, len(self._subscribers))
        return q

    def unsubscribe(self, q: asyncio.Queue[DebugEvent]) -> None:
        if self._subscribers.pop(q, False) is not False:
            log.info("Trace subscriber removed for session %s (total: %d)",
                     self._session_id, len(self._subscribers))

    def emit(self, event_type: EventType, phase: str, data: dict) -> DebugEvent:
        """Record an event and push it to every interested subscriber."""
        self._seq += 1
        event: DebugEvent = {
            "seq": self._seq,
            "type": event_type,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "phase": phase,
            "data": data,
        }
        self._event_log.append(event)

        for q, wanted in self._subscribers.items():
            if wanted is not None and event_type not in wanted:
                continue
            if q.full():
                # Slow subscriber: drop its oldest event
                q.get_nowait()
            q.put_nowait(event)
        return event

    def events_since(self, seq: int, types: Iterable[str] | None = None) -> list[DebugEvent]:
        """Logged events after ``seq``, oldest first."""
        wanted = frozenset(types) if types else None
        return [
            e for e in self._event_log
            if e["seq"] > seq and (wanted is None or e["type"] in wanted)
        ]

    @property
    def event_log(self) -> list[DebugEvent]:
        return list(self._event_log)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


# ── Per-session registry ─────────────────────────────────────────────

_broadcasters: dict[str, DebugBroadcaster] = {}


def get_broadcaster(session_id: str) -> DebugBroadcaster:
    """Get or create the broadcaster of a session."""
    broadcaster = _broadcasters.get(session_id)
    if broadcaster is None:
        broadcaster = _broadcasters[session_id] = DebugBroadcaster(session_id)
        log.debug("DebugBroadcaster created for session %s", session_id)
    return broadcaster


def remove_broadcaster(session_id: str) -> None:
    if _broadcasters.pop(session_id, None) is not None:
        log.debug("DebugBroadcaster removed for session %s", session_id)
