"""FastAPI application: availability queries, admin calendar and selection sessions.

Endpoints:

  GET    /health                          Health check
  GET    /api/availability                Slots of a date for a set of services
  POST   /api/availability/check          Check one range, with conflicts and alternatives
  GET    /api/calendar                    Month overview
  PUT    /api/calendar/availability       Block/unblock dates (admin)
  POST   /api/sessions                    Start a selection session
  GET    /api/sessions                    List live sessions (admin)
  GET    /api/sessions/{id}               Session state
  POST   /api/sessions/{id}/events        Feed pointer/touch input
  POST   /api/sessions/{id}/submit        Book the committed selection
  DELETE /api/sessions/{id}               End a session
  WS     /api/sessions/{id}/debug         Live trace events (admin, ?token=)
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from datetime import datetime, timedelta
from typing import Any, Optional
from zoneinfo import ZoneInfo

# Configure root logger early so every booking_scheduler logger has a
# handler when run via `uvicorn booking_scheduler.app:app`.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from booking_scheduler.auth import require_admin_token, require_admin_ws
from booking_scheduler.availability import (
    annotate_slots,
    detect_conflicts,
    duration_bounds,
    is_available,
    merge_slots,
    parse_date,
    resolve_duration,
    suggest_alternatives,
)
from booking_scheduler.availability.checker import candidate_range
from booking_scheduler.config import default_rules, settings
from booking_scheduler.debug_events import get_broadcaster, remove_broadcaster
from booking_scheduler.errors import SchedulingError
from booking_scheduler.models.booking import DateAvailability
from booking_scheduler.models.slots import elapsed
from booking_scheduler.selection.engine import SelectionEngine
from booking_scheduler.selection.session import (
    SelectionSession,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)
from booking_scheduler.selection.state import Point
from booking_scheduler.snapshots import SnapshotLoader
from booking_scheduler.stores.base import BookingStore
from booking_scheduler.stores.memory import InMemoryBookingStore

log = logging.getLogger("booking_scheduler.app")

_START_TIME = time.time()

_INDEXED_EVENTS = {"pointer_down", "pointer_move", "tap", "touch_start", "touch_move"}


def _split_list(value: Any) -> list[str]:
    """Accept a JSON list or a comma-separated query string."""
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    return [str(s) for s in value]


def _now() -> datetime:
    return datetime.now(ZoneInfo(settings.calendar_timezone))


def _point(body: dict) -> Optional[Point]:
    if "x" in body and "y" in body:
        return Point(float(body["x"]), float(body["y"]))
    return None


def create_app(store: BookingStore | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Booking Scheduler",
        description="Availability scheduling and interactive slot selection",
        version="0.1.0",
    )
    store = store or InMemoryBookingStore()
    rules = default_rules()
    tz = settings.calendar_timezone
    app.state.store = store

    def new_loader() -> SnapshotLoader:
        # One loader per client flow: its request ids only order that flow's loads
        return SnapshotLoader(store, rules=rules, tz=tz)

    for warning in settings.validate_startup():
        log.warning(warning)

    @app.exception_handler(SchedulingError)
    async def scheduling_error(request: Request, exc: SchedulingError) -> JSONResponse:
        log.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({"status": "ok", "uptime": uptime})

    # ── Availability ───────────────────────────────────────────

    @app.get("/api/availability")
    async def availability(
        date: str, services: str = "", duration: Optional[int] = None,
    ) -> JSONResponse:
        """Slots of a date, plus where an event of the required length can start."""
        target = parse_date(date)
        requested = _split_list(services)
        snapshot = await new_loader().load(target, now=_now())

        body: dict[str, Any] = {
            "success": True,
            "date": target.isoformat(),
            "blocked": snapshot.blocked,
            "blocked_reason": snapshot.blocked_reason,
            "slots": [s.to_dict() for s in snapshot.slots],
            "runs": [r.to_dict() for r in merge_slots(snapshot.slots)],
        }
        if requested:
            required = resolve_duration(requested, duration, rules)
            low, high = duration_bounds(requested, rules)
            starts = annotate_slots(
                snapshot.slots, target, snapshot.bookings,
                span_minutes=required, blocked=snapshot.blocked, rules=rules, tz=tz,
            )
            body.update({
                "services": sorted(requested),
                "required_duration_minutes": required,
                "duration_bounds": {"min_minutes": low, "max_minutes": high},
                "start_options": [s.index for s in starts if s.available],
            })
        return JSONResponse(body)

    @app.post("/api/availability/check")
    async def check_availability(request: Request) -> JSONResponse:
        """Check one candidate range; explains conflicts and suggests alternatives."""
        body = await request.json()
        target = parse_date(body.get("date"))
        start, end = body.get("start_time"), body.get("end_time")
        requested = _split_list(body.get("services"))

        bookings = await store.list_bookings(target - timedelta(days=1), target + timedelta(days=1))
        flag = await store.get_date_availability(target)
        blocked = not flag.available

        available = is_available(target, start, end, bookings, blocked=blocked, rules=rules, tz=tz)
        conflicts = detect_conflicts(target, start, end, bookings, rules=rules, tz=tz)

        alternatives = []
        if not available:
            start_dt, end_dt = candidate_range(target, start, end, rules, tz)
            minutes = int(elapsed(start_dt, end_dt).total_seconds() // 60)
            if requested:
                minutes = max(minutes, resolve_duration(requested, None, rules))
            alternatives = suggest_alternatives(
                target, minutes, bookings,
                preferred_start=start, blocked=blocked, rules=rules, tz=tz,
            )

        return JSONResponse({
            "success": True,
            "available": available,
            "blocked": blocked,
            "conflicts": [c.to_dict() for c in conflicts],
            "alternatives": [a.to_dict() for a in alternatives],
        })

    # ── Calendar ───────────────────────────────────────────────

    @app.get("/api/calendar")
    async def calendar_month(year: int, month: int) -> JSONResponse:
        if not 1 <= month <= 12:
            return JSONResponse({"success": False, "error": "month must be 1-12"}, status_code=400)
        days = await new_loader().month_overview(year, month, now=_now())
        return JSONResponse({
            "success": True,
            "year": year,
            "month": month,
            "days": [d.to_dict() for d in days],
        })

    @app.put("/api/calendar/availability", dependencies=[Depends(require_admin_token)])
    async def update_calendar(request: Request) -> JSONResponse:
        """Block or unblock one date, or several via ``updates``."""
        body = await request.json()
        if not isinstance(body, dict):
            return JSONResponse({"success": False, "error": "Body must be a JSON object"}, status_code=400)
        entries = body.get("updates") if "updates" in body else [body]
        if not entries or not isinstance(entries, list):
            return JSONResponse({"success": False, "error": "No updates given"}, status_code=400)
        if not all(isinstance(e, dict) for e in entries):
            return JSONResponse({"success": False, "error": "Each update must be a JSON object"},
                                status_code=400)

        # Parse everything first so a bad entry changes nothing
        parsed = []
        for entry in entries:
            parsed.append(DateAvailability(
                date=parse_date(entry.get("date")),
                available=bool(entry.get("available", True)),
                blocked_reason=entry.get("blocked_reason"),
            ))

        saved = [await store.set_date_availability(a) for a in parsed]
        for a in saved:
            log.info("Date %s %s%s", a.date, "open" if a.available else "blocked",
                     f" ({a.blocked_reason})" if a.blocked_reason else "")
        return JSONResponse({
            "success": True,
            "updated": [a.model_dump(mode="json") for a in saved],
        })

    # ── Selection sessions ─────────────────────────────────────

    @app.post("/api/sessions")
    async def create_session(request: Request) -> JSONResponse:
        body = await request.json()
        target = parse_date(body.get("date"))
        engine = SelectionEngine(
            services=_split_list(body.get("services")),
            custom_duration=body.get("duration"),
            rules=rules,
            tz=tz,
        )
        session = SelectionSession(engine, new_loader(), store)
        sid = register_session(session)
        session.attach_broadcaster(get_broadcaster(sid))
        await session.refresh(target, now=_now())
        return JSONResponse(session.to_dict(detail=True), status_code=201)

    @app.get("/api/sessions", dependencies=[Depends(require_admin_token)])
    async def list_sessions() -> JSONResponse:
        sessions = [s.to_dict() for s in get_active_sessions().values()]
        return JSONResponse({"sessions": sessions, "count": len(sessions)})

    @app.get("/api/sessions/{session_id}")
    async def get_session_detail(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        return JSONResponse(session.to_dict(detail=True))

    @app.post("/api/sessions/{session_id}/events")
    async def session_event(session_id: str, request: Request) -> JSONResponse:
        """Feed one input event: pointer_down/move/up, tap, touch_*, cancel, refresh."""
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)

        body = await request.json()
        kind = body.get("type", "")
        ts = float(body.get("timestamp", time.monotonic() * 1000))
        index = body.get("index")
        touch_id = body.get("touch_id", 0)
        result: Any = None
        if kind in _INDEXED_EVENTS and not isinstance(index, int):
            return JSONResponse({"error": f"{kind} needs an integer slot index"}, status_code=400)

        if kind == "pointer_down":
            session.pointer_down(int(index), timestamp=ts, point=_point(body))
        elif kind == "pointer_move":
            session.pointer_move(int(index), timestamp=ts, point=_point(body))
        elif kind == "pointer_up":
            session.pointer_up(timestamp=ts)
        elif kind == "tap":
            session.tap(int(index), timestamp=ts)
        elif kind == "touch_start":
            result = session.touch_start(touch_id, _point(body) or Point(0.0, 0.0), int(index), timestamp=ts)
        elif kind == "touch_move":
            session.touch_move(touch_id, _point(body) or Point(0.0, 0.0), int(index), timestamp=ts)
        elif kind == "touch_end":
            touch = session.touch_end(touch_id, timestamp=ts)
            if touch is not None:
                result = {"gesture": touch.gesture.value, "slot_index": touch.slot_index}
        elif kind == "touch_cancel":
            session.touch_cancel(touch_id)
        elif kind == "cancel":
            session.cancel(reason=body.get("reason", "cancel"))
        elif kind == "set_services":
            session.set_services(_split_list(body.get("services")), body.get("duration"))
        elif kind == "refresh":
            await session.refresh(body.get("date"), now=_now())
        else:
            return JSONResponse({"error": f"Unknown event type: {kind!r}"}, status_code=400)

        data = session.to_dict()
        data["result"] = result
        return JSONResponse(data)

    @app.post("/api/sessions/{session_id}/submit")
    async def submit_session(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        if session.engine.output is None:
            return JSONResponse({"success": False, "error": "Nothing selected"}, status_code=400)
        booking = await session.submit()
        if booking is None:
            return JSONResponse(
                {"success": False, "error": "Selected time is no longer available"},
                status_code=409,
            )
        return JSONResponse({"success": True, "booking": booking.model_dump(mode="json")},
                            status_code=201)

    @app.delete("/api/sessions/{session_id}")
    async def end_session(session_id: str) -> JSONResponse:
        session = get_session(session_id)
        if not session:
            return JSONResponse({"error": "Session not found"}, status_code=404)
        session.cancel(reason="closed")
        unregister_session(session_id)
        remove_broadcaster(session_id)
        return JSONResponse({"ended": session_id})

    # ── Debug stream WebSocket ──────────────────────────────────

    @app.websocket("/api/sessions/{session_id}/debug")
    async def debug_stream(websocket: WebSocket, session_id: str) -> None:
        """Stream a session's trace events as they happen.

        ``?since=<seq>`` first replays logged events after that sequence
        number; ``?types=commit,reject`` limits the stream to those types.
        """
        if not await require_admin_ws(websocket, websocket.query_params.get("token", "")):
            return
        session = get_session(session_id)
        if not session:
            await websocket.close(code=4004, reason="Session not found")
            return

        types = _split_list(websocket.query_params.get("types")) or None
        since = websocket.query_params.get("since")
        broadcaster = get_broadcaster(session_id)
        try:
            queue = broadcaster.subscribe(types)
        except ValueError as exc:
            await websocket.close(code=4000, reason=str(exc))
            return

        await websocket.accept()
        session.attach_broadcaster(broadcaster)
        try:
            if since is not None and since.isdigit():
                for event in broadcaster.events_since(int(since), types):
                    await websocket.send_json(event)
            while True:
                event = await queue.get()
                await websocket.send_json(event)
        except WebSocketDisconnect:
            pass
        finally:
            broadcaster.unsubscribe(queue)

    return app


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "booking_scheduler.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
