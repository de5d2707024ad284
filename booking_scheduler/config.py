"""Application configuration via environment variables."""

from __future__ import annotations

import logging
from datetime import time
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic_settings import BaseSettings

from booking_scheduler.models.gestures import GestureThresholds
from booking_scheduler.models.services import (
    DEFAULT_SERVICE_RULES,
    SchedulingRules,
    ServiceRule,
)

log = logging.getLogger("booking_scheduler.config")


class Settings(BaseSettings):
    # Calendar window
    calendar_timezone: str = "America/Chicago"
    open_time: time = time(8, 0)
    close_time: time = time(23, 0)
    slot_minutes: int = 15

    # Padding
    buffer_minutes: int = 30
    setup_minutes: int = 60
    escalated_setup_minutes: int = 90
    setup_escalation_threshold: int = 3
    breakdown_minutes: int = 30

    # Per-service duration table (JSON in the environment)
    service_rules: dict[str, ServiceRule] = dict(DEFAULT_SERVICE_RULES)

    # Selection tuning
    move_interval_ms: float = 16.0  # one display refresh
    tap_max_ms: float = 200
    tap_max_distance: float = 10
    long_press_ms: float = 800
    drag_min_distance: float = 50

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def scheduling_rules(self) -> SchedulingRules:
        return SchedulingRules(
            open_time=self.open_time,
            close_time=self.close_time,
            slot_minutes=self.slot_minutes,
            buffer_minutes=self.buffer_minutes,
            setup_minutes=self.setup_minutes,
            escalated_setup_minutes=self.escalated_setup_minutes,
            setup_escalation_threshold=self.setup_escalation_threshold,
            breakdown_minutes=self.breakdown_minutes,
            services=dict(self.service_rules),
        )

    def gesture_thresholds(self) -> GestureThresholds:
        return GestureThresholds(
            tap_max_ms=self.tap_max_ms,
            tap_max_distance=self.tap_max_distance,
            long_press_ms=self.long_press_ms,
            drag_min_distance=self.drag_min_distance,
        )

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []

        try:
            ZoneInfo(self.calendar_timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(
                f"CALENDAR_TIMEZONE {self.calendar_timezone!r} is not a known IANA zone."
            )

        # Raises on a granularity that does not divide the day
        self.scheduling_rules()

        if self.open_time == self.close_time:
            warnings.append(
                "OPEN_TIME equals CLOSE_TIME, so the calendar window is a full 24 hours."
            )

        # Admin API key: warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()


@lru_cache
def default_rules() -> SchedulingRules:
    """Rule set built from the process settings (cached)."""
    return settings.scheduling_rules()
