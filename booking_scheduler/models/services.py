"""Service identifiers, per-service duration rules and the scheduling rule set."""

from __future__ import annotations

from datetime import time
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ServiceId(str, Enum):
    """Services offered out of the box.  The rule table accepts any string id."""

    DJ = "DJ"
    PHOTOGRAPHY = "Photography"
    KARAOKE = "Karaoke"


class ServiceRule(BaseModel):
    """Duration bounds (minutes) and setup-complexity weight of one service."""

    model_config = ConfigDict(frozen=True)

    min_minutes: int
    max_minutes: int
    default_minutes: int
    setup_weight: int = 1

    @model_validator(mode="after")
    def _check_bounds(self) -> "ServiceRule":
        if not self.min_minutes <= self.default_minutes <= self.max_minutes:
            raise ValueError(
                f"default_minutes {self.default_minutes} must lie within "
                f"[{self.min_minutes}, {self.max_minutes}]"
            )
        return self


DEFAULT_SERVICE_RULES: dict[str, ServiceRule] = {
    ServiceId.DJ.value: ServiceRule(min_minutes=240, max_minutes=360, default_minutes=300),
    ServiceId.PHOTOGRAPHY.value: ServiceRule(min_minutes=180, max_minutes=480, default_minutes=240),
    ServiceId.KARAOKE.value: ServiceRule(min_minutes=120, max_minutes=300, default_minutes=180),
}


class SchedulingRules(BaseModel):
    """Calendar window, granularity, padding constants and the service table.

    ``close_time <= open_time`` means the window runs past midnight into the
    next date; equal times give a full 24-hour window.
    """

    model_config = ConfigDict(frozen=True)

    open_time: time = time(8, 0)
    close_time: time = time(23, 0)
    slot_minutes: int = 15
    buffer_minutes: int = 30
    setup_minutes: int = 60
    escalated_setup_minutes: int = 90
    setup_escalation_threshold: int = 3
    breakdown_minutes: int = 30
    services: dict[str, ServiceRule] = Field(
        default_factory=lambda: dict(DEFAULT_SERVICE_RULES)
    )

    @field_validator("slot_minutes")
    @classmethod
    def _check_granularity(cls, value: int) -> int:
        if value <= 0 or (24 * 60) % value:
            raise ValueError(f"slot_minutes must divide a day evenly, got {value}")
        return value

    @property
    def crosses_midnight(self) -> bool:
        return self.close_time <= self.open_time


def service_key(service: str | Enum) -> str:
    """Return the table key for a service id (enum members map to their value)."""
    if isinstance(service, Enum):
        return str(service.value)
    return str(service)


def normalize_services(services: Iterable[str | Enum]) -> frozenset[str]:
    """Distinct table keys for a collection of service ids."""
    return frozenset(service_key(s) for s in services)
