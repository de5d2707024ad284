"""Booking duration for a requested combination of services."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Optional

from booking_scheduler.config import default_rules
from booking_scheduler.errors import NoServicesSpecified, UnknownService
from booking_scheduler.models.services import SchedulingRules, normalize_services


def resolve_duration(
    services: Iterable[str | Enum],
    custom_duration: Optional[int] = None,
    rules: SchedulingRules | None = None,
) -> int:
    """Return the booking duration in minutes.

    An explicit ``custom_duration`` wins and is returned unchanged, even
    outside the services' bounds.  Otherwise services run side by side at one
    event, so the longest default duration is used rather than the sum.
    """
    keys = normalize_services(services)
    if not keys:
        raise NoServicesSpecified("No services specified")

    if custom_duration is not None:
        return custom_duration

    rules = rules or default_rules()
    longest = 0
    for key in sorted(keys):
        rule = rules.services.get(key)
        if rule is None:
            raise UnknownService(key)
        longest = max(longest, rule.default_minutes)
    return longest


def duration_bounds(
    services: Iterable[str | Enum],
    rules: SchedulingRules | None = None,
) -> tuple[int, int]:
    """Widest ``(min, max)`` minutes any of the requested services allows."""
    keys = normalize_services(services)
    if not keys:
        raise NoServicesSpecified("No services specified")
    rules = rules or default_rules()
    found = []
    for key in sorted(keys):
        rule = rules.services.get(key)
        if rule is None:
            raise UnknownService(key)
        found.append(rule)
    return max(r.min_minutes for r in found), max(r.max_minutes for r in found)
