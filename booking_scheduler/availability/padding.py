"""Setup, breakdown and buffer padding around a booking.

Three independent values; the availability checker decides how to combine
them.  Nothing here knows about other bookings.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterable

from booking_scheduler.config import default_rules
from booking_scheduler.models.services import SchedulingRules, normalize_services


def buffer_between_bookings(rules: SchedulingRules | None = None) -> int:
    """Minimum gap in minutes between two bookings' occupied windows."""
    rules = rules or default_rules()
    return rules.buffer_minutes


def setup_complexity(
    services: Iterable[str | Enum],
    rules: SchedulingRules | None = None,
) -> int:
    """Sum of setup weights of the distinct services (unknown ids weigh 1)."""
    rules = rules or default_rules()
    total = 0
    for key in normalize_services(services):
        rule = rules.services.get(key)
        total += rule.setup_weight if rule is not None else 1
    return total


def setup_time(
    services: Iterable[str | Enum],
    rules: SchedulingRules | None = None,
) -> int:
    """Minutes of setup before the event starts.

    Escalates once the combined setup weight reaches the threshold; with the
    default weights that is three or more distinct services.
    """
    rules = rules or default_rules()
    if setup_complexity(services, rules) >= rules.setup_escalation_threshold:
        return rules.escalated_setup_minutes
    return rules.setup_minutes


def breakdown_time(
    services: Iterable[str | Enum],
    rules: SchedulingRules | None = None,
) -> int:
    """Minutes of breakdown after the event ends (same for every service mix)."""
    rules = rules or default_rules()
    return rules.breakdown_minutes
