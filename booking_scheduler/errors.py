"""Validation errors raised by the pure scheduling functions.

These signal malformed input.  A well-formed request that simply cannot be
booked is reported as ``False`` or an empty result, never as an exception.
"""

from __future__ import annotations


class SchedulingError(ValueError):
    """Base class for input validation failures."""


class InvalidDate(SchedulingError):
    """Date input is empty or cannot be parsed."""


class NoServicesSpecified(SchedulingError):
    """Duration resolution was asked for an empty service set."""


class InvalidTimeRange(SchedulingError):
    """Start/end pair is malformed or not increasing."""


class UnknownService(SchedulingError):
    """Service id has no entry in the duration rule table."""

    def __init__(self, service: str) -> None:
        super().__init__(f"Unknown service: {service!r}")
        self.service = service
