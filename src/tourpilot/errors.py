"""Structured tour engine errors and warnings.

None of these are fatal: the engine logs them and keeps its last-known-good
state, so a failure shows up as "the tour does not advance".
"""

from __future__ import annotations
from typing import Any


class TourPilotError(Exception):
    """Base class for tour engine issues."""

    def __init__(self, message: str, *, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigurationWarning(UserWarning):
    """A tour was started but none of its steps ever registered."""


class ListenerError(TourPilotError):
    """An event listener raised while a lifecycle event was being delivered."""

    def __init__(self, event: str, original: BaseException):
        super().__init__(f"Error in {event} listener: {original!r}", context={"event": event})
        self.event = event
        self.original = original


class MeasurementStall(TourPilotError):
    """A step never reported a non-empty rectangle within its frame budget."""


class OptionsError(TourPilotError):
    """An options value could not be interpreted."""
