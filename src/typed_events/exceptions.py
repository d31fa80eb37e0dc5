"""Domain exception hierarchy for the typed event bus."""

from __future__ import annotations

from typing import Any


class TypedEventsError(RuntimeError):
    """Base class for all errors raised by the event bus itself."""


class UnknownEventError(TypedEventsError):
    """Raised when an event identifier is not declared in the bus schema."""

    def __init__(self, event: Any) -> None:
        super().__init__(f"Unknown event {event!r}.")
        self.event = event


class PayloadValidationError(TypedEventsError):
    """Raised when a payload does not match the declared payload type."""

    def __init__(self, event: Any, message: str) -> None:
        super().__init__(f"Invalid payload for event {event!r}: {message}")
        self.event = event


class ConfigValidationError(TypedEventsError):
    """Raised when configuration cannot be validated safely."""
