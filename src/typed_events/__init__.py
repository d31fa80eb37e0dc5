"""Top-level package for typed-events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from .bus import EventBus
from .types import (
    MISSING,
    BusInterface,
    EmitFailure,
    EmitOutcome,
    EmitSuccess,
    Listener,
    Unsubscribe,
)

if TYPE_CHECKING:
    from .config import load_config
    from .exceptions import (
        ConfigValidationError,
        PayloadValidationError,
        TypedEventsError,
        UnknownEventError,
    )
    from .logging_utils import configure_logging
    from .schema import EventSchema

__all__ = [
    "MISSING",
    "BusInterface",
    "ConfigValidationError",
    "EmitFailure",
    "EmitOutcome",
    "EmitSuccess",
    "EventBus",
    "EventSchema",
    "Listener",
    "PayloadValidationError",
    "TypedEventsError",
    "UnknownEventError",
    "Unsubscribe",
    "configure_logging",
    "load_config",
]


def __getattr__(name: str) -> Any:
    """Lazily import symbols that pull in configuration and logging tooling."""
    if name == "load_config":
        from .config import load_config

        return load_config
    if name == "configure_logging":
        from .logging_utils import configure_logging

        return configure_logging
    if name == "EventSchema":
        from .schema import EventSchema

        return EventSchema
    if name in {
        "ConfigValidationError",
        "PayloadValidationError",
        "TypedEventsError",
        "UnknownEventError",
    }:
        from . import exceptions

        return getattr(exceptions, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
