"""Event maps: declare which events exist and what payload each one carries.

Usage:
    class AppEvents(TypedDict):
        ready: None
        login: User

    schema = EventSchema.from_class(AppEvents)
    # or
    schema = EventSchema({"user:login": User, "app:ready": None})

    bus = EventBus(schema=schema, validate_payloads=True)
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
import logging
from typing import Any, get_type_hints

from pydantic import TypeAdapter, ValidationError

from .exceptions import PayloadValidationError, UnknownEventError
from .types import MISSING

LOGGER = logging.getLogger(__name__)

_VOID_TYPES = (None, type(None))


class EventSchema:
    """Explicit table from event identifier to payload type."""

    def __init__(self, events: Mapping[Hashable, Any]) -> None:
        self._events: dict[Hashable, Any] = {
            name: (None if payload_type in _VOID_TYPES else payload_type)
            for name, payload_type in events.items()
        }
        self._adapters: dict[Hashable, TypeAdapter[Any]] = {}

    @classmethod
    def from_class(cls, event_map: type) -> EventSchema:
        """Build a schema from a class whose annotations declare the events."""
        return cls(get_type_hints(event_map))

    def __contains__(self, event: object) -> bool:
        try:
            return event in self._events
        except TypeError:
            return False

    def __len__(self) -> int:
        return len(self._events)

    def __repr__(self) -> str:
        return f"EventSchema({self._events!r})"

    def names(self) -> frozenset[Hashable]:
        """Return every declared event identifier."""
        return frozenset(self._events)

    def require(self, event: Hashable) -> None:
        """Raise :class:`UnknownEventError` when ``event`` is not declared."""
        if event not in self:
            raise UnknownEventError(event)

    def payload_type(self, event: Hashable) -> Any:
        """Return the declared payload type; ``None`` marks a void event."""
        self.require(event)
        return self._events[event]

    def is_void(self, event: Hashable) -> bool:
        return self.payload_type(event) is None

    def validate(self, event: Hashable, payload: Any = MISSING) -> Any:
        """Validate ``payload`` against the declared type and return it.

        Void events accept an omitted payload or ``None``. Other events
        require a payload; pydantic may coerce it (for example a ``dict``
        into a model instance), and the coerced value is returned.
        """
        payload_type = self.payload_type(event)
        if payload_type is None:
            if payload is MISSING or payload is None:
                return payload
            raise PayloadValidationError(event, "event does not carry a payload.")
        if payload is MISSING:
            raise PayloadValidationError(event, "a payload is required.")

        adapter = self._adapters.get(event)
        if adapter is None:
            adapter = TypeAdapter(payload_type)
            self._adapters[event] = adapter
        try:
            return adapter.validate_python(payload)
        except ValidationError as exc:
            LOGGER.debug(
                "schema.payload.invalid",
                extra={
                    "event": "schema.payload.invalid",
                    "event_name": repr(event),
                    "error_count": exc.error_count(),
                },
            )
            raise PayloadValidationError(event, str(exc)) from exc
