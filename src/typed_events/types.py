"""Shared types for the event bus: outcomes, listener aliases, interface."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Final, Protocol, TypeAlias, Union, runtime_checkable


class _Missing(Enum):
    """Marker for an omitted payload (distinct from an explicit ``None``)."""

    MISSING = "MISSING"

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing.MISSING

EventName: TypeAlias = Hashable
Listener: TypeAlias = Callable[..., Union[Any, Awaitable[Any]]]
Unsubscribe: TypeAlias = Callable[[], None]


@dataclass(frozen=True)
class EmitSuccess:
    """A listener settled normally; ``value`` is its (awaited) return value."""

    ok: ClassVar[bool] = True
    value: Any = None


@dataclass(frozen=True)
class EmitFailure:
    """A listener raised or its awaitable failed; ``error`` is the exception."""

    ok: ClassVar[bool] = False
    error: BaseException


EmitOutcome: TypeAlias = Union[EmitSuccess, EmitFailure]


@runtime_checkable
class BusInterface(Protocol):
    """Structural interface of an event bus.

    Any object exposing these operations satisfies it, so consumers can
    depend on the shape instead of importing
    :class:`typed_events.bus.EventBus`. ``isinstance`` checks only that the
    methods exist.
    """

    def on(self, event: EventName, listener: Listener) -> Unsubscribe:
        """Register ``listener`` for ``event`` and return an unsubscribe callable."""
        ...

    def off(self, event: EventName, listener: Listener) -> bool:
        """Remove ``listener`` from ``event``; return whether it was registered."""
        ...

    def once(self, event: EventName, listener: Listener) -> Unsubscribe:
        """Register ``listener`` for a single invocation."""
        ...

    def emit(self, event: EventName, payload: Any = MISSING) -> None:
        """Invoke every listener for ``event`` synchronously."""
        ...

    async def emit_async(
        self, event: EventName, payload: Any = MISSING
    ) -> list[EmitOutcome]:
        """Invoke every listener concurrently and collect their outcomes."""
        ...

    def listener_count(self, event: EventName) -> int:
        """Return how many listeners are registered for ``event``."""
        ...

    def has_listeners(self, event: EventName) -> bool:
        """Return whether ``event`` has at least one listener."""
        ...

    def clear(self, event: EventName = MISSING) -> None:
        """Remove listeners for ``event``, or for every event when omitted."""
        ...
