"""In-process event bus with synchronous and concurrent emission.

Usage:
    bus = EventBus()

    def on_login(user):
        print(f"Logged in: {user['id']}")

    unsubscribe = bus.on("user:login", on_login)
    bus.emit("user:login", {"id": "42"})

    async def audit(user):
        await store.write(user)
        return "stored"

    bus.on("user:login", audit)
    outcomes = await bus.emit_async("user:login", {"id": "42"})
    for outcome in outcomes:
        if not outcome.ok:
            print(f"Listener failed: {outcome.error}")
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import functools
import inspect
import logging
import threading
import types
from typing import TYPE_CHECKING, Any

from .types import (
    MISSING,
    BusInterface,
    EmitFailure,
    EmitOutcome,
    EmitSuccess,
    EventName,
    Listener,
    Unsubscribe,
)

if TYPE_CHECKING:
    from .schema import EventSchema

LOGGER = logging.getLogger(__name__)


def _identity(listener: Listener) -> Any:
    # Bound methods are recreated on every attribute access.
    if isinstance(listener, types.MethodType):
        return (id(listener.__self__), listener.__func__)
    return id(listener)


def _invoke(listener: Listener, payload: Any) -> Any:
    if payload is MISSING:
        return listener()
    return listener(payload)


class EventBus(BusInterface):
    """Registry from event identifier to an ordered set of listeners.

    Listeners for one event are kept in registration order without
    duplicates. Every emission works on a snapshot of that order, so
    listeners added or removed while an emission is running only affect
    later emissions.

    ``emit`` is fail-fast: the first listener that raises aborts delivery
    and the exception reaches the caller. ``emit_async`` isolates
    listeners: each one yields an :class:`EmitSuccess` or
    :class:`EmitFailure` and the call itself does not raise for listener
    errors.
    """

    def __init__(
        self,
        schema: EventSchema | None = None,
        *,
        strict_events: bool = True,
        validate_payloads: bool = False,
        log_emissions: bool = False,
    ) -> None:
        self._listeners: dict[EventName, dict[Any, Listener]] = {}
        self._lock = threading.Lock()
        self._schema = schema
        self._strict_events = strict_events
        self._validate_payloads = validate_payloads
        self._log_emissions = log_emissions
        self._background: set[asyncio.Task[Any]] = set()

    @classmethod
    def from_config(
        cls, config: dict[str, Any], schema: EventSchema | None = None
    ) -> EventBus:
        """Build a bus from the ``[bus]`` section of a loaded config."""
        bus_config = config.get("bus", {})
        return cls(
            schema,
            strict_events=bool(bus_config.get("strict_events", True)),
            validate_payloads=bool(bus_config.get("validate_payloads", False)),
            log_emissions=bool(bus_config.get("log_emissions", False)),
        )

    @property
    def schema(self) -> EventSchema | None:
        return self._schema

    def __repr__(self) -> str:
        with self._lock:
            counts = {event: len(items) for event, items in self._listeners.items()}
        return f"{type(self).__name__}({counts!r})"

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on(self, event: EventName, listener: Listener) -> Unsubscribe:
        """Register ``listener`` for ``event``.

        Listeners are matched by identity; a bound method matches another
        bound method of the same object and function. Registering the same
        listener twice is a no-op and keeps its original position.

        Returns a callable that removes exactly this pairing and may be
        called any number of times.
        """
        self._check_event(event)
        key = _identity(listener)
        with self._lock:
            listeners = self._listeners.get(event)
            if listeners is None:
                listeners = self._listeners[event] = {key: listener}
            else:
                listeners.setdefault(key, listener)
            count = len(listeners)
        LOGGER.debug(
            "bus.listener.added",
            extra={
                "event": "bus.listener.added",
                "event_name": str(event),
                "listener_count": count,
            },
        )

        def unsubscribe() -> None:
            self.off(event, listener)

        return unsubscribe

    def once(self, event: EventName, listener: Listener) -> Unsubscribe:
        """Register ``listener`` for a single invocation.

        The wrapper unregisters itself before delegating, so the listener is
        removed even when it raises, and a re-entrant emission of the same
        event from inside the listener no longer sees it.
        """

        @functools.wraps(listener)
        def wrapper(*args: Any) -> Any:
            # An emission snapshotted before cancellation must not fire it.
            if not self.off(event, wrapper):
                return None
            return listener(*args)

        return self.on(event, wrapper)

    def off(self, event: EventName, listener: Listener) -> bool:
        """Remove ``listener`` from ``event``.

        Returns ``True`` when the listener was registered and has been
        removed, ``False`` otherwise. The event disappears from the
        registry once its last listener is removed.
        """
        key = _identity(listener)
        with self._lock:
            listeners = self._listeners.get(event)
            if listeners is None or key not in listeners:
                return False
            del listeners[key]
            if not listeners:
                del self._listeners[event]
            count = len(listeners)
        LOGGER.debug(
            "bus.listener.removed",
            extra={
                "event": "bus.listener.removed",
                "event_name": str(event),
                "listener_count": count,
            },
        )
        return True

    def clear(self, event: EventName = MISSING) -> None:
        """Remove every listener for ``event``, or for all events when omitted."""
        with self._lock:
            if event is MISSING:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)
        LOGGER.debug(
            "bus.cleared",
            extra={
                "event": "bus.cleared",
                "event_name": None if event is MISSING else str(event),
            },
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def listener_count(self, event: EventName) -> int:
        with self._lock:
            listeners = self._listeners.get(event)
            return len(listeners) if listeners else 0

    def has_listeners(self, event: EventName) -> bool:
        return self.listener_count(event) > 0

    def event_names(self) -> list[EventName]:
        """Return events that currently have listeners, oldest first."""
        with self._lock:
            return list(self._listeners)

    # ------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------

    def emit(self, event: EventName, payload: Any = MISSING) -> None:
        """Invoke every listener for ``event`` in registration order.

        Omit ``payload`` for events without data; listeners are then called
        with no arguments. An exception raised by a listener propagates and
        the remaining listeners are not called.

        Listeners returning a coroutine are not awaited. When a loop is
        running the coroutine is scheduled as a background task, otherwise
        it is closed without running and a warning is logged.
        """
        payload = self._prepare(event, payload)
        listeners = self._snapshot(event)
        if self._log_emissions:
            self._log_emit("bus.emit", event, len(listeners))
        for listener in listeners:
            result = _invoke(listener, payload)
            if inspect.iscoroutine(result):
                self._detach(event, result)

    async def emit_async(
        self, event: EventName, payload: Any = MISSING
    ) -> list[EmitOutcome]:
        """Invoke every listener concurrently and collect their outcomes.

        All listeners are started before any of them is awaited. The result
        holds one outcome per listener in registration order, whatever order
        they settle in. Listener exceptions are captured, never raised.
        There is no timeout: a listener that never settles blocks the call.
        """
        payload = self._prepare(event, payload)
        listeners = self._snapshot(event)
        if self._log_emissions:
            self._log_emit("bus.emit_async", event, len(listeners))
        if not listeners:
            return []
        outcomes = await asyncio.gather(
            *(self._settle(event, listener, payload) for listener in listeners)
        )
        return list(outcomes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_event(self, event: EventName) -> None:
        if self._schema is not None and self._strict_events:
            self._schema.require(event)

    def _prepare(self, event: EventName, payload: Any) -> Any:
        self._check_event(event)
        if (
            self._schema is not None
            and self._validate_payloads
            and event in self._schema
        ):
            return self._schema.validate(event, payload)
        return payload

    def _snapshot(self, event: EventName) -> tuple[Listener, ...]:
        with self._lock:
            listeners = self._listeners.get(event)
            return tuple(listeners.values()) if listeners else ()

    async def _settle(
        self, event: EventName, listener: Listener, payload: Any
    ) -> EmitOutcome:
        try:
            result = _invoke(listener, payload)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            LOGGER.debug(
                "bus.emit_async.listener_failed",
                extra={
                    "event": "bus.emit_async.listener_failed",
                    "event_name": str(event),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return EmitFailure(exc)
        return EmitSuccess(result)

    def _detach(self, event: EventName, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            LOGGER.warning(
                "bus.emit.coroutine_dropped",
                extra={"event": "bus.emit.coroutine_dropped", "event_name": str(event)},
            )
            return
        task = loop.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        task.add_done_callback(functools.partial(self._log_background_failure, event))

    def _log_background_failure(self, event: EventName, task: asyncio.Task[Any]) -> None:
        """Log failures of detached listener coroutines so they are not lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "bus.emit.background_failed",
                extra={
                    "event": "bus.emit.background_failed",
                    "event_name": str(event),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def _log_emit(self, key: str, event: EventName, count: int) -> None:
        LOGGER.debug(
            key,
            extra={"event": key, "event_name": str(event), "listener_count": count},
        )
