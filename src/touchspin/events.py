"""Synchronous, ordered event delivery for one engine instance.

Handlers run on the calling thread, in registration order, before emit()
returns. A handler that raises is logged and the remaining handlers for the
same emission still run.

Ordering contract for emitters:
- boundary events (min/max) precede the change they cause
- startspin precedes start{dir}spin
- stop{dir}spin precedes stopspin
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger("touchspin.events")


class SpinEvent(str, Enum):
    """Every event name an engine emits."""

    MIN = "min"
    MAX = "max"
    START_SPIN = "startspin"
    START_UP_SPIN = "startupspin"
    START_DOWN_SPIN = "startdownspin"
    STOP_SPIN = "stopspin"
    STOP_UP_SPIN = "stopupspin"
    STOP_DOWN_SPIN = "stopdownspin"
    CHANGE = "change"

    @classmethod
    def start_for(cls, direction: str) -> SpinEvent:
        return cls.START_UP_SPIN if direction == "up" else cls.START_DOWN_SPIN

    @classmethod
    def stop_for(cls, direction: str) -> SpinEvent:
        return cls.STOP_UP_SPIN if direction == "up" else cls.STOP_DOWN_SPIN


@dataclass(frozen=True)
class EventRecord:
    """One emission: the event, the numeric value after the operation, the element."""

    name: SpinEvent
    value: float | None
    target: object


Handler = Callable[[EventRecord], None]
Disposer = Callable[[], None]


class EventBus:
    """Typed pub/sub with fault-isolated, synchronous delivery."""

    def __init__(self, target: object) -> None:
        self._target = target
        self._handlers: dict[SpinEvent, list[Handler]] = {}

    def on(self, name: SpinEvent | str, handler: Handler) -> Disposer:
        """Register handler for name. Returns a function that removes it.

        Usage:
            bus = EventBus(element)
            unsubscribe = bus.on("change", lambda e: print(e.value))
            bus.emit(SpinEvent.CHANGE, 5.0)   # prints 5.0
            unsubscribe()
        """
        event = SpinEvent(name)
        self._handlers.setdefault(event, []).append(handler)

        def _unsubscribe() -> None:
            self.off(event, handler)

        return _unsubscribe

    def off(self, name: SpinEvent | str, handler: Handler | None = None) -> None:
        """Remove one handler, or every handler for name when handler is omitted."""
        event = SpinEvent(name)
        if handler is None:
            self._handlers.pop(event, None)
            return
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            pass  # already removed

    def emit(self, name: SpinEvent | str, value: float | None) -> EventRecord:
        event = SpinEvent(name)
        record = EventRecord(event, value, self._target)
        # Snapshot: handlers may subscribe or unsubscribe while we deliver.
        for handler in list(self._handlers.get(event, ())):
            try:
                handler(record)
            except Exception:
                logger.exception("Handler for %r raised", event.value)
        return record

    def handler_count(self, name: SpinEvent | str | None = None) -> int:
        """Number of registered handlers, for one event or overall. Useful for testing."""
        if name is not None:
            return len(self._handlers.get(SpinEvent(name), ()))
        return sum(len(h) for h in self._handlers.values())

    def clear(self) -> None:
        self._handlers.clear()
