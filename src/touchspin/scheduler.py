"""Spin scheduler — press-and-hold repetition with booster acceleration.

States: IDLE -> ARMED -> SPINNING -> IDLE.

start() emits startspin then start{dir}spin, takes one immediate step and
arms a first tick after `stepintervaldelay`. A press released before that
tick (a tap) goes ARMED -> IDLE having stepped exactly once. Each tick bumps
spincount, steps by the boosted step and re-arms after `stepinterval`; only
the step size accelerates, never the interval.

At most one session exists at a time. stop() cancels the pending tick before
returning, and every tick re-checks that its session is still current (and
that settings have not moved to a new generation) after taking the lock, so
a cancelled tick can never step the value.

Thread safety: ticks from the default ThreadingTimers fire on timer threads.
Call set_scheduler() once from the UI thread to marshal them back:
    touchspin.set_scheduler(app.call_from_thread)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Protocol

from touchspin.events import EventBus, SpinEvent

if TYPE_CHECKING:
    from touchspin.settings import Settings

logger = logging.getLogger("touchspin.scheduler")

UP = "up"
DOWN = "down"


def boosted_step(settings: Settings, spincount: int) -> float:
    """Step size after spincount ticks: doubles every `boostat` ticks, capped by maxboostedstep.

    Usage:
        s = resolve({}, {"step": 2, "boostat": 5})
        [boosted_step(s, n) for n in (0, 4, 5, 10, 15)]   # [2, 2, 4, 8, 16]
    """
    base = settings.step
    if not settings.booster:
        return base
    boosted = base * 2 ** (spincount // settings.boostat)
    if settings.maxboostedstep is not None:
        boosted = min(boosted, settings.maxboostedstep)
    return max(base, boosted)


# ─── Timers ──────────────────────────────────────────────────────────────────


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    """Source of one-shot delayed calls. delay is in seconds."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle: ...


_marshal: Callable[[Callable[[], None]], object] | None = None


def set_scheduler(scheduler: Callable[[Callable[[], None]], object] | None) -> None:
    """Route timer callbacks through scheduler (e.g. app.call_from_thread).

    Without one, ThreadingTimers ticks run on their timer thread, serialised
    against other operations by each engine's lock.
    """
    global _marshal
    _marshal = scheduler


class ThreadingTimers:
    """Timers on threading.Timer daemon threads."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> TimerHandle:
        def _fire() -> None:
            if _marshal is not None:
                _marshal(fn)
            else:
                fn()

        timer = threading.Timer(delay, _fire)
        timer.daemon = True
        timer.start()
        return timer


# ─── Sessions ────────────────────────────────────────────────────────────────


class SpinState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    SPINNING = "spinning"


@dataclass
class SpinSession:
    """One continuous interaction. Discarded on stop."""

    direction: str
    generation: int
    spincount: int = 0
    state: SpinState = SpinState.ARMED
    started_at: float = field(default_factory=time.monotonic)


StepFn = Callable[[str, int], None]


class SpinScheduler:
    """Owns the (at most one) spin session of an engine."""

    def __init__(
        self,
        bus: EventBus,
        step: StepFn,
        settings: Callable[[], Settings],
        value: Callable[[], float | None],
        *,
        timers: Timers | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        self._bus = bus
        self._step = step
        self._settings = settings
        self._value = value
        self._timers = timers if timers is not None else ThreadingTimers()
        self._lock = lock if lock is not None else threading.RLock()
        self._session: SpinSession | None = None
        self._pending: TimerHandle | None = None

    @property
    def session(self) -> SpinSession | None:
        return self._session

    @property
    def state(self) -> SpinState:
        return self._session.state if self._session is not None else SpinState.IDLE

    @property
    def direction(self) -> str | None:
        return self._session.direction if self._session is not None else None

    def start(self, direction: str) -> bool:
        """Begin spinning in direction. Returns False if already spinning that way."""
        if direction not in (UP, DOWN):
            raise ValueError(f"direction must be 'up' or 'down', got {direction!r}")
        with self._lock:
            current = self._session
            if current is not None and current.direction == direction:
                return False
            if current is not None:
                self.stop()

            session = SpinSession(direction, self._settings().generation)
            self._session = session
            value = self._value()
            # Handlers may stop the spin or destroy the engine before it gets going.
            self._bus.emit(SpinEvent.START_SPIN, value)
            if self._session is not session:
                return False
            self._bus.emit(SpinEvent.start_for(direction), value)
            if self._session is not session:
                return False

            self._step(direction, session.spincount)
            # The immediate step may have hit a boundary and stopped us.
            if self._session is session:
                self._arm(session, self._settings().stepintervaldelay)
            return True

    def stop(self) -> bool:
        """End the current session. Returns False when there was none."""
        with self._lock:
            session = self._session
            if session is None:
                return False
            self._session = None
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            value = self._value()
            self._bus.emit(SpinEvent.stop_for(session.direction), value)
            self._bus.emit(SpinEvent.STOP_SPIN, value)
            return True

    def _arm(self, session: SpinSession, delay_ms: float) -> None:
        self._pending = self._timers.call_later(delay_ms / 1000.0, lambda: self._tick(session))

    def _tick(self, session: SpinSession) -> None:
        with self._lock:
            if self._session is not session:
                return  # stopped or superseded while this tick was in flight
            if self._settings().generation != session.generation:
                logger.debug("Settings changed mid-spin; abandoning %s spin", session.direction)
                self.stop()
                return
            self._pending = None
            session.state = SpinState.SPINNING
            session.spincount += 1
            self._step(session.direction, session.spincount)
            if self._session is session:
                self._arm(session, self._settings().stepinterval)
