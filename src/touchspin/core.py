"""TouchSpinCore — the engine facade binding adapters talk to.

Composes the settings resolver, value engine, spin scheduler, event bus and
renderer around one bound element. Every public operation runs under the
engine's lock and, once the engine is destroyed, becomes a logged no-op.

Within one operation events go out in a fixed order before the call
returns: boundary (min/max), then change, then any stop events the boundary
caused.

Usage:
    el = InputElement("42")
    spinner = TouchSpinCore(el, {"min": 0, "max": 100, "step": 5})
    el.value                    # "40"
    spinner.on("change", lambda e: print(e.value))
    spinner.up_once()           # prints 45.0
"""

from __future__ import annotations

import functools
import logging
import math
import threading
from typing import Any, Callable, Mapping, TypeVar, ParamSpec

from touchspin import _registry
from touchspin.errors import NotAnInputError
from touchspin.events import Disposer, EventBus, Handler, SpinEvent
from touchspin.renderer import NullRenderer, Renderer
from touchspin.scheduler import DOWN, UP, SpinScheduler, Timers, boosted_step
from touchspin.settings import (
    DEFAULTS,
    Settings,
    check_callback_pairing,
    get_default_renderer,
    parse_data_attributes,
    resolve,
    sanitize,
)
from touchspin.value import ValueEngine

logger = logging.getLogger("touchspin.core")

P = ParamSpec("P")
R = TypeVar("R")

# Attributes the engine writes on the element; restored on destroy.
TRACKED_ATTRIBUTES = (
    "role",
    "aria-valuemin",
    "aria-valuemax",
    "aria-valuenow",
    "aria-valuetext",
    "min",
    "max",
    "step",
)

SPIN_KEYS = ("Enter", " ", "Space")


def _noop() -> None:
    pass


def _live(fn: Callable[P, R] | None = None, *, destroyed: Any = None):
    """Decorator: no-op after destroy(), otherwise run under the engine lock.

    After destroy the call returns `destroyed` instead. Registrations use
    `@_live(destroyed=_noop)` so a stale caller still gets a callable disposer.
    """
    if fn is None:
        return functools.partial(_live, destroyed=destroyed)

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        if self._destroyed:
            logger.debug("%s() called on a destroyed TouchSpin; ignoring", fn.__name__)
            return destroyed
        with self._lock:
            return fn(self, *args, **kwargs)

    return wrapper


def _event(name: SpinEvent | str) -> SpinEvent | None:
    try:
        return SpinEvent(name)
    except ValueError:
        logger.warning("Unknown event %r; ignoring", name)
        return None


def _attr_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else repr(float(value))


def _make_renderer(candidate: Any) -> Renderer | None:
    if candidate is None or isinstance(candidate, Renderer):
        return candidate
    # A renderer class or factory
    return candidate()


class TouchSpinCore:
    """Spinner engine for one input element."""

    def __init__(
        self,
        element,
        options: Mapping[str, Any] | None = None,
        *,
        renderer: Renderer | Callable[[], Renderer] | None = None,
        timers: Timers | None = None,
    ) -> None:
        if not getattr(element, "is_input", False):
            raise NotAnInputError(element)

        opts = dict(options or {})
        option_renderer = opts.pop("renderer", None)
        self.element = element
        self.renderer: Renderer = (
            _make_renderer(renderer)
            or _make_renderer(option_renderer)
            or _make_renderer(get_default_renderer())
            or NullRenderer()
        )
        if isinstance(self.renderer, NullRenderer):
            logger.debug("No renderer for %r; only keyboard, wheel and API input will work", element)

        self._lock = threading.RLock()
        self._destroyed = False
        self._observers: dict[str, list[Callable[[Any, Any], None]]] = {}
        self._teardowns: list[Callable[[], None]] = []

        self._settings = resolve(
            parse_data_attributes(element), opts, renderer_defaults=self.renderer.defaults()
        )
        check_callback_pairing(self._settings)

        self.bus = EventBus(element)
        self.values = ValueEngine(element, lambda: self._settings)
        self.scheduler = SpinScheduler(
            self.bus, self._step, lambda: self._settings, self.values.read,
            timers=timers, lock=self._lock,
        )

        self._original_value = element.value
        self._original_attributes = {
            name: element.get_attribute(name) for name in TRACKED_ATTRIBUTES
        }
        try:
            self._initialize_value()
            self._handle = self.renderer.create_wrapper(element, self._settings)
        except Exception:
            # Leave the element exactly as we found it.
            self._restore_attributes()
            element.value = self._original_value
            raise
        self._last_committed = element.value

    def _initialize_value(self) -> None:
        if self._settings.initval != "" and self.element.value == "":
            self.element.value = self._settings.initval
        self._sync_native_attributes()
        self.values.check_value(self.element.value, commit=True)
        self._sync_aria()

    # --- State ---

    @property
    def settings(self) -> Settings:
        """The current settings generation."""
        return self._settings

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    @property
    def spinning(self) -> bool:
        return self.scheduler.session is not None

    def _interactive(self) -> bool:
        return not (self.element.disabled or self.element.readonly)

    # --- Value operations ---

    @_live
    def up_once(self) -> None:
        """Increment once by the base step."""
        if self._interactive():
            self._step(UP, 0)

    @_live
    def down_once(self) -> None:
        """Decrement once by the base step."""
        if self._interactive():
            self._step(DOWN, 0)

    @_live
    def get_value(self) -> float | None:
        """Numeric value of the element's current text, or None when it holds none."""
        return self.values.read()

    @_live
    def set_value(self, value: float | str) -> None:
        """Programmatically set the value; it is aligned and clamped like any other."""
        if not self._interactive():
            return
        try:
            number = float(value)
        except (TypeError, ValueError):
            logger.debug("set_value(%r) is not a number; ignoring", value)
            return
        if not math.isfinite(number):
            return
        constrained = self.values.constrain(number)
        self._apply(constrained.value, constrained.hit_min, constrained.hit_max)

    @_live
    def commit(self) -> None:
        """Sanitize pending text (blur, Enter). Emits one change if the committed text moved."""
        result = self.values.check_value(self.element.value, commit=True)
        self._sync_aria()
        if result.value is None:
            # Nothing numeric to sanitize; an edit to it still counts as a change.
            if self.element.value != self._last_committed:
                self._last_committed = self.element.value
                self.bus.emit(SpinEvent.CHANGE, None)
            return
        if result.hit_min:
            self.bus.emit(SpinEvent.MIN, result.value)
        if result.hit_max:
            self.bus.emit(SpinEvent.MAX, result.value)
        if self._destroyed:
            return
        if result.changed or result.text != self._last_committed:
            self._last_committed = result.text
            self.bus.emit(SpinEvent.CHANGE, result.value)

    def _step(self, direction: str, spincount: int) -> None:
        """One step in direction. Called under the lock, by API calls and spin ticks."""
        if self._destroyed:
            # A handler destroyed us mid-operation; make sure no tick re-arms.
            self.scheduler.stop()
            return
        current = self.values.read()
        if current is None:
            # First click on an empty field populates it.
            empty = self.values.check_value(self.element.value, commit=False, initial_click=True)
            value, hit_min, hit_max = empty.value, empty.hit_min, empty.hit_max
        else:
            delta = boosted_step(self._settings, spincount)
            constrained = self.values.constrain(current + delta if direction == UP else current - delta)
            value, hit_min, hit_max = constrained.value, constrained.hit_min, constrained.hit_max

        self._apply(value, hit_min, hit_max)

        spin = self.scheduler.direction
        if (spin == UP and hit_max) or (spin == DOWN and hit_min):
            self.scheduler.stop()

    def _apply(self, value: float, hit_min: bool, hit_max: bool) -> bool:
        if hit_min:
            self.bus.emit(SpinEvent.MIN, value)
        if hit_max:
            self.bus.emit(SpinEvent.MAX, value)
        if self._destroyed:
            return False
        text, changed = self.values.write(value)
        self._sync_aria()
        self._last_committed = text
        if changed:
            self.bus.emit(SpinEvent.CHANGE, value)
        return changed

    # --- Spinning ---

    @_live
    def start_up_spin(self) -> None:
        self._start_spin(UP)

    @_live
    def start_down_spin(self) -> None:
        self._start_spin(DOWN)

    @_live
    def stop_spin(self) -> None:
        self.scheduler.stop()

    def _start_spin(self, direction: str) -> bool:
        """Returns False only for an unknown direction."""
        if direction not in (UP, DOWN):
            logger.warning("Spin direction must be 'up' or 'down', got %r; ignoring", direction)
            return False
        if not self._interactive():
            return True
        # Already on the limit: signal it, but don't start a session.
        current = self.values.read()
        s = self._settings
        if direction == UP and s.max is not None and current == s.max:
            self.bus.emit(SpinEvent.MAX, current)
            return True
        if direction == DOWN and s.min is not None and current == s.min:
            self.bus.emit(SpinEvent.MIN, current)
            return True
        self.scheduler.start(direction)
        return True

    # --- Settings ---

    @_live
    def update_settings(self, partial: Mapping[str, Any] | None = None, **options: Any) -> None:
        """Resolve a new settings generation on top of the current one.

        An active spin is stopped first; the current value is re-sanitized
        against the new settings.
        """
        opts = dict(partial or {})
        opts.update(options)
        self.scheduler.stop()

        previous = self._settings
        self._settings = resolve(None, opts, previous, renderer_defaults=self.renderer.defaults())
        check_callback_pairing(self._settings)

        for name, (old, new) in self._settings.diff(previous).items():
            for callback in list(self._observers.get(name, ())):
                try:
                    callback(new, old)
                except Exception:
                    logger.exception("Setting observer for %r raised", name)
        if self._destroyed:
            return  # an observer destroyed the engine

        self.renderer.update_buttons(self._handle, self._settings)
        self.renderer.update_prefix_postfix(self._handle, self._settings)
        self._sync_native_attributes()
        self.commit()

    @_live
    def sync_from_attributes(self) -> None:
        """Pick up native min/max/step attribute edits made behind the engine's back."""
        changes: dict[str, Any] = {}
        for name in ("min", "max"):
            raw = self.element.get_attribute(name)
            value = sanitize({name: raw}, "native attributes").get(name) if raw is not None else None
            if value != getattr(self._settings, name):
                changes[name] = value
        raw_step = self.element.get_attribute("step")
        step = sanitize({"step": raw_step}, "native attributes").get("step", 1.0) if raw_step is not None else 1.0
        if step != self._settings.step:
            changes["step"] = step
        if changes:
            self.update_settings(changes)

    @_live(destroyed=_noop)
    def observe_setting(self, name: str, callback: Callable[[Any, Any], None]) -> Disposer:
        """Call callback(new, old) whenever update_settings changes name. Returns an unsubscribe function."""
        if name not in DEFAULTS.as_dict():
            logger.warning("Cannot observe unknown setting %r; ignoring", name)
            return _noop
        observers = self._observers.setdefault(name, [])
        observers.append(callback)

        def _unsubscribe() -> None:
            try:
                observers.remove(callback)
            except ValueError:
                pass

        return _unsubscribe

    @_live
    def refresh_disabled_state(self) -> None:
        """Forward the element's disabled/readonly state to the renderer; stops a spin when disabled."""
        disabled = not self._interactive()
        self.renderer.set_disabled(self._handle, disabled)
        if disabled:
            self.scheduler.stop()

    # --- Events ---

    @_live(destroyed=_noop)
    def on(self, name: SpinEvent | str, handler: Handler) -> Disposer:
        event = _event(name)
        if event is None:
            return _noop
        return self.bus.on(event, handler)

    @_live
    def off(self, name: SpinEvent | str, handler: Handler | None = None) -> None:
        event = _event(name)
        if event is not None:
            self.bus.off(event, handler)

    # --- Lifecycle ---

    @_live(destroyed=_noop)
    def register_teardown(self, callback: Callable[[], None]) -> Disposer:
        """Run callback during destroy(). Returns a function that unregisters it."""
        if not callable(callback):
            logger.warning("Teardown callback %r is not callable; ignoring", callback)
            return _noop
        self._teardowns.append(callback)

        def _unregister() -> None:
            try:
                self._teardowns.remove(callback)
            except ValueError:
                pass

        return _unregister

    def destroy(self) -> None:
        """Tear down. Idempotent; afterwards every public operation is a no-op."""
        if self._destroyed:
            logger.debug("destroy() called twice on %r; ignoring", self.element)
            return
        with self._lock:
            # Stop events still reach subscribers.
            self.scheduler.stop()
            self._destroyed = True
            try:
                self.renderer.destroy(self._handle)
            except Exception:
                logger.exception("Renderer teardown failed for %r", self.element)
            for callback in list(self._teardowns):
                try:
                    callback()
                except Exception:
                    logger.exception("Teardown callback raised")
            self._teardowns.clear()
            self._observers.clear()
            self.bus.clear()
            self._restore_attributes()
            _registry.unregister(self.element, self)

    def to_public_api(self) -> dict[str, Callable[..., Any]]:
        """Bound operations for binding adapters."""
        return {
            "up_once": self.up_once,
            "down_once": self.down_once,
            "start_up_spin": self.start_up_spin,
            "start_down_spin": self.start_down_spin,
            "stop_spin": self.stop_spin,
            "set_value": self.set_value,
            "get_value": self.get_value,
            "update_settings": self.update_settings,
            "destroy": self.destroy,
            "on": self.on,
            "off": self.off,
            "observe_setting": self.observe_setting,
            "register_teardown": self.register_teardown,
        }

    # --- Input routing ---
    # Each handler returns True when it consumed the event (the adapter
    # should then suppress the default action).

    @_live
    def handle_keydown(self, key: str, repeat: bool = False) -> bool:
        if key in ("ArrowUp", "ArrowDown"):
            if not repeat:  # holding the key spins; auto-repeat is ignored
                self._start_spin(UP if key == "ArrowUp" else DOWN)
            return True
        if key == "Enter":
            self.commit()
        return False

    @_live
    def handle_keyup(self, key: str) -> bool:
        if key in ("ArrowUp", "ArrowDown"):
            self.scheduler.stop()
            return True
        return False

    @_live
    def handle_button_keydown(self, direction: str, key: str, repeat: bool = False) -> bool:
        """Space/Enter held on a focusable button spins like a mouse press."""
        if not self._settings.focusablebuttons or key not in SPIN_KEYS:
            return False
        if not repeat:
            return self._start_spin(direction)
        return direction in (UP, DOWN)

    @_live
    def handle_button_keyup(self, key: str) -> bool:
        if not self._settings.focusablebuttons or key not in SPIN_KEYS:
            return False
        self.scheduler.stop()
        return True

    @_live
    def handle_press(self, direction: str) -> bool:
        """mousedown/touchstart on a button."""
        return self._start_spin(direction)

    @_live
    def handle_release(self) -> None:
        """mouseup/touchend/mouseleave anywhere."""
        self.scheduler.stop()

    @_live
    def handle_wheel(self, delta_y: float, focused: bool = True) -> bool:
        """One step per wheel event, never accelerated. Only while the element has focus."""
        if not self._settings.mousewheel or not focused:
            return False
        if delta_y < 0:
            self.up_once()
        elif delta_y > 0:
            self.down_once()
        return True

    @_live
    def handle_focusout(self, related: object = None) -> None:
        """Focus left the element. Sanitizes only when it also left the widget."""
        if self._handle.contains(related):
            return
        self.commit()

    # --- Element attributes ---

    def _sync_aria(self) -> None:
        el = self.element
        s = self._settings
        if el.get_attribute("role") != "spinbutton":
            el.set_attribute("role", "spinbutton")
        for name, bound in (("aria-valuemin", s.min), ("aria-valuemax", s.max)):
            if bound is not None:
                el.set_attribute(name, _attr_number(bound))
            else:
                el.remove_attribute(name)
        now = self.values.read()
        if now is not None:
            el.set_attribute("aria-valuenow", _attr_number(now))
        else:
            el.remove_attribute("aria-valuenow")
        el.set_attribute("aria-valuetext", el.value)

    def _sync_native_attributes(self) -> None:
        el = self.element
        if el.get_attribute("type") != "number":
            return
        s = self._settings
        for name, value in (("min", s.min), ("max", s.max), ("step", s.step)):
            if value is not None:
                el.set_attribute(name, _attr_number(value))
            else:
                el.remove_attribute(name)

    def _restore_attributes(self) -> None:
        for name, original in self._original_attributes.items():
            if original is None:
                self.element.remove_attribute(name)
            else:
                self.element.set_attribute(name, original)

    def __repr__(self) -> str:
        state = "destroyed" if self._destroyed else self.scheduler.state.value
        return f"TouchSpinCore({self.element!r}, {state})"
