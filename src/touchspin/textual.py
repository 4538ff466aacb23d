"""Textual integration for touchspin. Opt-in — requires textual.

Binds an engine to an Input-like widget (anything with a str `.value`) and
runs spin ticks on Textual's own event loop via App.set_timer, so no timer
threads are involved. Terminals deliver no key-release events, so arrow keys
map to single steps rather than press-and-hold spins.

Usage:
    class PriceApp(App):
        def on_mount(self) -> None:
            self.spinner = stx.bind(self, self.query_one(Input), min=0, max=10, step=0.5, decimals=1)

        def on_key(self, event) -> None:
            if stx.handle_key(self.spinner, event.key):
                event.prevent_default()
"""

from __future__ import annotations

import logging
import weakref
from typing import Any, Callable, Mapping

from textual.css.query import NoMatches

from touchspin.core import TouchSpinCore
from touchspin.lifecycle import attach
from touchspin.renderer import Renderer

logger = logging.getLogger("touchspin.textual")

# Key name -> engine operation, and whether the key is consumed.
KEY_ACTIONS: dict[str, tuple[str, bool]] = {
    "up": ("up_once", True),
    "down": ("down_once", True),
    "enter": ("commit", False),
}


class WidgetElement:
    """A Textual widget seen as a bound element. Value reads/writes go straight to the widget."""

    def __init__(self, widget, **attributes: str) -> None:
        self.widget = widget
        self._attributes = {name.replace("_", "-"): str(v) for name, v in attributes.items()}

    @property
    def value(self) -> str:
        return self.widget.value

    @value.setter
    def value(self, text: str) -> None:
        self.widget.value = text

    @property
    def is_input(self) -> bool:
        return isinstance(getattr(self.widget, "value", None), str)

    @property
    def disabled(self) -> bool:
        return bool(getattr(self.widget, "disabled", False))

    @property
    def readonly(self) -> bool:
        return bool(getattr(self.widget, "read_only", False))

    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def set_attribute(self, name: str, value: str) -> None:
        self._attributes[name] = str(value)

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)

    def __repr__(self) -> str:
        return f"WidgetElement({self.widget!r})"


# One adapter per widget, so re-binding a widget finds its existing engine.
_elements: weakref.WeakKeyDictionary[object, WidgetElement] = weakref.WeakKeyDictionary()


def element_for(widget, **attributes: str) -> WidgetElement:
    """The (cached) element adapter for widget. attributes seed it on first use only."""
    element = _elements.get(widget)
    if element is None:
        element = WidgetElement(widget, **attributes)
        _elements[widget] = element
    return element


class _TimerHandle:
    __slots__ = ("_timer",)

    def __init__(self, timer) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class TextualTimers:
    """Spin timers on app.set_timer.

    Ticks are skipped while the app is not running, and NoMatches from widget
    queries inside a tick is swallowed (the widget tree is being rebuilt).
    """

    def __init__(self, app) -> None:
        self._app = app

    def call_later(self, delay: float, fn: Callable[[], None]) -> _TimerHandle:
        def _guarded() -> None:
            if not self._app.is_running:
                return
            try:
                fn()
            except NoMatches:
                logger.debug("Widget vanished during a spin tick; skipping")

        return _TimerHandle(self._app.set_timer(delay, _guarded))


def bind(
    app,
    widget,
    options: Mapping[str, Any] | None = None,
    *,
    renderer: Renderer | None = None,
    **kwargs: Any,
) -> TouchSpinCore | None:
    """attach() for a Textual widget, with ticks on the app's event loop."""
    return attach(element_for(widget), options, renderer=renderer, timers=TextualTimers(app), **kwargs)


def handle_key(spinner: TouchSpinCore, key: str) -> bool:
    """Route a terminal key to the engine. Returns True when the key was consumed."""
    action = KEY_ACTIONS.get(key)
    if action is None:
        return False
    name, consumed = action
    getattr(spinner, name)()
    return consumed


def handle_blur(app, spinner: TouchSpinCore) -> None:
    """Input lost focus: sanitize unless focus moved to another part of the widget."""
    focused = app.focused
    spinner.handle_focusout(_elements.get(focused, focused) if focused is not None else None)
