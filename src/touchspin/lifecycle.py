"""Attach/destroy lifecycle and the per-element instance registry.

attach() is the entry point binding adapters use. It never raises: binding
a non-input element logs a warning and returns None, and attaching twice
returns the engine that is already there, so two engines can never compete
for one element.

Usage:
    el = InputElement("5")
    spinner = touchspin.attach(el, max=10)
    touchspin.attach(el) is spinner      # True
    spinner.destroy()
    touchspin.get_instance(el)           # None
    touchspin.attach(el, max=20)         # a fresh engine
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from touchspin import _registry
from touchspin.core import TouchSpinCore
from touchspin.renderer import Renderer
from touchspin.scheduler import Timers

logger = logging.getLogger("touchspin.lifecycle")


def attach(
    element,
    options: Mapping[str, Any] | None = None,
    *,
    renderer: Renderer | None = None,
    timers: Timers | None = None,
    **kwargs: Any,
) -> TouchSpinCore | None:
    """Attach an engine to element, or return the one already attached."""
    if not getattr(element, "is_input", False):
        logger.warning("TouchSpin must be attached to an input element, got %r", element)
        return None

    existing = _registry.lookup(element)
    if existing is not None:
        logger.debug("TouchSpin already attached to %r; returning the existing instance", element)
        return existing

    opts = {**(options or {}), **kwargs}
    try:
        core = TouchSpinCore(element, opts, renderer=renderer, timers=timers)
    except Exception:
        logger.exception("Failed to attach TouchSpin to %r", element)
        return None
    _registry.register(element, core)
    return core


# The name binding adapters know it by.
touchspin = attach


def get_instance(element) -> TouchSpinCore | None:
    """The engine attached to element, or None when not initialized."""
    return _registry.lookup(element)


def destroy(element) -> bool:
    """Destroy element's engine. Returns False when there was none."""
    core = _registry.lookup(element)
    if core is None:
        return False
    core.destroy()
    return True
