"""touchspin: numeric spinner engine — stepping, boosting, clamping and spin timing for input elements."""

from importlib.metadata import version as _version

__version__ = _version("touchspin")

from touchspin.core import TouchSpinCore
from touchspin.element import BoundElement, InputElement
from touchspin.errors import AlreadyAttachedError, NotAnInputError, TouchSpinError
from touchspin.events import EventBus, EventRecord, SpinEvent
from touchspin.lifecycle import attach, destroy, get_instance, touchspin
from touchspin.renderer import NullRenderer, Renderer, WrapperHandle
from touchspin.scheduler import SpinScheduler, SpinState, ThreadingTimers, boosted_step, set_scheduler
from touchspin.settings import (
    Settings,
    reset_defaults,
    resolve,
    set_default_options,
    set_default_renderer,
)
from touchspin.value import CheckResult, ValueEngine, snap
# textual is opt-in and not imported here

__all__ = [
    "TouchSpinCore",
    "attach",
    "touchspin",
    "get_instance",
    "destroy",
    "BoundElement",
    "InputElement",
    "TouchSpinError",
    "NotAnInputError",
    "AlreadyAttachedError",
    "EventBus",
    "EventRecord",
    "SpinEvent",
    "Renderer",
    "NullRenderer",
    "WrapperHandle",
    "SpinScheduler",
    "SpinState",
    "ThreadingTimers",
    "boosted_step",
    "set_scheduler",
    "Settings",
    "resolve",
    "set_default_options",
    "set_default_renderer",
    "reset_defaults",
    "CheckResult",
    "ValueEngine",
    "snap",
]
