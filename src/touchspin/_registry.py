"""Instance registry: plain structures that associate elements with engines.

Entries are keyed weakly by element, but an engine references its own
element, so an entry lives until the engine is destroyed. Generation numbers
for resolved settings come from the same process-wide counter module.
"""

from __future__ import annotations

import itertools
import weakref
from typing import TYPE_CHECKING

from touchspin.errors import AlreadyAttachedError

if TYPE_CHECKING:
    from touchspin.core import TouchSpinCore

instances: weakref.WeakKeyDictionary[object, TouchSpinCore] = weakref.WeakKeyDictionary()

# itertools.count is thread-safe (C-level GIL atomic)
_generation_counter = itertools.count(1)


def new_generation() -> int:
    return next(_generation_counter)


def lookup(element) -> TouchSpinCore | None:
    """The engine attached to element, or None when not initialized."""
    return instances.get(element)


def register(element, core: TouchSpinCore) -> None:
    existing = instances.get(element)
    if existing is not None and existing is not core:
        raise AlreadyAttachedError(element)
    instances[element] = core


def unregister(element, core: TouchSpinCore) -> None:
    """Remove element's entry, but only if it still points at core."""
    if instances.get(element) is core:
        del instances[element]
