"""Renderer contract — the visual chrome around a bound element.

Renderers build the wrapper, buttons and prefix/postfix for a specific UI
framework. The engine only ever calls the methods below and never exposes
its internals to a renderer; a renderer that wants to drive the engine goes
through the public API (up_once, start_up_spin, ...) like any adapter.

NullRenderer is the headless variant: every method is a no-op, so all
numeric and event behavior works with no chrome at all.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from touchspin.settings import Settings


@dataclass
class WrapperHandle:
    """What a renderer built around an element.

    `parts` holds every injected node (buttons, addons, wrapper). Focus moving
    between the element and any of its parts stays inside the widget.
    """

    element: object
    parts: list[Any] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)

    def contains(self, node: object) -> bool:
        if node is None:
            return False
        return node is self.element or any(node is part for part in self.parts)


class Renderer(ABC):
    """Every method is required. Subclass NullRenderer to override only some."""

    @abstractmethod
    def defaults(self) -> Mapping[str, Any]:
        """Cosmetic defaults. Applied only to fields the resolved settings left None."""

    @abstractmethod
    def create_wrapper(self, element: object, settings: Settings) -> WrapperHandle:
        """Build the chrome around element."""

    @abstractmethod
    def update_buttons(self, handle: WrapperHandle, settings: Settings) -> None: ...

    @abstractmethod
    def update_prefix_postfix(self, handle: WrapperHandle, settings: Settings) -> None: ...

    @abstractmethod
    def set_disabled(self, handle: WrapperHandle, disabled: bool) -> None: ...

    @abstractmethod
    def destroy(self, handle: WrapperHandle) -> None:
        """Remove everything create_wrapper injected."""


class NullRenderer(Renderer):
    """No chrome. The element is its own (empty) wrapper."""

    def defaults(self) -> Mapping[str, Any]:
        return {}

    def create_wrapper(self, element: object, settings: Settings) -> WrapperHandle:
        return WrapperHandle(element)

    def update_buttons(self, handle: WrapperHandle, settings: Settings) -> None:
        pass

    def update_prefix_postfix(self, handle: WrapperHandle, settings: Settings) -> None:
        pass

    def set_disabled(self, handle: WrapperHandle, disabled: bool) -> None:
        pass

    def destroy(self, handle: WrapperHandle) -> None:
        pass
