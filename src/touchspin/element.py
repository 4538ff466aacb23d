"""The bound element: the engine's single source of truth for the value.

The engine never keeps its own copy of the value. Every operation reads
`element.value` afresh, so external writes (a user typing, page code) are
always honoured.

Any object satisfying `BoundElement` can be bound. `InputElement` is a
plain in-memory implementation for headless and programmatic use.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BoundElement(Protocol):
    """What the engine needs from an element."""

    value: str

    @property
    def is_input(self) -> bool: ...

    @property
    def disabled(self) -> bool: ...

    @property
    def readonly(self) -> bool: ...

    def get_attribute(self, name: str) -> str | None: ...

    def has_attribute(self, name: str) -> bool: ...

    def set_attribute(self, name: str, value: str) -> None: ...

    def remove_attribute(self, name: str) -> None: ...


class InputElement:
    """An in-memory <input>: a value string plus an attribute map.

    `disabled` and `readonly` follow the presence of the matching attribute,
    as they do in HTML.

    Usage:
        el = InputElement("42", type="number", min="0", max="100")
        el.value          # "42"
        el.get_attribute("min")   # "0"
    """

    def __init__(self, value: str = "", *, tag: str = "input", **attributes: str) -> None:
        self.value = value
        self.tag = tag
        self._attributes: dict[str, str] = {}
        for name, attr_value in attributes.items():
            # Python keywords can't hold dashes: data_bts_step -> data-bts-step
            self._attributes[name.replace("_", "-")] = str(attr_value)

    @property
    def is_input(self) -> bool:
        return self.tag == "input"

    @property
    def disabled(self) -> bool:
        return "disabled" in self._attributes

    @property
    def readonly(self) -> bool:
        return "readonly" in self._attributes

    @property
    def attributes(self) -> dict[str, str]:
        """Copy of the attribute map."""
        return dict(self._attributes)

    def get_attribute(self, name: str) -> str | None:
        return self._attributes.get(name)

    def has_attribute(self, name: str) -> bool:
        return name in self._attributes

    def set_attribute(self, name: str, value: str) -> None:
        self._attributes[name] = str(value)

    def remove_attribute(self, name: str) -> None:
        self._attributes.pop(name, None)

    def __repr__(self) -> str:
        return f"InputElement({self.value!r})"
