"""Exception types.

Public operations never raise these at a caller: configuration, callback and
lifecycle problems degrade to logged no-ops. They exist for the strict
construction paths that `touchspin.attach` wraps.
"""


class TouchSpinError(Exception):
    """Base class for touchspin errors."""


class NotAnInputError(TouchSpinError, TypeError):
    """The element handed to the engine is not an input element."""

    def __init__(self, element) -> None:
        super().__init__(f"TouchSpin requires an input element, got {element!r}")
        self.element = element


class AlreadyAttachedError(TouchSpinError):
    """A different engine is already registered for the element."""

    def __init__(self, element) -> None:
        super().__init__(f"TouchSpin is already attached to {element!r}")
        self.element = element
