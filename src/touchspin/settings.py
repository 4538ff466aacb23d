"""Settings resolution — one immutable Settings object per generation.

Sources, lowest precedence first:

1. built-in defaults (or, on update, the previous generation)
2. process-wide defaults from set_default_options()
3. element data attributes (data-bts-*, native min/max/step)
4. constructor options
5. explicit call arguments

Renderer defaults are applied last, and only to cosmetic fields that are
still None. A key that is present counts as set, even when its value is
falsy ("" or 0).

Each field is coerced on its own. When the winning source holds a value that
does not coerce, a warning is logged and the next-lower source is tried. The
base layer is always valid, so resolution never raises.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping

from touchspin import _registry
from touchspin.value import snap

logger = logging.getLogger("touchspin.settings")

DIVISIBILITY_MODES = ("round", "floor", "ceil", "none")

MAX_DECIMALS = 20

Callback = Callable[[str], str]


@dataclass(frozen=True)
class Settings:
    """Resolved configuration. Replaced wholesale, never mutated."""

    min: float | None = 0.0
    max: float | None = 100.0
    step: float = 1.0
    decimals: int = 0
    forcestepdivisibility: str = "round"
    stepinterval: float = 100.0
    stepintervaldelay: float = 500.0
    booster: bool = True
    boostat: int = 10
    maxboostedstep: float | None = None
    firstclickvalueifempty: float | None = None
    replacementval: str = ""
    initval: str = ""
    callback_before_calculation: Callback | None = None
    callback_after_calculation: Callback | None = None
    mousewheel: bool = True
    verticalbuttons: bool = False
    focusablebuttons: bool = False
    # Cosmetic fields: opaque to the engine, consumed by renderers.
    prefix: str = ""
    postfix: str = ""
    prefix_extraclass: str = ""
    postfix_extraclass: str = ""
    buttonup_txt: str = "+"
    buttondown_txt: str = "−"
    verticalup: str = "+"
    verticaldown: str = "−"
    buttonup_class: str | None = None
    buttondown_class: str | None = None
    verticalupclass: str | None = None
    verticaldownclass: str | None = None
    generation: int = 0

    def as_dict(self) -> dict[str, Any]:
        """Every field except generation."""
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name != "generation"}

    def diff(self, other: Settings) -> dict[str, tuple[Any, Any]]:
        """Fields whose value differs: name -> (value in other, value in self)."""
        mine, theirs = self.as_dict(), other.as_dict()
        return {k: (theirs[k], v) for k, v in mine.items() if theirs[k] != v}


DEFAULTS = Settings()

# Fields a renderer may fill when they resolve to None.
RENDERER_FIELDS = frozenset(
    {"buttonup_class", "buttondown_class", "verticalupclass", "verticaldownclass"}
)

# option name -> data-bts-* suffix
DATA_ATTRIBUTES: dict[str, str] = {
    "min": "min",
    "max": "max",
    "initval": "init-val",
    "replacementval": "replacement-val",
    "firstclickvalueifempty": "first-click-value-if-empty",
    "step": "step",
    "decimals": "decimals",
    "stepinterval": "step-interval",
    "stepintervaldelay": "step-interval-delay",
    "forcestepdivisibility": "force-step-divisibility",
    "verticalbuttons": "vertical-buttons",
    "verticalup": "vertical-up",
    "verticaldown": "vertical-down",
    "verticalupclass": "vertical-up-class",
    "verticaldownclass": "vertical-down-class",
    "prefix": "prefix",
    "postfix": "postfix",
    "prefix_extraclass": "prefix-extra-class",
    "postfix_extraclass": "postfix-extra-class",
    "booster": "booster",
    "boostat": "boostat",
    "maxboostedstep": "max-boosted-step",
    "mousewheel": "mouse-wheel",
    "buttonup_class": "button-up-class",
    "buttondown_class": "button-down-class",
    "buttonup_txt": "button-up-txt",
    "buttondown_txt": "button-down-txt",
}

NATIVE_ATTRIBUTES = ("min", "max", "step")


# ─── Coercion ────────────────────────────────────────────────────────────────


def _number(raw: Any) -> float:
    if isinstance(raw, bool):
        raise ValueError(f"expected a number, got {raw!r}")
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        value = float(raw.strip())
    else:
        raise ValueError(f"expected a number, got {raw!r}")
    if not math.isfinite(value):
        raise ValueError(f"expected a finite number, got {raw!r}")
    return value


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and raw.strip() == "")


def _bound(raw: Any) -> float | None:
    return None if _is_blank(raw) else _number(raw)


def _step(raw: Any) -> float:
    value = _number(raw)
    if value <= 0:
        raise ValueError(f"step must be > 0, got {raw!r}")
    return value


def _decimals(raw: Any) -> int:
    value = _number(raw)
    if not 0 <= value <= MAX_DECIMALS:
        raise ValueError(f"decimals must be between 0 and {MAX_DECIMALS}, got {raw!r}")
    return math.floor(value)


def _interval(raw: Any) -> float:
    value = _number(raw)
    if value < 0:
        raise ValueError(f"interval must be >= 0, got {raw!r}")
    return value


def _boostat(raw: Any) -> int:
    value = math.floor(_number(raw))
    if value < 1:
        raise ValueError(f"boostat must be >= 1, got {raw!r}")
    return value


def _cap(raw: Any) -> float | None:
    if raw is False or _is_blank(raw) or (isinstance(raw, str) and raw.strip() == "false"):
        return None
    value = _number(raw)
    if value <= 0:
        raise ValueError(f"maxboostedstep must be > 0, got {raw!r}")
    return value


def _divisibility(raw: Any) -> str:
    if raw not in DIVISIBILITY_MODES:
        raise ValueError(f"forcestepdivisibility must be one of {DIVISIBILITY_MODES}, got {raw!r}")
    return raw


def _flag(name: str) -> Callable[[Any], bool]:
    def coerce(raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str):
            text = raw.strip().lower()
            if text in ("", "true", "1", name):
                return True
            if text in ("false", "0"):
                return False
        raise ValueError(f"expected a boolean, got {raw!r}")

    return coerce


def _text(raw: Any) -> str:
    if raw is None or isinstance(raw, bool):
        raise ValueError(f"expected text, got {raw!r}")
    return str(raw)


def _optional_text(raw: Any) -> str | None:
    return None if raw is None else _text(raw)


def _value_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, bool):
        raise ValueError(f"expected a value, got {raw!r}")
    return str(raw)


def _callback(raw: Any) -> Callback | None:
    if raw is not None and not callable(raw):
        raise ValueError(f"expected a callable, got {raw!r}")
    return raw


_COERCERS: dict[str, Callable[[Any], Any]] = {
    "min": _bound,
    "max": _bound,
    "step": _step,
    "decimals": _decimals,
    "forcestepdivisibility": _divisibility,
    "stepinterval": _interval,
    "stepintervaldelay": _interval,
    "booster": _flag("booster"),
    "boostat": _boostat,
    "maxboostedstep": _cap,
    "firstclickvalueifempty": _bound,
    "replacementval": _value_text,
    "initval": _value_text,
    "callback_before_calculation": _callback,
    "callback_after_calculation": _callback,
    "mousewheel": _flag("mousewheel"),
    "verticalbuttons": _flag("verticalbuttons"),
    "focusablebuttons": _flag("focusablebuttons"),
    "prefix": _text,
    "postfix": _text,
    "prefix_extraclass": _text,
    "postfix_extraclass": _text,
    "buttonup_txt": _text,
    "buttondown_txt": _text,
    "verticalup": _text,
    "verticaldown": _text,
    "buttonup_class": _optional_text,
    "buttondown_class": _optional_text,
    "verticalupclass": _optional_text,
    "verticaldownclass": _optional_text,
}


def sanitize(options: Mapping[str, Any], source: str = "options") -> dict[str, Any]:
    """Coerce each provided key; drop (and log) unknown keys and bad values."""
    out: dict[str, Any] = {}
    for key, raw in options.items():
        coerce = _COERCERS.get(key)
        if coerce is None:
            logger.warning("Ignoring unknown setting %r from %s", key, source)
            continue
        try:
            out[key] = coerce(raw)
        except ValueError as exc:
            logger.warning("Invalid %s for %r (%s); ignoring", source, key, exc)
    return out


# ─── Process-wide defaults ───────────────────────────────────────────────────

_default_options: dict[str, Any] = {}
_default_renderer: Callable[[], Any] | None = None


def set_default_options(**options: Any) -> None:
    """Set options applied to every engine, below data attributes and constructor options.

    Usage:
        touchspin.set_default_options(decimals=2, booster=False)
    """
    _default_options.clear()
    _default_options.update(sanitize(options, "default options"))


def set_default_renderer(factory: Callable[[], Any] | None) -> None:
    """Renderer factory used when attach() receives no renderer."""
    global _default_renderer
    _default_renderer = factory


def get_default_renderer() -> Callable[[], Any] | None:
    return _default_renderer


def reset_defaults() -> None:
    """Drop default options and the default renderer."""
    set_default_renderer(None)
    _default_options.clear()


# ─── Element attributes ──────────────────────────────────────────────────────


def parse_data_attributes(element) -> dict[str, Any]:
    """Raw option values found on element, keyed by option name.

    Native min/max/step take precedence over their data-bts- twins.
    Values stay strings; resolve() coerces them.
    """
    parsed: dict[str, Any] = {}
    for option, suffix in DATA_ATTRIBUTES.items():
        name = f"data-bts-{suffix}"
        if element.has_attribute(name):
            parsed[option] = element.get_attribute(name) or ""

    for option in NATIVE_ATTRIBUTES:
        if element.has_attribute(option):
            if option in parsed:
                logger.warning(
                    'Both "data-bts-%s" and "%s" attributes specified on %r; native attribute wins',
                    option, option, element,
                )
            parsed[option] = element.get_attribute(option) or ""
    return parsed


# ─── Resolution ──────────────────────────────────────────────────────────────


def resolve(
    element_attributes: Mapping[str, Any] | None,
    user_options: Mapping[str, Any] | None,
    previous: Settings | None = None,
    *,
    call_args: Mapping[str, Any] | None = None,
    renderer_defaults: Mapping[str, Any] | None = None,
) -> Settings:
    """Merge the sources into a new Settings generation.

    With previous given, it is the base layer instead of the built-in and
    process-wide defaults, so a partial update only touches the keys provided.
    """
    if previous is None:
        layers = [("defaults", DEFAULTS.as_dict()), ("default options", dict(_default_options))]
    else:
        layers = [("previous settings", previous.as_dict())]
    layers += [
        ("data attributes", dict(element_attributes or {})),
        ("options", dict(user_options or {})),
        ("call arguments", dict(call_args or {})),
    ]

    for source, layer in layers[1:]:
        for key in layer:
            if key not in _COERCERS:
                logger.warning("Ignoring unknown setting %r from %s", key, source)

    values: dict[str, Any] = {}
    for key, coerce in _COERCERS.items():
        for source, layer in reversed(layers):
            if key not in layer:
                continue
            try:
                values[key] = coerce(layer[key])
                break
            except ValueError as exc:
                logger.warning("Invalid %s value for %r (%s); falling back", source, key, exc)

    if renderer_defaults:
        for key, default in renderer_defaults.items():
            if key in RENDERER_FIELDS and values.get(key) is None and default is not None:
                values[key] = _text(default)

    if previous is not None:
        supplied = set()
        for _, layer in layers[1:]:
            supplied.update(layer)
        # Bounds follow the step grid once the grid or the bounds change.
        if supplied & {"step", "min", "max"} and values["step"] != 1:
            if values["max"] is not None:
                values["max"] = snap(values["max"], values["step"], "floor")
            if values["min"] is not None:
                values["min"] = snap(values["min"], values["step"], "ceil")

    low, high = values["min"], values["max"]
    if low is not None and high is not None and low > high:
        logger.warning("min %r is greater than max %r; swapping", low, high)
        values["min"], values["max"] = high, low

    return Settings(**values, generation=_registry.new_generation())


def check_callback_pairing(settings: Settings) -> None:
    """Warn when only one of the two calculation callbacks is defined."""
    has_before = settings.callback_before_calculation is not None
    has_after = settings.callback_after_calculation is not None
    if has_before != has_after:
        defined, missing = (
            ("callback_before_calculation", "callback_after_calculation")
            if has_before
            else ("callback_after_calculation", "callback_before_calculation")
        )
        logger.warning(
            "%s is defined but %s is missing. These callbacks should be used together: "
            "one removes formatting, the other adds it back.",
            defined, missing,
        )
