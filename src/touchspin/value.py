"""Value engine — numeric domain logic for one bound element.

The element's text is parsed on every call; nothing is cached between
operations. Step alignment runs on Decimal with enough scale to absorb
binary floating-point residue, so 0.1 + 0.2 snaps to exactly 0.3 and a value
already on a step boundary comes back unchanged.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_CEILING, ROUND_FLOOR, ROUND_HALF_EVEN, ROUND_HALF_UP, Decimal, localcontext
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from touchspin.settings import Settings

logger = logging.getLogger("touchspin.value")

# Digits kept past the grid's own precision when absorbing float residue.
_GUARD_DIGITS = 6

# Leading numeric prefix, the way browsers parse an input's text.
_NUMBER_PREFIX = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_number(text: str) -> float | None:
    """Leading number in text ("407abc" -> 407.0), or None."""
    match = _NUMBER_PREFIX.match(text)
    if match is None:
        return None
    value = float(match.group(1))
    return value if math.isfinite(value) else None


def _dec(value: float) -> Decimal:
    # repr() is the shortest text that round-trips, so 0.1 stays 0.1.
    return Decimal(repr(float(value)))


def _places(value: Decimal) -> int:
    return max(0, -value.as_tuple().exponent)


def _precision(*values: Decimal, scale: int) -> int:
    """Context precision that holds every integer digit of values plus scale fractional digits."""
    widest = max(v.adjusted() for v in values)
    return max(60, widest + scale + 10)


def snap(value: float, step: float, mode: str = "round", base: float = 0.0, places: int = 0) -> float:
    """Align value onto the grid base + k * step.

    mode is round (half up), floor, ceil, or none (identity).

    Usage:
        snap(0.1 + 0.2, 0.1, "ceil")   # 0.3
        snap(8, 3, "round")            # 9.0
        snap(7, 5, "floor", base=1)    # 6.0
    """
    if mode == "none":
        return value
    step_d, base_d, value_d = _dec(step), _dec(base), _dec(value)
    scale = max(_places(step_d), _places(base_d), places) + _GUARD_DIGITS
    with localcontext() as ctx:
        ctx.prec = _precision(value_d, base_d, scale=scale)
        offset = (value_d - base_d).quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_EVEN)
        ratio = offset / step_d
        if mode == "floor":
            k = ratio.to_integral_value(rounding=ROUND_FLOOR)
        elif mode == "ceil":
            k = ratio.to_integral_value(rounding=ROUND_CEILING)
        else:
            k = (ratio + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)
        return float(k * step_d + base_d)


def format_fixed(value: float, decimals: int) -> str:
    """Fixed-point text with half-up rounding; never renders "-0"."""
    value_d = _dec(value)
    with localcontext() as ctx:
        ctx.prec = _precision(value_d, scale=decimals)
        fixed = value_d.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    if fixed == 0:
        fixed = abs(fixed)
    return f"{fixed:f}"


@dataclass(frozen=True)
class Constrained:
    """A candidate after step alignment and clamping."""

    value: float
    hit_min: bool
    hit_max: bool


@dataclass(frozen=True)
class CheckResult:
    """Outcome of check_value.

    value is None when the text held no number and nothing could stand in
    for it. changed means the formatted text differs from the element's text
    (and was written, when committing).
    """

    value: float | None
    changed: bool
    hit_min: bool
    hit_max: bool
    text: str


class ValueEngine:
    """Parse, align, clamp and format values for one element."""

    def __init__(self, element, settings: Callable[[], Settings]) -> None:
        self._element = element
        self._settings = settings

    @property
    def settings(self) -> Settings:
        return self._settings()

    def _run_callback(self, name: str, text: str) -> str:
        """Apply a str -> str callback. Its result is discarded if it raises or isn't text."""
        callback = getattr(self.settings, name)
        if callback is None:
            return text
        try:
            result = callback(text)
        except Exception:
            logger.exception("%s raised for %r; using the value unchanged", name, text)
            return text
        if not isinstance(result, str):
            logger.warning("%s returned %r, not text; using the value unchanged", name, result)
            return text
        return result

    def parse(self, text: str | None) -> float | None:
        """Numeric value of text, honouring replacementval and the before-callback."""
        raw = text or ""
        if raw.strip() == "":
            raw = self.settings.replacementval
            if raw.strip() == "":
                return None
        stripped = self._run_callback("callback_before_calculation", raw)
        value = parse_number(stripped)
        if value is None and stripped != raw:
            logger.warning(
                "callback_before_calculation turned %r into non-numeric %r; ignoring it", raw, stripped
            )
            value = parse_number(raw)
        return value

    def read(self) -> float | None:
        """Current value of the element. Always a fresh read."""
        return self.parse(self._element.value)

    def value_if_empty(self) -> float:
        """Stand-in for an empty element on the first click."""
        s = self.settings
        if s.firstclickvalueifempty is not None:
            return s.firstclickvalueifempty
        if s.min is not None and s.max is not None:
            return (s.min + s.max) / 2
        return 0.0

    def constrain(self, value: float) -> Constrained:
        """Align to the step grid (relative to min), then clamp to [min, max].

        A boundary counts as hit whenever it is the binding constraint,
        including when the aligned value lands exactly on it.
        """
        s = self.settings
        base = s.min if s.min is not None else 0.0
        aligned = snap(value, s.step, s.forcestepdivisibility, base, s.decimals)
        hit_min = s.min is not None and aligned <= s.min
        hit_max = s.max is not None and aligned >= s.max
        if hit_min:
            aligned = s.min
        elif hit_max:
            aligned = s.max
        return Constrained(aligned, hit_min, hit_max)

    def format(self, value: float) -> str:
        return self._run_callback(
            "callback_after_calculation", format_fixed(value, self.settings.decimals)
        )

    def write(self, value: float) -> tuple[str, bool]:
        """Write value's display text. Returns (text, changed); unchanged text is not rewritten."""
        text = self.format(value)
        if text == self._element.value:
            return text, False
        self._element.value = text
        return text, True

    def check_value(self, candidate: str | None, *, commit: bool = True, initial_click: bool = False) -> CheckResult:
        """Sanitize candidate text: parse, align, clamp, format, optionally write.

        Empty text falls back to replacementval. Text that still holds no
        number falls back to value_if_empty() on an initial click; otherwise
        it is left alone and value is None.

        Usage:
            engine.check_value("407")   # CheckResult(value=100.0, changed=True, hit_max=True, ...)
            engine.check_value("100")   # changed=False: idempotent once committed
        """
        parsed = self.parse(candidate)
        if parsed is None:
            if not initial_click:
                return CheckResult(None, False, False, False, candidate or "")
            parsed = self.value_if_empty()

        constrained = self.constrain(parsed)
        text = self.format(constrained.value)
        changed = text != self._element.value
        if commit and changed:
            self._element.value = text
        return CheckResult(constrained.value, changed, constrained.hit_min, constrained.hit_max, text)
