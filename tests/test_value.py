"""Tests for the value engine: parsing, step alignment, clamping, formatting."""

import logging

import pytest

from touchspin import InputElement
from touchspin.settings import resolve
from touchspin.value import ValueEngine, format_fixed, parse_number, snap


def _engine(text="", **options):
    el = InputElement(text)
    settings = resolve({}, options)
    return el, ValueEngine(el, lambda: settings)


class TestSnap:
    def test_absorbs_float_residue(self):
        assert snap(0.1 + 0.2, 0.1, "ceil") == 0.3
        assert snap(0.1 + 0.2, 0.1, "floor") == 0.3

    def test_round_to_nearest_multiple(self):
        assert snap(8, 3, "round") == 9
        assert snap(7, 3, "round") == 6

    def test_half_rounds_up(self):
        assert snap(7.5, 5, "round") == 10
        assert snap(-2.5, 1, "round") == -2

    def test_floor_and_ceil(self):
        assert snap(44, 5, "floor") == 40
        assert snap(41, 5, "ceil") == 45

    def test_value_on_grid_is_unchanged(self):
        for mode in ("round", "floor", "ceil"):
            assert snap(7.5, 0.5, mode) == 7.5

    def test_grid_relative_to_base(self):
        assert snap(7, 5, "floor", base=1) == 6
        assert snap(8, 5, "round", base=1) == 6

    def test_none_is_identity(self):
        assert snap(1.23, 0.1, "none") == 1.23

    def test_large_values_keep_precision(self):
        assert snap(1e20 + 3, 1, "round") == 1e20 + 3


class TestFormatFixed:
    def test_integer_places(self):
        assert format_fixed(40.0, 0) == "40"

    def test_half_up(self):
        assert format_fixed(2.5, 0) == "3"
        assert format_fixed(1.25, 1) == "1.3"

    def test_pads_decimals(self):
        assert format_fixed(3, 2) == "3.00"

    def test_never_negative_zero(self):
        assert format_fixed(-0.0001, 2) == "0.00"
        assert format_fixed(-0.0, 0) == "0"


class TestParseNumber:
    def test_leading_prefix(self):
        assert parse_number("407abc") == 407
        assert parse_number(" -1.5e2x") == -150
        assert parse_number(".5") == 0.5

    def test_no_number(self):
        assert parse_number("abc") is None
        assert parse_number("") is None
        assert parse_number("$42") is None


class TestCheckValue:
    def test_aligns_and_writes(self):
        el, engine = _engine("42", step=5)
        result = engine.check_value(el.value)
        assert result.value == 40
        assert result.changed
        assert el.value == "40"

    def test_idempotent_once_committed(self):
        el, engine = _engine("42", step=5)
        engine.check_value(el.value)
        second = engine.check_value(el.value)
        assert second.changed is False
        assert el.value == "40"

    def test_clamps_above_max(self):
        el, engine = _engine("407")
        result = engine.check_value(el.value)
        assert result.value == 100
        assert result.hit_max
        assert el.value == "100"

    def test_clamp_is_idempotent(self):
        for text in ("407", "-5", "1000000", "99.6"):
            el, engine = _engine(text, step=5)
            engine.check_value(el.value)
            once = el.value
            assert engine.check_value(el.value).changed is False
            assert el.value == once

    def test_clamps_below_min(self):
        el, engine = _engine("-5")
        result = engine.check_value(el.value)
        assert result.value == 0
        assert result.hit_min

    def test_exact_boundary_counts_as_hit(self):
        el, engine = _engine("100")
        result = engine.check_value(el.value)
        assert result.hit_max
        assert result.changed is False

    def test_without_commit_does_not_write(self):
        el, engine = _engine("42", step=5)
        result = engine.check_value(el.value, commit=False)
        assert result.text == "40"
        assert el.value == "42"

    def test_empty_is_left_alone(self):
        el, engine = _engine("")
        result = engine.check_value(el.value)
        assert result.value is None
        assert result.changed is False
        assert el.value == ""

    def test_unparseable_is_left_alone(self):
        el, engine = _engine("abc")
        assert engine.check_value(el.value).value is None
        assert el.value == "abc"

    def test_replacementval_fills_empty(self):
        el, engine = _engine("", replacementval="7")
        assert engine.check_value(el.value).value == 7
        assert el.value == "7"

    def test_initial_click_uses_firstclickvalueifempty(self):
        el, engine = _engine("", firstclickvalueifempty=3)
        assert engine.check_value(el.value, initial_click=True).value == 3

    def test_initial_click_uses_midpoint(self):
        el, engine = _engine("")
        assert engine.check_value(el.value, initial_click=True).value == 50

    def test_initial_click_unbounded_uses_zero(self):
        el, engine = _engine("", min=None, max=None)
        assert engine.check_value(el.value, initial_click=True).value == 0

    def test_alignment_relative_to_min(self):
        el, engine = _engine("8", min=1, step=5)
        assert engine.check_value(el.value).value == 6

    def test_floor_and_ceil_modes(self):
        el, engine = _engine("44", step=5, forcestepdivisibility="floor")
        assert engine.check_value(el.value).value == 40
        el, engine = _engine("41", step=5, forcestepdivisibility="ceil")
        assert engine.check_value(el.value).value == 45

    def test_no_divisibility_only_formats(self):
        el, engine = _engine("42.7", forcestepdivisibility="none")
        result = engine.check_value(el.value)
        assert result.value == 42.7
        assert el.value == "43"

    def test_decimals(self):
        el, engine = _engine("0.30000000000000004", step=0.1, decimals=1)
        engine.check_value(el.value)
        assert el.value == "0.3"


class TestCallbacks:
    @staticmethod
    def _money(**extra):
        return dict(
            callback_before_calculation=lambda v: v.replace("$", "").strip(),
            callback_after_calculation=lambda v: f"${v}",
            **extra,
        )

    def test_formatted_value_round_trips(self):
        el, engine = _engine("$42", **self._money())
        result = engine.check_value(el.value)
        assert result.value == 42
        assert result.changed is False

    def test_formatted_value_is_clamped(self):
        el, engine = _engine("$1000", **self._money())
        result = engine.check_value(el.value)
        assert result.hit_max
        assert el.value == "$100"

    def test_raising_before_callback_uses_raw_text(self, caplog):
        def boom(_):
            raise RuntimeError("nope")

        el, engine = _engine("42", callback_before_calculation=boom)
        with caplog.at_level(logging.ERROR, logger="touchspin.value"):
            assert engine.check_value(el.value).value == 42
        assert "callback_before_calculation raised" in caplog.text

    def test_non_numeric_before_callback_output_ignored(self, caplog):
        el, engine = _engine("42", callback_before_calculation=lambda v: "junk")
        with caplog.at_level(logging.WARNING, logger="touchspin.value"):
            assert engine.check_value(el.value).value == 42
        assert "non-numeric" in caplog.text

    def test_non_text_after_callback_ignored(self, caplog):
        el, engine = _engine("41", callback_after_calculation=lambda v: None)
        with caplog.at_level(logging.WARNING, logger="touchspin.value"):
            engine.check_value(el.value)
        assert el.value == "41"
        assert "not text" in caplog.text


class TestConstrain:
    @pytest.mark.parametrize("value, expected", [(-10, 0), (0, 0), (50, 50), (100, 100), (130, 100)])
    def test_always_within_bounds(self, value, expected):
        _, engine = _engine()
        assert engine.constrain(value).value == expected

    def test_unbounded(self):
        _, engine = _engine(min=None, max=None)
        result = engine.constrain(-1e9)
        assert result.value == -1e9
        assert not result.hit_min
