from __future__ import annotations

import math

import numpy as np
import pytest

pytest.importorskip("hypothesis")
from hypothesis import given, settings
from hypothesis import strategies as st

from efi_autotest.waves.tolerance import EPSILON, RATIO, Tolerance, ToleranceMode, is_close_enough

finite = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False)
non_negative = st.floats(min_value=0.0, max_value=10.0, allow_nan=False, allow_infinity=False)


@given(value=finite, ratio=non_negative)
@settings(max_examples=200, deadline=None)
def test_closeness_is_reflexive(value: float, ratio: float) -> None:
    assert is_close_enough(value, value, ratio)


@given(expected=finite, actual=finite, ratio=non_negative)
@settings(max_examples=200, deadline=None)
def test_ratio_closeness_is_symmetric(expected: float, actual: float, ratio: float) -> None:
    assert is_close_enough(expected, actual, ratio) == is_close_enough(actual, expected, ratio)


def test_ratio_mode_scales_with_magnitude() -> None:
    assert is_close_enough(100.0, 104.9)
    assert not is_close_enough(100.0, 106.0)
    assert is_close_enough(0.194, 0.1944, 0.01)
    assert not is_close_enough(0.194, 0.2, 0.01)


def test_ratio_mode_uses_epsilon_floor_near_zero() -> None:
    assert is_close_enough(0.0, 0.0, 0.0)
    assert is_close_enough(0.0, EPSILON / 2, 1.0)
    assert not is_close_enough(0.0, 1e-3, RATIO)


def test_degrees_mode_is_absolute() -> None:
    band = Tolerance.degrees(1.0)

    assert band.mode is ToleranceMode.DEGREES
    assert bool(band.accepts(460.0, 461.0))
    assert not bool(band.accepts(460.0, 462.0))
    assert bool(band.accepts(0.0, -1.0))


def test_accepts_is_elementwise() -> None:
    band = Tolerance.degrees(0.5)

    result = band.accepts([100.0, 220.0, 340.0], [100.2, 221.0, 339.5])

    assert result.tolist() == [True, False, True]


def test_nan_is_never_accepted() -> None:
    assert not bool(Tolerance.ratio(1.0).accepts(0.2, np.nan))
    assert not bool(Tolerance.degrees(720.0).accepts(np.nan, 1.0))


@pytest.mark.parametrize("value", [-0.01, math.inf, math.nan])
def test_invalid_tolerance_is_rejected(value: float) -> None:
    with pytest.raises(ValueError):
        Tolerance.ratio(value)
    with pytest.raises(ValueError):
        Tolerance.degrees(value)


def test_tolerance_renders_for_messages() -> None:
    assert str(Tolerance.degrees(1.0)) == "±1°"
    assert str(Tolerance.ratio(0.05)) == "ratio 0.05"


@pytest.mark.parametrize("duty", [0.133, 0.194, 0.1944])
def test_zero_tolerance_absorbs_rounding(duty: float) -> None:
    rise = 460.0
    fall = rise + duty * 720.0

    assert is_close_enough(duty, (fall - rise) / 720.0, 0.0)
    assert bool(Tolerance.degrees(0.0).accepts(0.1 + 0.2, 0.3))
    assert not is_close_enough(duty, duty * (1.0 + 1e-6), 0.0)
