"""Single closeness test shared by every wave assertion."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np
from numpy.typing import ArrayLike

__all__ = [
    "EPSILON",
    "RATIO",
    "ROUNDING",
    "Tolerance",
    "ToleranceMode",
    "is_close_enough",
]

#: Default relative tolerance for pulse width comparisons.
RATIO = 0.05

#: Floor substituted for the denominator of relative comparisons near zero.
EPSILON = 1e-9

#: Relative slack for floating-point rounding, so a zero tolerance still
#: accepts values that are equal up to representation error.
ROUNDING = 1e-12


class ToleranceMode(str, Enum):
    RATIO = "ratio"
    DEGREES = "degrees"


@dataclass(frozen=True, slots=True)
class Tolerance:
    """A tolerance band, either relative (``RATIO``) or absolute (``DEGREES``).

    ``RATIO``: ``|a - b| <= (value + ROUNDING) * max(|a|, |b|, EPSILON)``.
    ``DEGREES``: ``|a - b| <= value + ROUNDING * max(|a|, |b|)``.
    """

    mode: ToleranceMode
    value: float

    def __post_init__(self) -> None:
        value = float(self.value)
        if not np.isfinite(value) or value < 0.0:
            raise ValueError(f"tolerance must be a finite non-negative number, got {self.value!r}")
        object.__setattr__(self, "mode", ToleranceMode(self.mode))
        object.__setattr__(self, "value", value)

    @classmethod
    def ratio(cls, value: float) -> "Tolerance":
        return cls(ToleranceMode.RATIO, value)

    @classmethod
    def degrees(cls, value: float) -> "Tolerance":
        return cls(ToleranceMode.DEGREES, value)

    def bound(self, expected: ArrayLike, actual: ArrayLike) -> np.ndarray:
        """Largest admissible ``|expected - actual|`` for each pair."""

        magnitude = np.maximum(np.abs(expected), np.abs(actual))
        if self.mode is ToleranceMode.DEGREES:
            return self.value + ROUNDING * magnitude
        return (self.value + ROUNDING) * np.maximum(magnitude, EPSILON)

    def accepts(self, expected: ArrayLike, actual: ArrayLike) -> np.ndarray:
        """Element-wise closeness of ``actual`` to ``expected``."""

        expected_arr = np.asarray(expected, dtype=float)
        actual_arr = np.asarray(actual, dtype=float)
        return np.abs(expected_arr - actual_arr) <= self.bound(expected_arr, actual_arr)

    def __str__(self) -> str:
        if self.mode is ToleranceMode.DEGREES:
            return f"±{self.value:g}°"
        return f"ratio {self.value:g}"


ToleranceLike = Union[Tolerance, float]


def is_close_enough(expected: float, actual: float, ratio: float = RATIO) -> bool:
    """Return ``True`` when ``actual`` is within relative ``ratio`` of ``expected``."""

    return bool(Tolerance.ratio(ratio).accepts(expected, actual))
