"""Assertions comparing a captured :class:`EngineChart` with an expected wave.

Four assertion kinds are provided:

* :func:`assert_wave`: rising edges at the expected positions with the
  expected duty ratio;
* :func:`assert_wave_ratio`: the same check with both the width and the
  position tolerance stated explicitly;
* :func:`assert_wave_fall`: the check anchored on falling edges, used when
  only the end of an injector pulse matters;
* :func:`assert_wave_null`: the channel shows no activity at all.

Expected positions are crank degrees into the capture window and must be
listed in the order the firmware emits the edges.  Callers unwrap them
(``x``, ``x + 180``, ``x + 360``, ``x + 540``); the comparator never
normalises modulo the cycle length and never searches for a best match.
Wasted-spark and other shared-output topologies are expressed by passing
only the positions at which the channel actually fires.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from ..channels import Channel
from ..errors import (
    ChannelAbsentUnexpectedly,
    ChannelPresentUnexpectedly,
    EdgeCountMismatch,
    PositionOutOfTolerance,
    WidthRatioOutOfTolerance,
)
from .chart import FOUR_STROKE_CYCLE, Edge, EdgeKind, EngineChart
from .tolerance import RATIO, Tolerance

__all__ = [
    "POSITION_TOLERANCE",
    "ExpectedWave",
    "WaveMatch",
    "assert_wave",
    "assert_wave_fall",
    "assert_wave_null",
    "assert_wave_ratio",
    "compare_wave",
    "describe_channel",
]

#: Default absolute tolerance, in crank degrees, for edge positions.
POSITION_TOLERANCE = 1.0

PositionTolerance = Union[float, Sequence[float]]


@dataclass(frozen=True, slots=True)
class ExpectedWave:
    """Caller-declared expectation for one channel.

    ``position_tolerance`` is either shared by every position or given per
    position, in the same order as ``positions``.
    """

    width: float
    positions: Tuple[float, ...]
    width_tolerance: float = RATIO
    position_tolerance: PositionTolerance = POSITION_TOLERANCE
    cycle_length: float = FOUR_STROKE_CYCLE

    def __post_init__(self) -> None:
        object.__setattr__(self, "positions", tuple(float(p) for p in self.positions))
        if not self.positions:
            raise ValueError(
                "at least one expected position is required; use assert_wave_null "
                "to assert that a channel is silent"
            )
        if self.cycle_length <= 0:
            raise ValueError(f"cycle_length must be positive, got {self.cycle_length!r}")
        if not isinstance(self.position_tolerance, (int, float)):
            bands = tuple(float(value) for value in self.position_tolerance)
            if len(bands) != len(self.positions):
                raise ValueError(
                    f"{len(bands)} position tolerances given for {len(self.positions)} positions"
                )
            object.__setattr__(self, "position_tolerance", bands)
        # Validates both bands eagerly.
        self.width_band()
        self.position_bands()

    def width_band(self) -> Tolerance:
        return Tolerance.ratio(self.width_tolerance)

    def position_bands(self) -> Tuple[Tolerance, ...]:
        if isinstance(self.position_tolerance, (int, float)):
            return (Tolerance.degrees(self.position_tolerance),) * len(self.positions)
        return tuple(Tolerance.degrees(value) for value in self.position_tolerance)


@dataclass(frozen=True, slots=True)
class WaveMatch:
    """Observed values for a successful comparison."""

    channel: Channel
    edge: EdgeKind
    positions: Tuple[float, ...]
    duty_ratios: Tuple[float, ...]


def _pulse_widths(edges: Tuple[Edge, ...], anchors: Sequence[int], edge: EdgeKind) -> np.ndarray:
    """Width of the pulse around each anchor edge, ``nan`` when cut by the window."""

    widths = np.full(len(anchors), np.nan)
    for slot, index in enumerate(anchors):
        partner = index + 1 if edge is EdgeKind.RISING else index - 1
        if 0 <= partner < len(edges):
            widths[slot] = abs(edges[partner].position - edges[index].position)
    return widths


def compare_wave(
    chart: EngineChart,
    channel: Channel,
    expected: ExpectedWave,
    *,
    edge: EdgeKind = EdgeKind.RISING,
    message: str = "",
) -> WaveMatch:
    """Check ``channel`` in ``chart`` against ``expected``.

    Checks run in a fixed order and stop at the first failure: edge count,
    then every position, then every pulse width.
    """

    edges = chart.edges(channel)
    anchors = [index for index, item in enumerate(edges) if item.kind is edge]
    expected_count = len(expected.positions)

    if not edges:
        raise ChannelAbsentUnexpectedly(message, channel, expected_count, 0)
    if len(anchors) != expected_count:
        observed = [edges[index].position for index in anchors]
        raise EdgeCountMismatch(
            message,
            channel,
            expected_count,
            len(anchors),
            detail=f"{edge.name.lower()} edges at {observed}",
        )

    observed_positions = np.array([edges[index].position for index in anchors])
    wanted_positions = np.array(expected.positions)
    bands = expected.position_bands()
    for index, band in enumerate(bands):
        if not band.accepts(wanted_positions[index], observed_positions[index]):
            raise PositionOutOfTolerance(
                message,
                channel,
                float(wanted_positions[index]),
                float(observed_positions[index]),
                index=index,
                detail=f"tolerance {band}",
            )

    duty_ratios = _pulse_widths(edges, anchors, edge) / expected.cycle_length
    width_band = expected.width_band()
    fits = width_band.accepts(expected.width, duty_ratios)
    if not np.all(fits):
        index = int(np.flatnonzero(~fits)[0])
        actual = duty_ratios[index]
        raise WidthRatioOutOfTolerance(
            message,
            channel,
            expected.width,
            None if np.isnan(actual) else float(actual),
            index=index,
            detail=(
                "pulse cut by the capture window"
                if np.isnan(actual)
                else f"tolerance {width_band}"
            ),
        )

    return WaveMatch(
        channel=channel,
        edge=edge,
        positions=tuple(float(value) for value in observed_positions),
        duty_ratios=tuple(float(value) for value in duty_ratios),
    )


def assert_wave(
    message: str,
    chart: EngineChart,
    channel: Channel,
    width: float,
    *positions: float,
    width_tolerance: float = RATIO,
    position_tolerance: PositionTolerance = POSITION_TOLERANCE,
    cycle_length: float = FOUR_STROKE_CYCLE,
) -> WaveMatch:
    """Assert rising edges at ``positions`` with duty ratio ``width``."""

    expected = ExpectedWave(
        width=width,
        positions=positions,
        width_tolerance=width_tolerance,
        position_tolerance=position_tolerance,
        cycle_length=cycle_length,
    )
    return compare_wave(chart, channel, expected, edge=EdgeKind.RISING, message=message)


def assert_wave_ratio(
    message: str,
    chart: EngineChart,
    channel: Channel,
    width: float,
    width_tolerance: float,
    position_tolerance: PositionTolerance,
    *positions: float,
    rise: bool = True,
    cycle_length: float = FOUR_STROKE_CYCLE,
) -> WaveMatch:
    """Variant of :func:`assert_wave` with both tolerances stated explicitly.

    Useful when position precision is coarse but width precision is fine,
    or the other way round.
    """

    expected = ExpectedWave(
        width=width,
        positions=positions,
        width_tolerance=width_tolerance,
        position_tolerance=position_tolerance,
        cycle_length=cycle_length,
    )
    edge = EdgeKind.RISING if rise else EdgeKind.FALLING
    return compare_wave(chart, channel, expected, edge=edge, message=message)


def assert_wave_fall(
    message: str,
    chart: EngineChart,
    channel: Channel,
    width: float,
    *positions: float,
    width_tolerance: float = RATIO,
    position_tolerance: PositionTolerance = POSITION_TOLERANCE,
    cycle_length: float = FOUR_STROKE_CYCLE,
) -> WaveMatch:
    """Assert pulses of duty ratio ``width`` ending at ``positions``."""

    expected = ExpectedWave(
        width=width,
        positions=positions,
        width_tolerance=width_tolerance,
        position_tolerance=position_tolerance,
        cycle_length=cycle_length,
    )
    return compare_wave(chart, channel, expected, edge=EdgeKind.FALLING, message=message)


def assert_wave_null(message: str, chart: EngineChart, channel: Channel) -> None:
    """Assert that ``channel`` has no edges in ``chart``."""

    edges = chart.edges(channel)
    if edges:
        raise ChannelPresentUnexpectedly(
            message,
            channel,
            0,
            len(edges),
            detail=f"first edge at {edges[0].position:g}°",
        )


def describe_channel(chart: EngineChart, channel: Channel, cycle_length: Optional[float] = None) -> dict:
    """Summary of one channel's activity, used to build expected values."""

    cycle = FOUR_STROKE_CYCLE if cycle_length is None else cycle_length
    pulses = chart.pulses(channel)
    return {
        "channel": channel.wire_name,
        "rising": [edge.position for edge in chart.rising(channel)],
        "falling": [edge.position for edge in chart.falling(channel)],
        "duty_ratios": [round(pulse.duty_ratio(cycle), 6) for pulse in pulses],
    }
