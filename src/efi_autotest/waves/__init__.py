"""Engine chart parsing and waveform assertions."""

from __future__ import annotations

from .chart import FOUR_STROKE_CYCLE, Edge, EdgeKind, EngineChart, Pulse
from .comparator import (
    POSITION_TOLERANCE,
    ExpectedWave,
    WaveMatch,
    assert_wave,
    assert_wave_fall,
    assert_wave_null,
    assert_wave_ratio,
    compare_wave,
    describe_channel,
)
from .report import ReportParser, is_chart_report, parse_report, read_report
from .tolerance import EPSILON, RATIO, ROUNDING, Tolerance, ToleranceMode, is_close_enough

__all__ = [
    "EPSILON",
    "FOUR_STROKE_CYCLE",
    "POSITION_TOLERANCE",
    "RATIO",
    "ROUNDING",
    "Edge",
    "EdgeKind",
    "EngineChart",
    "ExpectedWave",
    "Pulse",
    "ReportParser",
    "Tolerance",
    "ToleranceMode",
    "WaveMatch",
    "assert_wave",
    "assert_wave_fall",
    "assert_wave_null",
    "assert_wave_ratio",
    "compare_wave",
    "describe_channel",
    "is_chart_report",
    "is_close_enough",
    "parse_report",
    "read_report",
]
