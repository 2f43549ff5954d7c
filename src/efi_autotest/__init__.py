"""Test oracle for an engine-control firmware simulator.

The package captures the simulator's engine chart, compares it against
caller-declared expected waves and delivers configuration commands with
confirmation polling.
"""

from __future__ import annotations

from ._version import __version__
from .channels import Channel, injector, lookup, spark
from .errors import (
    AutotestError,
    CaptureTimeout,
    ChannelAbsentUnexpectedly,
    ChannelPresentUnexpectedly,
    CommandExhausted,
    EdgeCountMismatch,
    LinkError,
    MalformedReport,
    PositionOutOfTolerance,
    ReportFormatError,
    ScenarioError,
    ScenarioFormatError,
    UnknownChannel,
    WaveMismatch,
    WidthRatioOutOfTolerance,
)
from .simulator import (
    CommandChannel,
    CommandRequest,
    CommandResult,
    EngineSelection,
    SimulatorLink,
    capture_chart,
)
from .waves import (
    EngineChart,
    ExpectedWave,
    ReportParser,
    Tolerance,
    assert_wave,
    assert_wave_fall,
    assert_wave_null,
    assert_wave_ratio,
    is_close_enough,
    parse_report,
)

__all__ = [
    "AutotestError",
    "CaptureTimeout",
    "Channel",
    "ChannelAbsentUnexpectedly",
    "ChannelPresentUnexpectedly",
    "CommandChannel",
    "CommandExhausted",
    "CommandRequest",
    "CommandResult",
    "EdgeCountMismatch",
    "EngineChart",
    "EngineSelection",
    "ExpectedWave",
    "LinkError",
    "MalformedReport",
    "PositionOutOfTolerance",
    "ReportFormatError",
    "ReportParser",
    "ScenarioError",
    "ScenarioFormatError",
    "SimulatorLink",
    "Tolerance",
    "UnknownChannel",
    "WaveMismatch",
    "WidthRatioOutOfTolerance",
    "__version__",
    "assert_wave",
    "assert_wave_fall",
    "assert_wave_null",
    "assert_wave_ratio",
    "capture_chart",
    "injector",
    "is_close_enough",
    "lookup",
    "parse_report",
    "spark",
]
