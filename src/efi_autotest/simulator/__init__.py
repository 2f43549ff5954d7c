"""Simulator connection, command delivery and chart capture."""

from __future__ import annotations

from .capture import DEFAULT_CAPTURE_TIMEOUT, capture_chart
from .commands import (
    COMPLEX_RETRY_COUNT,
    COMPLEX_TIMEOUT_MS,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_MS,
    CommandChannel,
    CommandRequest,
    CommandResult,
    CommandState,
    EchoConfirmation,
    EngineSelection,
    SensorConfirmation,
)
from .link import DEFAULT_HOST, DEFAULT_PORT, SimulatorLink

__all__ = [
    "COMPLEX_RETRY_COUNT",
    "COMPLEX_TIMEOUT_MS",
    "DEFAULT_CAPTURE_TIMEOUT",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DEFAULT_RETRY_COUNT",
    "DEFAULT_TIMEOUT_MS",
    "CommandChannel",
    "CommandRequest",
    "CommandResult",
    "CommandState",
    "EchoConfirmation",
    "EngineSelection",
    "SensorConfirmation",
    "SimulatorLink",
    "capture_chart",
]
