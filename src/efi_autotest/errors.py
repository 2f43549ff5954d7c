"""Exception hierarchy shared by the oracle, the command channel and the runner.

Every error carries a ``context`` mapping with JSON-friendly values so the
command line can log it as a structured payload.  None of these errors is
recoverable inside a scenario: once the simulator state is in doubt the
sequence is aborted.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional, Sequence

__all__ = [
    "AutotestError",
    "CaptureTimeout",
    "ChannelAbsentUnexpectedly",
    "ChannelPresentUnexpectedly",
    "CommandExhausted",
    "EdgeCountMismatch",
    "LinkError",
    "MalformedReport",
    "PositionOutOfTolerance",
    "ReportFormatError",
    "ScenarioError",
    "ScenarioFormatError",
    "UnknownChannel",
    "WaveMismatch",
    "WidthRatioOutOfTolerance",
    "normalise_context",
]


def _normalise_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    name = getattr(value, "wire_name", None)
    if isinstance(name, str):
        return name
    return str(value)


def normalise_context(context: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Coerce ``context`` values into scalars (or lists of scalars)."""

    if not context:
        return {}
    payload: MutableMapping[str, Any] = {}
    for key, value in context.items():
        payload[str(key)] = _normalise_value(value)
    return dict(payload)


class AutotestError(RuntimeError):
    """Base class for every failure raised by :mod:`efi_autotest`."""

    category = "runtime"

    def __init__(self, message: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.context = normalise_context(context)


# ---------------------------------------------------------------------------
# Report parser
# ---------------------------------------------------------------------------
class ReportFormatError(AutotestError, ValueError):
    """Raised when a chart report cannot be turned into an engine chart."""

    category = "io"


class MalformedReport(ReportFormatError):
    """The stream does not tokenize into channel/edge/position triples."""


class UnknownChannel(ReportFormatError):
    """A token names a channel outside the registry."""

    def __init__(self, token: str, *, context: Optional[Mapping[str, Any]] = None) -> None:
        payload = {"channel": token}
        payload.update(context or {})
        super().__init__(f"Unknown channel {token!r}", context=payload)
        self.token = token


# ---------------------------------------------------------------------------
# Wave comparator
# ---------------------------------------------------------------------------
class WaveMismatch(AutotestError, AssertionError):
    """A captured wave does not match the expected model."""

    category = "mismatch"
    reason = "wave mismatch"

    def __init__(
        self,
        message: str,
        channel: Any,
        expected: Any,
        actual: Any,
        *,
        index: Optional[int] = None,
        detail: str = "",
    ) -> None:
        self.message = message
        self.channel = channel
        self.expected = expected
        self.actual = actual
        self.index = index
        channel_name = getattr(channel, "wire_name", channel)
        parts = [f"{message}: " if message else "", f"{self.reason} for {channel_name}"]
        if index is not None:
            parts.append(f" at edge #{index}")
        parts.append(f"; expected {_render(expected)} but got {_render(actual)}")
        if detail:
            parts.append(f" ({detail})")
        super().__init__(
            "".join(parts),
            context={
                "scenario": message,
                "channel": channel,
                "expected": expected,
                "actual": actual,
                "index": index,
            },
        )


def _render(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.6g}"
    if isinstance(value, Sequence) and not isinstance(value, str):
        return "[" + ", ".join(_render(item) for item in value) + "]"
    return str(value)


class ChannelAbsentUnexpectedly(WaveMismatch):
    reason = "no activity"


class EdgeCountMismatch(WaveMismatch):
    reason = "edge count mismatch"


class PositionOutOfTolerance(WaveMismatch):
    reason = "edge position out of tolerance"


class WidthRatioOutOfTolerance(WaveMismatch):
    reason = "pulse width ratio out of tolerance"


class ChannelPresentUnexpectedly(WaveMismatch):
    reason = "unexpected activity"


# ---------------------------------------------------------------------------
# Simulator side
# ---------------------------------------------------------------------------
class CommandExhausted(AutotestError):
    """A command was not confirmed within its attempt budget."""

    category = "command"

    def __init__(
        self,
        command: str,
        attempts: int,
        *,
        observed: Any = None,
        expectation: str = "",
    ) -> None:
        self.command = command
        self.attempts = attempts
        self.observed = observed
        message = f"Command {command!r} not confirmed after {attempts} attempts"
        if expectation:
            message += f" (waiting for {expectation}, last observed {observed!r})"
        super().__init__(
            message,
            context={
                "command": command,
                "attempts": attempts,
                "observed": observed,
                "expectation": expectation,
            },
        )


class LinkError(AutotestError, ConnectionError):
    """The connection to the simulator failed or was closed."""

    category = "io"


class CaptureTimeout(AutotestError, TimeoutError):
    """No fresh chart report arrived before the capture deadline."""


# ---------------------------------------------------------------------------
# Scenarios
# ---------------------------------------------------------------------------
class ScenarioFormatError(AutotestError, ValueError):
    """A scenario document is structurally invalid."""

    category = "usage"


class ScenarioError(AutotestError):
    """A scenario cannot continue (for example a check before any capture)."""
