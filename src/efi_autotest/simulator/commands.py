"""Command delivery with confirmation polling.

The simulator runs its own tick loop, so a command written to the socket is
not applied yet when ``send`` returns.  :class:`CommandChannel` therefore
writes the command once and then polls an observable post-condition until it
holds or the attempt budget runs out::

    SENT -> POLLING -> CONFIRMED
                    -> EXHAUSTED   (raises CommandExhausted)

Plain commands are confirmed by the simulator echoing them back.  Commands
that change physical state are confirmed by a settled sensor value and use
the larger *complex* budget because they need several simulation ticks to
take effect.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
import time
from typing import Any, Callable, Optional, Protocol, Tuple, runtime_checkable

from ..errors import CommandExhausted
from ..waves.tolerance import RATIO, Tolerance

__all__ = [
    "COMPLEX_RETRY_COUNT",
    "COMPLEX_TIMEOUT_MS",
    "DEFAULT_RETRY_COUNT",
    "DEFAULT_TIMEOUT_MS",
    "CommandChannel",
    "CommandRequest",
    "CommandResult",
    "CommandState",
    "CommandTransport",
    "Confirmation",
    "EchoConfirmation",
    "EngineSelection",
    "SensorConfirmation",
    "SensorReader",
]

logger = logging.getLogger(__name__)

DEFAULT_RETRY_COUNT = 20
DEFAULT_TIMEOUT_MS = 100
COMPLEX_RETRY_COUNT = 100
COMPLEX_TIMEOUT_MS = 300

SensorReader = Callable[[str], Optional[float]]


@runtime_checkable
class CommandTransport(Protocol):
    """Anything able to deliver one line to the simulator."""

    def send_line(self, text: str) -> None: ...


class Confirmation(Protocol):
    """Observable post-condition polled after a command is sent."""

    def check(self) -> Tuple[bool, Any]:
        """Return ``(confirmed, observed value)``."""

    def describe(self) -> str: ...


class EchoConfirmation:
    """Confirmed once the simulator echoes ``command`` back."""

    def __init__(self, command: str, last_echo: Callable[[], Optional[str]]) -> None:
        self.command = command
        self._last_echo = last_echo

    def check(self) -> Tuple[bool, Any]:
        observed = self._last_echo()
        return observed == self.command, observed

    def describe(self) -> str:
        return f"echo of {self.command!r}"


class SensorConfirmation:
    """Confirmed once ``sensor`` reads close to ``expected``.

    ``settle_reads`` consecutive matching reads are required; any miss
    restarts the count.
    """

    def __init__(
        self,
        reader: SensorReader,
        sensor: str,
        expected: float,
        *,
        tolerance: Tolerance | float = RATIO,
        settle_reads: int = 1,
    ) -> None:
        if settle_reads < 1:
            raise ValueError("settle_reads must be at least 1")
        self.sensor = sensor
        self.expected = float(expected)
        self.tolerance = tolerance if isinstance(tolerance, Tolerance) else Tolerance.ratio(tolerance)
        self.settle_reads = settle_reads
        self._reader = reader
        self._streak = 0

    def check(self) -> Tuple[bool, Any]:
        observed = self._reader(self.sensor)
        if observed is not None and self.tolerance.accepts(self.expected, observed):
            self._streak += 1
        else:
            self._streak = 0
        return self._streak >= self.settle_reads, observed

    def describe(self) -> str:
        return f"{self.sensor} = {self.expected:g} ({self.tolerance})"


class CommandState(str, Enum):
    SENT = "sent"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True, slots=True)
class CommandRequest:
    text: str
    retry_count: int = DEFAULT_RETRY_COUNT
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    def __post_init__(self) -> None:
        if not self.text.strip():
            raise ValueError("command text must not be empty")
        if self.retry_count < 1:
            raise ValueError(f"retry_count must be at least 1, got {self.retry_count}")
        if self.timeout_ms < 0:
            raise ValueError(f"timeout_ms must not be negative, got {self.timeout_ms}")


@dataclass(frozen=True, slots=True)
class CommandResult:
    request: CommandRequest
    state: CommandState
    attempts: int
    observed: Any = None


@dataclass(frozen=True, slots=True)
class EngineSelection:
    """Engine profile to load in the simulator."""

    engine_type: int
    name: str = ""


class CommandChannel:
    """Send commands and block until the simulator confirms them."""

    def __init__(
        self,
        transport: CommandTransport,
        *,
        last_echo: Optional[Callable[[], Optional[str]]] = None,
        read_sensor: Optional[SensorReader] = None,
        retry_count: int = DEFAULT_RETRY_COUNT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        complex_retry_count: int = COMPLEX_RETRY_COUNT,
        complex_timeout_ms: int = COMPLEX_TIMEOUT_MS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._transport = transport
        self._last_echo = last_echo or getattr(transport, "last_confirmation", None)
        self._read_sensor = read_sensor or getattr(transport, "read_sensor", None)
        self.retry_count = retry_count
        self.timeout_ms = timeout_ms
        self.complex_retry_count = complex_retry_count
        self.complex_timeout_ms = complex_timeout_ms
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def send(self, request: CommandRequest, confirmation: Optional[Confirmation] = None) -> CommandResult:
        """Transmit ``request`` and poll ``confirmation`` until it holds."""

        confirmation = confirmation or self._echo(request.text)
        self._transport.send_line(request.text)
        logger.debug(
            "Command sent.",
            extra={"event": "command.sent", "command": request.text, "state": CommandState.SENT.value},
        )

        observed: Any = None
        for attempt in range(1, request.retry_count + 1):
            confirmed, observed = confirmation.check()
            if confirmed:
                logger.info(
                    "Command confirmed.",
                    extra={
                        "event": "command.confirmed",
                        "command": request.text,
                        "attempts": attempt,
                    },
                )
                return CommandResult(
                    request=request,
                    state=CommandState.CONFIRMED,
                    attempts=attempt,
                    observed=observed,
                )
            if attempt < request.retry_count:
                logger.debug(
                    "Command not confirmed yet.",
                    extra={
                        "event": "command.retry",
                        "command": request.text,
                        "state": CommandState.POLLING.value,
                        "attempt": attempt,
                        "observed": repr(observed),
                    },
                )
                self._sleep(request.timeout_ms / 1000.0)

        logger.error(
            "Command exhausted its confirmation budget.",
            extra={
                "event": "command.exhausted",
                "command": request.text,
                "attempts": request.retry_count,
                "expectation": confirmation.describe(),
            },
        )
        raise CommandExhausted(
            request.text,
            request.retry_count,
            observed=observed,
            expectation=confirmation.describe(),
        )

    def send_command(
        self,
        text: str,
        retry_count: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        *,
        confirmation: Optional[Confirmation] = None,
    ) -> CommandResult:
        request = CommandRequest(
            text=text,
            retry_count=self.retry_count if retry_count is None else retry_count,
            timeout_ms=self.timeout_ms if timeout_ms is None else timeout_ms,
        )
        return self.send(request, confirmation)

    def send_complex_command(
        self, text: str, *, confirmation: Optional[Confirmation] = None
    ) -> CommandResult:
        """Send a command that needs several simulation ticks to take effect."""

        return self.send_command(
            text,
            self.complex_retry_count,
            self.complex_timeout_ms,
            confirmation=confirmation,
        )

    def sensor_confirmation(
        self,
        sensor: str,
        expected: float,
        *,
        tolerance: Tolerance | float = RATIO,
        settle_reads: int = 1,
    ) -> SensorConfirmation:
        if self._read_sensor is None:
            raise RuntimeError("No sensor reader available for confirmation")
        return SensorConfirmation(
            self._read_sensor,
            sensor,
            expected,
            tolerance=tolerance,
            settle_reads=settle_reads,
        )

    def change_rpm(self, rpm: int, *, tolerance: Tolerance | float = RATIO) -> CommandResult:
        """Set the simulated RPM and wait until the ``rpm`` sensor follows."""

        return self.send_complex_command(
            f"rpm {int(rpm)}",
            confirmation=self.sensor_confirmation("rpm", rpm, tolerance=tolerance),
        )

    def set_engine_type(self, engine: EngineSelection) -> CommandResult:
        """Load ``engine`` and re-enable the simulator's self stimulation."""

        logger.info(
            "Selecting engine type.",
            extra={"event": "command.engine_type", "engine_type": engine.engine_type, "engine": engine.name},
        )
        result = self.send_complex_command(f"set_engine_type {engine.engine_type}")
        self.send_command("enable self_stimulation")
        return result

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------
    def _echo(self, text: str) -> Confirmation:
        if self._last_echo is None:
            raise RuntimeError("No echo source available for confirmation")
        return EchoConfirmation(text, self._last_echo)
