"""Execute scenarios against a live simulator.

Each scenario first selects its engine, then runs its steps in order.
Wave checks always look at the most recent capture, and every command or
rpm change discards it.  The first failing step
aborts the scenario and, in :meth:`ScenarioRunner.run_all`, the whole batch:
once a confirmation or an assertion fails the simulator state is unknown.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from typing import Callable, Iterable, List, Optional

from ..configuration import Settings
from ..errors import AutotestError, ScenarioError
from ..simulator.capture import ChartSource, capture_chart
from ..simulator.commands import CommandChannel, CommandResult
from ..waves.chart import EngineChart
from ..waves.comparator import assert_wave_fall, assert_wave_null, assert_wave_ratio
from ..waves.tolerance import RATIO
from .model import CaptureStep, CheckKind, CommandStep, RpmStep, Scenario, Step, WaveCheck

__all__ = ["ScenarioOutcome", "ScenarioRunner"]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ScenarioOutcome:
    name: str
    passed: bool
    steps_run: int
    checks_passed: int
    duration: float
    error: Optional[str] = None
    category: Optional[str] = None


class ScenarioRunner:
    """Drive :class:`Scenario` objects through a link and a command channel."""

    def __init__(
        self,
        link: ChartSource,
        commands: CommandChannel,
        settings: Optional[Settings] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._link = link
        self._commands = commands
        self.settings = settings or Settings()
        self._clock = clock
        self._chart: Optional[EngineChart] = None
        self._steps_run = 0

    @property
    def chart(self) -> Optional[EngineChart]:
        """Most recent capture of the current scenario."""

        return self._chart

    def run(self, scenario: Scenario) -> ScenarioOutcome:
        """Run ``scenario`` and return its outcome; failures propagate."""

        started = self._clock()
        self._chart = None
        self._steps_run = 0
        logger.info(
            "Scenario started.",
            extra={
                "event": "scenario.started",
                "scenario": scenario.name,
                "engine": scenario.profile.name,
                "engine_type": scenario.profile.engine_type,
            },
        )
        self._commands.set_engine_type(scenario.profile.selection())
        checks = 0
        for index, step in enumerate(scenario.steps):
            logger.debug(
                "Running scenario step.",
                extra={
                    "event": "scenario.step",
                    "scenario": scenario.name,
                    "step": index,
                    "action": type(step).__name__,
                },
            )
            self._steps_run = index + 1
            if self._run_step(scenario, step):
                checks += 1
        duration = self._clock() - started
        logger.info(
            "Scenario passed.",
            extra={
                "event": "scenario.passed",
                "scenario": scenario.name,
                "checks": checks,
                "duration": round(duration, 3),
            },
        )
        return ScenarioOutcome(
            name=scenario.name,
            passed=True,
            steps_run=len(scenario.steps),
            checks_passed=checks,
            duration=duration,
        )

    def run_all(self, scenarios: Iterable[Scenario]) -> List[ScenarioOutcome]:
        """Run ``scenarios`` in order, stopping after the first failure."""

        outcomes: List[ScenarioOutcome] = []
        for scenario in scenarios:
            started = self._clock()
            try:
                outcomes.append(self.run(scenario))
            except AutotestError as exc:
                logger.error(
                    "Scenario failed.",
                    extra={
                        "event": "scenario.failed",
                        "scenario": scenario.name,
                        "category": exc.category,
                        "error": str(exc),
                        "context": dict(exc.context),
                    },
                )
                outcomes.append(
                    ScenarioOutcome(
                        name=scenario.name,
                        passed=False,
                        steps_run=self._steps_run,
                        checks_passed=0,
                        duration=self._clock() - started,
                        error=str(exc),
                        category=exc.category,
                    )
                )
                break
        return outcomes

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------
    def _run_step(self, scenario: Scenario, step: Step) -> bool:
        """Execute ``step``; return ``True`` when it was a passing check."""

        if isinstance(step, CommandStep):
            self._send(step)
            self._chart = None
            return False
        if isinstance(step, RpmStep):
            self._commands.change_rpm(step.rpm)
            self._chart = None
            return False
        if isinstance(step, CaptureStep):
            capture = self.settings.capture
            self._chart = capture_chart(
                self._link,
                timeout=capture.timeout,
                skip=capture.skip if step.skip is None else step.skip,
            )
            return False
        if isinstance(step, WaveCheck):
            self._check(scenario, step)
            return True
        raise ScenarioError(f"Unsupported step {step!r}", context={"scenario": scenario.name})

    def _send(self, step: CommandStep) -> CommandResult:
        confirmation = None
        if step.sensor is not None and step.expected is not None:
            confirmation = self._commands.sensor_confirmation(
                step.sensor,
                step.expected,
                tolerance=RATIO if step.tolerance is None else step.tolerance,
            )
        if step.complex:
            return self._commands.send_complex_command(step.text, confirmation=confirmation)
        return self._commands.send_command(step.text, confirmation=confirmation)

    def _check(self, scenario: Scenario, check: WaveCheck) -> None:
        if self._chart is None:
            raise ScenarioError(
                f"{scenario.name}: {check.kind.value} on {check.channel.wire_name} before any capture"
                " since the last configuration change",
                context={"scenario": scenario.name, "channel": check.channel},
            )
        message = f"{scenario.name}: {check.message}" if check.message else scenario.name
        if check.kind is CheckKind.WAVE_NULL:
            assert_wave_null(message, self._chart, check.channel)
            return

        defaults = self.settings.comparator
        width_tolerance = defaults.width_tolerance if check.width_tolerance is None else check.width_tolerance
        position_tolerance = (
            defaults.position_tolerance if check.position_tolerance is None else check.position_tolerance
        )
        if check.width is None:
            raise ScenarioError(
                f"{scenario.name}: {check.kind.value} on {check.channel.wire_name} has no width",
                context={"scenario": scenario.name, "channel": check.channel},
            )
        cycle_length = scenario.profile.cycle_length or defaults.cycle_length
        if check.kind is CheckKind.WAVE_FALL:
            assert_wave_fall(
                message,
                self._chart,
                check.channel,
                check.width,
                *check.positions,
                width_tolerance=width_tolerance,
                position_tolerance=position_tolerance,
                cycle_length=cycle_length,
            )
            return
        assert_wave_ratio(
            message,
            self._chart,
            check.channel,
            check.width,
            width_tolerance,
            position_tolerance,
            *check.positions,
            cycle_length=cycle_length,
        )
