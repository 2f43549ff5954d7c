"""Declarative description of a simulator test scenario."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

from ..channels import Channel
from ..simulator.commands import EngineSelection
from ..waves.comparator import PositionTolerance

__all__ = [
    "CaptureStep",
    "CheckKind",
    "CommandStep",
    "EngineProfile",
    "RpmStep",
    "Scenario",
    "Step",
    "WaveCheck",
]


@dataclass(frozen=True, slots=True)
class EngineProfile:
    """Engine configuration a scenario runs against.

    ``cycle_length`` left as ``None`` defers to the comparator settings.
    """

    name: str
    engine_type: int
    cylinders: int = 4
    cycle_length: Optional[float] = None

    def selection(self) -> EngineSelection:
        return EngineSelection(engine_type=self.engine_type, name=self.name)

    def has_output(self, channel: Channel) -> bool:
        """Whether the engine has the spark or injector output ``channel``."""

        cylinder = channel.cylinder
        return cylinder is None or cylinder <= self.cylinders


@dataclass(frozen=True, slots=True)
class CommandStep:
    """Send ``text``; confirm on ``sensor`` when given, else on the echo."""

    text: str
    complex: bool = False
    sensor: Optional[str] = None
    expected: Optional[float] = None
    tolerance: Optional[float] = None


@dataclass(frozen=True, slots=True)
class RpmStep:
    rpm: int


@dataclass(frozen=True, slots=True)
class CaptureStep:
    label: str = ""
    skip: Optional[int] = None


class CheckKind(str, Enum):
    WAVE = "assert_wave"
    WAVE_FALL = "assert_wave_fall"
    WAVE_NULL = "assert_wave_null"


@dataclass(frozen=True, slots=True)
class WaveCheck:
    """One assertion against the most recent capture.

    Unset tolerances fall back to the comparator settings.
    """

    kind: CheckKind
    channel: Channel
    width: Optional[float] = None
    positions: Tuple[float, ...] = ()
    width_tolerance: Optional[float] = None
    position_tolerance: Optional[PositionTolerance] = None
    message: str = ""


Step = Union[CommandStep, RpmStep, CaptureStep, WaveCheck]


@dataclass(frozen=True, slots=True)
class Scenario:
    name: str
    profile: EngineProfile
    steps: Tuple[Step, ...] = ()

    @property
    def checks(self) -> Tuple[WaveCheck, ...]:
        return tuple(step for step in self.steps if isinstance(step, WaveCheck))
