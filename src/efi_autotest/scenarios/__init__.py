"""Declarative scenarios and the runner that executes them."""

from __future__ import annotations

from .loader import load_scenarios, parse_scenarios
from .model import (
    CaptureStep,
    CheckKind,
    CommandStep,
    EngineProfile,
    RpmStep,
    Scenario,
    Step,
    WaveCheck,
)
from .runner import ScenarioOutcome, ScenarioRunner

__all__ = [
    "CaptureStep",
    "CheckKind",
    "CommandStep",
    "EngineProfile",
    "RpmStep",
    "Scenario",
    "ScenarioOutcome",
    "ScenarioRunner",
    "Step",
    "WaveCheck",
    "load_scenarios",
    "parse_scenarios",
]
