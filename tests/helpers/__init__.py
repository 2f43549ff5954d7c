"""Convenience re-exports for test helpers."""

from __future__ import annotations

from .reports import build_chart, build_report, duty_pulses, pulse_triples
from .simulator import FakeClock, FakeSimulator, repeating_reports

__all__ = [
    "FakeClock",
    "FakeSimulator",
    "build_chart",
    "build_report",
    "duty_pulses",
    "pulse_triples",
    "repeating_reports",
]
