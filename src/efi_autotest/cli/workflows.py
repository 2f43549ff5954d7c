"""Command handlers behind the efi-autotest subcommands."""

from __future__ import annotations

import argparse
from dataclasses import replace
import json
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

from ..configuration import Settings
from ..scenarios import Scenario, ScenarioOutcome, ScenarioRunner, load_scenarios
from ..simulator.commands import CommandChannel
from ..simulator.link import SimulatorLink
from ..waves.comparator import describe_channel
from ..waves.report import read_report
from .errors import CliError

__all__ = ["handle_inspect", "handle_list", "handle_run", "render_outcomes"]


def _settings(config: Mapping[str, Any]) -> Settings:
    try:
        return Settings.from_config(config)
    except ValueError as exc:
        raise CliError(
            f"Invalid configuration: {exc}",
            category="usage",
            context={"config_path": config.get("_config_path")},
        ) from exc


def _require_file(path: Path, *, kind: str) -> Path:
    resolved = path.expanduser()
    if not resolved.is_file():
        raise CliError(
            f"{kind} file not found: {resolved}",
            category="not_found",
            context={"path": str(resolved)},
        )
    return resolved


def _select(scenarios: Sequence[Scenario], only: Optional[Sequence[str]]) -> List[Scenario]:
    if not only:
        return list(scenarios)
    known = {scenario.name for scenario in scenarios}
    missing = [name for name in only if name not in known]
    if missing:
        raise CliError(
            f"Unknown scenario(s): {', '.join(missing)}",
            category="not_found",
            context={"missing": missing, "available": sorted(known)},
        )
    wanted = set(only)
    return [scenario for scenario in scenarios if scenario.name in wanted]


def render_outcomes(outcomes: Sequence[ScenarioOutcome], *, skipped: int = 0) -> str:
    lines = []
    for outcome in outcomes:
        if outcome.passed:
            lines.append(
                f"PASS {outcome.name} ({outcome.checks_passed} checks, {outcome.duration:.2f}s)"
            )
        else:
            lines.append(f"FAIL {outcome.name} (step {outcome.steps_run}): {outcome.error}")
    passed = sum(1 for outcome in outcomes if outcome.passed)
    summary = f"{passed} passed, {len(outcomes) - passed} failed"
    if skipped:
        summary += f", {skipped} not run"
    lines.append(summary)
    return "\n".join(lines)


def handle_run(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    settings = _settings(config)
    simulator = settings.simulator
    if namespace.host is not None:
        simulator = replace(simulator, host=namespace.host)
    if namespace.port is not None:
        simulator = replace(simulator, port=namespace.port)
    settings = replace(settings, simulator=simulator)

    path = _require_file(namespace.scenarios, kind="Scenario")
    scenarios = _select(load_scenarios(path), namespace.only)

    budget = settings.commands
    with SimulatorLink(host=simulator.host, port=simulator.port, timeout=simulator.timeout) as link:
        commands = CommandChannel(
            link,
            retry_count=budget.retry_count,
            timeout_ms=budget.timeout_ms,
            complex_retry_count=budget.complex_retry_count,
            complex_timeout_ms=budget.complex_timeout_ms,
        )
        outcomes = ScenarioRunner(link, commands, settings).run_all(scenarios)

    report = render_outcomes(outcomes, skipped=len(scenarios) - len(outcomes))
    failed = next((outcome for outcome in outcomes if not outcome.passed), None)
    if failed is not None:
        raise CliError(
            report,
            category=failed.category or "runtime",
            context={"scenario": failed.name, "scenarios_file": str(path)},
        )
    return report


def handle_inspect(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    settings = _settings(config)
    cycle_length = namespace.cycle_length or settings.comparator.cycle_length
    if cycle_length <= 0:
        raise CliError(
            f"--cycle-length must be positive, got {cycle_length:g}",
            category="usage",
            context={"cycle_length": cycle_length},
        )
    chart = read_report(_require_file(namespace.report, kind="Report"))
    payload = {
        "window": list(chart.window),
        "cycle_length": cycle_length,
        "channels": [describe_channel(chart, channel, cycle_length) for channel in chart.channels],
    }
    return json.dumps(payload, indent=2)


def handle_list(namespace: argparse.Namespace, *, config: Mapping[str, Any]) -> str:
    scenarios = load_scenarios(_require_file(namespace.scenarios, kind="Scenario"))
    lines = [
        f"{scenario.name}\t{scenario.profile.name or scenario.profile.engine_type}"
        f"\t{len(scenario.steps)} steps, {len(scenario.checks)} checks"
        for scenario in scenarios
    ]
    return "\n".join(lines)
