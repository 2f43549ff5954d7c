"""Load scenarios from TOML documents.

Example::

    [[scenario]]
    name = "mazda 626 default cranking"

    [scenario.profile]
    name = "Mazda 626"
    engine_type = 28

    [[scenario.steps]]
    action = "rpm"
    rpm = 200

    [[scenario.steps]]
    action = "capture"

    [[scenario.steps]]
    action = "assert_wave"
    channel = "SPARK_1"
    width = 0.1944
    base = 102
    offsets = [0, 180, 360, 540]

Positions are listed either directly (``positions = [...]``) or as ``base``
plus ``offsets``, the latter keeping unwrapped cycle positions readable.
"""

from __future__ import annotations

from collections.abc import Mapping as ABCMapping
import math
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

from ..channels import lookup
from ..errors import ScenarioFormatError, UnknownChannel
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

__all__ = ["load_scenarios", "parse_scenarios"]


class _Where:
    """Location prefix for error messages."""

    def __init__(self, source: str, scenario: int, step: Optional[int] = None) -> None:
        self.source = source
        self.scenario = scenario
        self.step = step

    def fail(self, message: str) -> ScenarioFormatError:
        location = f"{self.source}: scenario #{self.scenario}"
        if self.step is not None:
            location += f", step #{self.step}"
        return ScenarioFormatError(
            f"{location}: {message}",
            context={"source": self.source, "scenario": self.scenario, "step": self.step},
        )


def _require(table: Mapping[str, Any], key: str, where: _Where) -> Any:
    if key not in table:
        raise where.fail(f"missing required key '{key}'")
    return table[key]


def _float(value: Any, key: str, where: _Where) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise where.fail(f"'{key}' must be a finite number, got {value!r}")
    return float(value)


def _optional_float(table: Mapping[str, Any], key: str, where: _Where) -> Optional[float]:
    if key not in table:
        return None
    return _float(table[key], key, where)


def _int(value: Any, key: str, where: _Where) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise where.fail(f"'{key}' must be an integer, got {value!r}")
    return value


def _floats(value: Any, key: str, where: _Where) -> Tuple[float, ...]:
    if not isinstance(value, Sequence) or isinstance(value, str):
        raise where.fail(f"'{key}' must be a list of numbers")
    return tuple(_float(item, key, where) for item in value)


def _positions(table: Mapping[str, Any], where: _Where) -> Tuple[float, ...]:
    if "positions" in table:
        if "base" in table or "offsets" in table:
            raise where.fail("use either 'positions' or 'base' + 'offsets', not both")
        return _floats(table["positions"], "positions", where)
    if "offsets" in table:
        base = _float(table.get("base", 0.0), "base", where)
        return tuple(base + offset for offset in _floats(table["offsets"], "offsets", where))
    if "base" in table:
        return (_float(table["base"], "base", where),)
    return ()


def _command(table: Mapping[str, Any], where: _Where, *, complex_default: bool) -> CommandStep:
    text = _require(table, "text", where)
    if not isinstance(text, str) or not text.strip():
        raise where.fail("'text' must be a non-empty string")
    sensor = table.get("sensor")
    expected = _optional_float(table, "expected", where)
    if (sensor is None) != (expected is None):
        raise where.fail("'sensor' and 'expected' must be given together")
    if sensor is not None and not isinstance(sensor, str):
        raise where.fail("'sensor' must be a string")
    complex_flag = table.get("complex", complex_default)
    if not isinstance(complex_flag, bool):
        raise where.fail("'complex' must be a boolean")
    return CommandStep(
        text=text.strip(),
        complex=complex_flag,
        sensor=sensor,
        expected=expected,
        tolerance=_optional_float(table, "tolerance", where),
    )


def _wave_check(table: Mapping[str, Any], kind: CheckKind, where: _Where) -> WaveCheck:
    raw_channel = _require(table, "channel", where)
    try:
        channel = lookup(str(raw_channel))
    except UnknownChannel as exc:
        raise where.fail(f"unknown channel {raw_channel!r}") from exc
    message = table.get("message", "")
    if not isinstance(message, str):
        raise where.fail("'message' must be a string")
    if kind is CheckKind.WAVE_NULL:
        return WaveCheck(kind=kind, channel=channel, message=message)

    width = _float(_require(table, "width", where), "width", where)
    positions = _positions(table, where)
    if not positions:
        raise where.fail(f"{kind.value} needs at least one position")
    position_tolerance: Any = None
    if "position_tolerance" in table:
        raw = table["position_tolerance"]
        if isinstance(raw, (list, tuple)):
            position_tolerance = _floats(raw, "position_tolerance", where)
            if len(position_tolerance) != len(positions):
                raise where.fail(
                    f"{len(position_tolerance)} position tolerances for {len(positions)} positions"
                )
        else:
            position_tolerance = _float(raw, "position_tolerance", where)
    return WaveCheck(
        kind=kind,
        channel=channel,
        width=width,
        positions=positions,
        width_tolerance=_optional_float(table, "width_tolerance", where),
        position_tolerance=position_tolerance,
        message=message,
    )


def _step(table: Mapping[str, Any], where: _Where) -> Step:
    if not isinstance(table, ABCMapping):
        raise where.fail("each step must be a table")
    action = _require(table, "action", where)
    if action == "command":
        return _command(table, where, complex_default=False)
    if action == "complex_command":
        return _command(table, where, complex_default=True)
    if action == "rpm":
        rpm = _int(_require(table, "rpm", where), "rpm", where)
        if rpm < 0:
            raise where.fail("'rpm' must not be negative")
        return RpmStep(rpm=rpm)
    if action == "capture":
        skip = table.get("skip")
        if skip is not None:
            skip = _int(skip, "skip", where)
        return CaptureStep(label=str(table.get("label", "")), skip=skip)
    try:
        kind = CheckKind(action)
    except ValueError:
        raise where.fail(f"unknown action {action!r}") from None
    return _wave_check(table, kind, where)


def _profile(table: Any, where: _Where) -> EngineProfile:
    if not isinstance(table, ABCMapping):
        raise where.fail("'profile' must be a table")
    name = table.get("name", "")
    engine_type = _int(_require(table, "engine_type", where), "engine_type", where)
    cylinders = _int(table.get("cylinders", 4), "cylinders", where)
    if cylinders < 1:
        raise where.fail("'cylinders' must be positive")
    cycle_length = _optional_float(table, "cycle_length", where)
    if cycle_length is not None and cycle_length <= 0:
        raise where.fail("'cycle_length' must be positive")
    return EngineProfile(
        name=str(name),
        engine_type=engine_type,
        cylinders=cylinders,
        cycle_length=cycle_length,
    )


def parse_scenarios(payload: Mapping[str, Any], *, source: str = "<memory>") -> List[Scenario]:
    """Build :class:`Scenario` objects from a decoded TOML mapping."""

    tables = payload.get("scenario", [])
    if not isinstance(tables, list):
        raise ScenarioFormatError(f"{source}: 'scenario' must be an array of tables")
    scenarios: List[Scenario] = []
    seen: Dict[str, int] = {}
    for index, table in enumerate(tables):
        where = _Where(source, index)
        if not isinstance(table, ABCMapping):
            raise where.fail("scenario entries must be tables")
        name = _require(table, "name", where)
        if not isinstance(name, str) or not name.strip():
            raise where.fail("'name' must be a non-empty string")
        if name in seen:
            raise where.fail(f"duplicate scenario name {name!r} (first at #{seen[name]})")
        seen[name] = index
        profile = _profile(_require(table, "profile", where), where)
        raw_steps = table.get("steps", [])
        if not isinstance(raw_steps, list):
            raise where.fail("'steps' must be an array of tables")
        steps = tuple(
            _step(step, _Where(source, index, position))
            for position, step in enumerate(raw_steps)
        )
        for position, step in enumerate(steps):
            if (
                isinstance(step, WaveCheck)
                and step.kind is not CheckKind.WAVE_NULL
                and not profile.has_output(step.channel)
            ):
                raise _Where(source, index, position).fail(
                    f"{step.channel.name} is beyond the profile's {profile.cylinders} cylinders"
                )
        scenarios.append(Scenario(name=name, profile=profile, steps=steps))
    return scenarios


def load_scenarios(
    path: str | Path,
    *,
    select: Optional[Callable[[Scenario], bool]] = None,
) -> List[Scenario]:
    """Read scenarios from the TOML file at ``path``."""

    source = Path(path).expanduser()
    try:
        with source.open("rb") as handle:
            payload = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ScenarioFormatError(
            f"{source}: invalid TOML: {exc}", context={"source": str(source)}
        ) from exc
    scenarios = parse_scenarios(payload, source=str(source))
    if select is not None:
        scenarios = [scenario for scenario in scenarios if select(scenario)]
    return scenarios
