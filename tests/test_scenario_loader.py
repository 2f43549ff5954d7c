from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from efi_autotest.channels import Channel
from efi_autotest.errors import ScenarioFormatError
from efi_autotest.scenarios import (
    CaptureStep,
    CheckKind,
    CommandStep,
    RpmStep,
    WaveCheck,
    load_scenarios,
    parse_scenarios,
)

ROOT = Path(__file__).resolve().parents[1]

MAZDA = """
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

[[scenario.steps]]
action = "assert_wave_null"
channel = "c2"

[[scenario.steps]]
action = "complex_command"
text = "set_cranking_rpm 500"

[[scenario.steps]]
action = "command"
text = "set_whole_fuel_map 3"
sensor = "fuel"
expected = 3
tolerance = 0.01

[[scenario.steps]]
action = "assert_wave_fall"
channel = "i1"
width = 0.0063
positions = [238.0, 418.0]
width_tolerance = 0.25
position_tolerance = [0.5, 2.0]
message = "injector end"
"""


def test_load_full_scenario(write_toml: Callable[[str, str], Path]) -> None:
    (scenario,) = load_scenarios(write_toml("mazda.toml", MAZDA))

    assert scenario.name == "mazda 626 default cranking"
    assert scenario.profile.engine_type == 28
    assert scenario.profile.cylinders == 4
    assert scenario.profile.cycle_length is None
    rpm, capture, wave, null, complex_step, command, fall = scenario.steps
    assert rpm == RpmStep(200)
    assert capture == CaptureStep()
    assert wave == WaveCheck(
        kind=CheckKind.WAVE,
        channel=Channel.SPARK_1,
        width=0.1944,
        positions=(102.0, 282.0, 462.0, 642.0),
    )
    assert null == WaveCheck(kind=CheckKind.WAVE_NULL, channel=Channel.SPARK_2)
    assert complex_step == CommandStep("set_cranking_rpm 500", complex=True)
    assert command == CommandStep(
        "set_whole_fuel_map 3", sensor="fuel", expected=3.0, tolerance=0.01
    )
    assert fall.kind is CheckKind.WAVE_FALL
    assert fall.position_tolerance == (0.5, 2.0)
    assert fall.message == "injector end"
    assert len(scenario.checks) == 3


def test_parse_scenarios_from_mapping() -> None:
    payload = {
        "scenario": [
            {
                "name": "v6",
                "profile": {"engine_type": 7, "cylinders": 6, "cycle_length": 720},
                "steps": [{"action": "capture", "skip": 2, "label": "warm"}],
            }
        ]
    }

    (scenario,) = parse_scenarios(payload)

    assert scenario.profile.cylinders == 6
    assert scenario.profile.cycle_length == 720.0
    assert scenario.steps == (CaptureStep(label="warm", skip=2),)


def test_empty_document_has_no_scenarios() -> None:
    assert parse_scenarios({}) == []


def test_select_filters_scenarios(write_toml: Callable[[str, str], Path]) -> None:
    path = write_toml("mazda.toml", MAZDA)

    assert load_scenarios(path, select=lambda scenario: scenario.profile.engine_type == 1) == []


def _scenario(step: dict[str, object]) -> dict[str, object]:
    return {"scenario": [{"name": "s", "profile": {"engine_type": 1}, "steps": [step]}]}


@pytest.mark.parametrize(
    "step, pattern",
    [
        ({"action": "warp"}, "unknown action"),
        ({"rpm": 900}, "missing required key 'action'"),
        ({"action": "rpm", "rpm": -1}, "must not be negative"),
        ({"action": "rpm", "rpm": 9.5}, "must be an integer"),
        ({"action": "command", "text": ""}, "non-empty string"),
        ({"action": "command", "text": "rpm 900", "sensor": "rpm"}, "given together"),
        ({"action": "assert_wave", "channel": "c99", "width": 0.1, "positions": [0]}, "unknown channel"),
        ({"action": "assert_wave", "channel": "c1", "positions": [0]}, "'width'"),
        ({"action": "assert_wave", "channel": "c1", "width": 0.1}, "at least one position"),
        (
            {"action": "assert_wave", "channel": "c1", "width": 0.1, "positions": [0], "base": 1},
            "not both",
        ),
        (
            {
                "action": "assert_wave",
                "channel": "c1",
                "width": 0.1,
                "positions": [0, 180],
                "position_tolerance": [1.0],
            },
            "1 position tolerances for 2 positions",
        ),
        ({"action": "assert_wave", "channel": "c1", "width": "wide", "positions": [0]}, "finite number"),
    ],
)
def test_invalid_steps(step: dict[str, object], pattern: str) -> None:
    with pytest.raises(ScenarioFormatError, match=pattern) as excinfo:
        parse_scenarios(_scenario(step), source="inline.toml")

    assert excinfo.value.context["step"] == 0
    assert excinfo.value.category == "usage"


@pytest.mark.parametrize(
    "payload, pattern",
    [
        ({"scenario": {"name": "x"}}, "array of tables"),
        ({"scenario": [{"profile": {"engine_type": 1}}]}, "'name'"),
        ({"scenario": [{"name": "x"}]}, "'profile'"),
        ({"scenario": [{"name": "x", "profile": {"engine_type": 1, "cylinders": 0}}]}, "positive"),
        ({"scenario": [{"name": "x", "profile": {"engine_type": 1, "cycle_length": 0}}]}, "positive"),
        (
            {
                "scenario": [
                    {"name": "x", "profile": {"engine_type": 1}},
                    {"name": "x", "profile": {"engine_type": 2}},
                ]
            },
            "duplicate scenario name",
        ),
    ],
)
def test_invalid_scenarios(payload: dict[str, object], pattern: str) -> None:
    with pytest.raises(ScenarioFormatError, match=pattern):
        parse_scenarios(payload)


def test_checks_beyond_the_cylinder_count_are_rejected() -> None:
    payload = _scenario({"action": "assert_wave", "channel": "SPARK_5", "width": 0.1, "positions": [10]})

    with pytest.raises(ScenarioFormatError, match="beyond the profile's 4 cylinders") as excinfo:
        parse_scenarios(payload)

    assert excinfo.value.context["step"] == 0


def test_null_checks_and_shared_channels_ignore_the_cylinder_count() -> None:
    steps = [
        {"action": "assert_wave_null", "channel": "SPARK_6"},
        {"action": "assert_wave", "channel": "TRIGGER_2", "width": 0.1, "positions": [10]},
    ]
    payload = {"scenario": [{"name": "s", "profile": {"engine_type": 1}, "steps": steps}]}

    (scenario,) = parse_scenarios(payload)

    assert len(scenario.checks) == 2


def test_invalid_toml_is_a_format_error(write_toml: Callable[[str, str], Path]) -> None:
    path = write_toml("broken.toml", "[[scenario]\nname = ")

    with pytest.raises(ScenarioFormatError, match="invalid TOML"):
        load_scenarios(path)


def test_bundled_example_scenarios_load() -> None:
    scenarios = load_scenarios(ROOT / "examples" / "scenarios.toml")

    names = [scenario.name for scenario in scenarios]
    assert len(names) == len(set(names)) >= 2
    assert all(scenario.checks for scenario in scenarios)
