from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Callable

import pytest

from efi_autotest.cli import run_cli
from efi_autotest.cli import workflows
from efi_autotest.cli.errors import CliError, build_error_payload, log_cli_error
from efi_autotest.cli.parser import build_parser
from efi_autotest.configuration import CONFIG_ENV_VAR

from tests.helpers import FakeSimulator, build_report, pulse_triples, repeating_reports

X = 102.0
REPORT = build_report(pulse_triples("c1", [X, X + 180, X + 360, X + 540], 0.1))

SCENARIOS = f"""
[[scenario]]
name = "mazda cranking"

[scenario.profile]
name = "Mazda 626"
engine_type = 28

[[scenario.steps]]
action = "capture"

[[scenario.steps]]
action = "assert_wave"
channel = "c1"
width = 0.1
base = {X}
offsets = [0, 180, 360, 540]

[[scenario]]
name = "mazda misfire"

[scenario.profile]
name = "Mazda 626"
engine_type = 28

[[scenario.steps]]
action = "capture"

[[scenario.steps]]
action = "assert_wave"
channel = "c1"
width = 0.1
positions = [{X}]

[[scenario]]
name = "fiesta"

[scenario.profile]
engine_type = 3
"""


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_link(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
    state: dict[str, Any] = {}

    class _FakeLink(FakeSimulator):
        def __init__(self, *, host: str, port: int, timeout: float) -> None:
            super().__init__()
            self.report_source = repeating_reports([REPORT])
            state.update(host=host, port=port, timeout=timeout, link=self)

        def __enter__(self) -> "_FakeLink":
            return self

        def __exit__(self, *_exc: object) -> None:
            state["closed"] = True

    monkeypatch.setattr(workflows, "SimulatorLink", _FakeLink)
    return state


def _scenarios(write_toml: Callable[[str, str], Path]) -> Path:
    return write_toml("scenarios.toml", SCENARIOS)


def test_parser_registers_subcommands() -> None:
    parser = build_parser({})

    namespace = parser.parse_args(["run", "s.toml", "--only", "a", "--only", "b", "--port", "29005"])
    assert namespace.handler is workflows.handle_run
    assert namespace.only == ["a", "b"]
    assert namespace.port == 29005
    assert parser.parse_args(["inspect", "r.txt"]).handler is workflows.handle_inspect
    assert parser.parse_args(["list", "s.toml"]).handler is workflows.handle_list


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser({}).parse_args([])


def test_list_prints_scenarios(
    write_toml: Callable[[str, str], Path], capsys: pytest.CaptureFixture[str]
) -> None:
    result = run_cli(["--log-output", "stderr", "list", str(_scenarios(write_toml))])

    lines = result.splitlines()
    assert lines[0] == "mazda cranking\tMazda 626\t2 steps, 1 checks"
    assert lines[2].startswith("fiesta\t3\t0 steps")
    assert capsys.readouterr().out.strip() == result


def test_inspect_prints_channel_summary(tmp_path: Path) -> None:
    report = tmp_path / "chart.txt"
    report.write_text(REPORT + "\n", encoding="utf8")

    payload = json.loads(run_cli(["inspect", str(report), "--cycle-length", "360"]))

    assert payload["cycle_length"] == 360.0
    (spark,) = payload["channels"]
    assert spark["channel"] == "c1"
    assert spark["rising"] == [X, X + 180, X + 360, X + 540]
    assert spark["duty_ratios"] == [0.2] * 4


def test_inspect_missing_report_exits_not_found(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["inspect", str(tmp_path / "absent.txt")])

    assert excinfo.value.code == 4


def test_inspect_malformed_report_exits_io(tmp_path: Path) -> None:
    report = tmp_path / "chart.txt"
    report.write_text("wave_chart,c1!u!,\n", encoding="utf8")

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["inspect", str(report)])

    assert excinfo.value.code == 3


def test_run_passing_scenario(
    write_toml: Callable[[str, str], Path], fake_link: dict[str, Any]
) -> None:
    result = run_cli(
        ["run", str(_scenarios(write_toml)), "--only", "mazda cranking", "--host", "sim", "--port", "29005"]
    )

    assert result.splitlines()[0].startswith("PASS mazda cranking (1 checks")
    assert result.splitlines()[-1] == "1 passed, 0 failed"
    assert fake_link["host"] == "sim"
    assert fake_link["port"] == 29005
    assert fake_link["closed"] is True
    assert fake_link["link"].sent[:2] == ["set_engine_type 28", "enable self_stimulation"]


def test_run_failure_exits_with_mismatch_status(
    write_toml: Callable[[str, str], Path],
    fake_link: dict[str, Any],
    capsys: pytest.CaptureFixture[str],
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["run", str(_scenarios(write_toml))])

    assert excinfo.value.code == 5
    out = capsys.readouterr().out
    assert "PASS mazda cranking" in out
    assert "FAIL mazda misfire (step 2)" in out
    assert "1 passed, 1 failed, 1 not run" in out


def test_run_unknown_scenario_name(write_toml: Callable[[str, str], Path], fake_link: dict[str, Any]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["run", str(_scenarios(write_toml)), "--only", "nope"])

    assert excinfo.value.code == 4
    assert "link" not in fake_link


def test_run_invalid_scenario_file_exits_usage(write_toml: Callable[[str, str], Path]) -> None:
    path = write_toml("bad.toml", "[[scenario]]\nname = 'x'\n")

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["run", str(path)])

    assert excinfo.value.code == 2


def test_run_uses_configured_simulator(
    write_toml: Callable[[str, str], Path], fake_link: dict[str, Any]
) -> None:
    config = write_toml("bench.toml", "[simulator]\nhost = 'bench'\nport = 29100\ntimeout = 0.5\n")

    run_cli(["--config", str(config), "run", str(_scenarios(write_toml)), "--only", "mazda cranking"])

    assert (fake_link["host"], fake_link["port"], fake_link["timeout"]) == ("bench", 29100, 0.5)


def test_invalid_configuration_exits_usage(
    write_toml: Callable[[str, str], Path], fake_link: dict[str, Any]
) -> None:
    config = write_toml("bench.toml", "[simulator]\nport = 'high'\n")

    with pytest.raises(SystemExit) as excinfo:
        run_cli(["--config", str(config), "run", str(_scenarios(write_toml))])

    assert excinfo.value.code == 2


def test_missing_config_file_exits_not_found(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["--config", str(tmp_path / "absent.toml"), "list", "x.toml"])

    assert excinfo.value.code == 4


def test_error_payload_status_codes() -> None:
    assert build_error_payload("x", category="mismatch").status_code == 5
    assert build_error_payload("x", category="command").status_code == 6
    assert build_error_payload("x", category="unheard-of").status_code == 1
    assert CliError("x", category="io", context={"path": Path("a")}).context == {"path": "a"}


def test_log_cli_error_emits_structured_record(caplog: pytest.LogCaptureFixture) -> None:
    payload = build_error_payload("boom", category="usage", context={"key": "value"})

    with caplog.at_level(logging.ERROR, logger="efi_autotest.cli"):
        log_cli_error(payload)

    (record,) = caplog.records
    assert record.event == "cli.error"
    assert record.status_code == 2
    assert record.context == {"key": "value"}
    assert payload.as_dict()["category"] == "usage"


def test_handlers_accept_namespace_and_config(write_toml: Callable[[str, str], Path]) -> None:
    namespace = argparse.Namespace(scenarios=_scenarios(write_toml))

    assert "mazda misfire" in workflows.handle_list(namespace, config={})
