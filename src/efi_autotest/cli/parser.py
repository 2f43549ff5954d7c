"""Argument parsing helpers for the efi-autotest CLI."""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Any, Mapping, Optional

from .workflows import handle_inspect, handle_list, handle_run


def _add_logging_arguments(parser: argparse.ArgumentParser, logging_cfg: Mapping[str, Any]) -> None:
    parser.add_argument(
        "--log-level",
        dest="log_level",
        default=logging_cfg.get("level", "info"),
        help="Logging level (e.g. debug, info, warning).",
    )
    parser.add_argument(
        "--log-output",
        dest="log_output",
        default=logging_cfg.get("output", "stderr"),
        help="Logging destination (stdout, stderr or a file path).",
    )
    parser.add_argument(
        "--log-format",
        dest="log_format",
        choices=("json", "text"),
        default=logging_cfg.get("format", "json"),
        help="Logging formatter (json or text).",
    )


def build_parser(config: Optional[Mapping[str, Any]] = None) -> argparse.ArgumentParser:
    config = dict(config or {})
    logging_cfg_raw = config.get("logging", {})
    logging_cfg = dict(logging_cfg_raw) if isinstance(logging_cfg_raw, Mapping) else {}

    parser = argparse.ArgumentParser(
        prog="efi-autotest",
        description="Drive an engine-control firmware simulator and check its output waves.",
    )
    parser.add_argument(
        "--config",
        dest="config_path",
        type=Path,
        default=None,
        help="Path to the TOML configuration file to load.",
    )
    _add_logging_arguments(parser, logging_cfg)

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser(
        "run",
        help="Run the scenarios of a TOML file against a live simulator.",
    )
    run_parser.add_argument("scenarios", type=Path, help="Scenario file to execute.")
    run_parser.add_argument(
        "--host",
        default=None,
        help="Simulator host (default: simulator.host from the configuration).",
    )
    run_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Simulator console port (default: simulator.port from the configuration).",
    )
    run_parser.add_argument(
        "--only",
        dest="only",
        action="append",
        default=None,
        metavar="NAME",
        help="Run only the named scenario; repeat to select several.",
    )
    run_parser.set_defaults(handler=handle_run)

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Print the edges and duty ratios of a saved chart report as JSON.",
    )
    inspect_parser.add_argument("report", type=Path, help="File holding a chart report.")
    inspect_parser.add_argument(
        "--cycle-length",
        dest="cycle_length",
        type=float,
        default=None,
        help="Cycle length in degrees used for duty ratios (default: comparator.cycle_length).",
    )
    inspect_parser.set_defaults(handler=handle_inspect)

    list_parser = subparsers.add_parser("list", help="List the scenarios of a TOML file.")
    list_parser.add_argument("scenarios", type=Path, help="Scenario file to read.")
    list_parser.set_defaults(handler=handle_list)

    return parser


__all__ = ["build_parser"]
