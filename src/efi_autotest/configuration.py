"""Helpers to load project-level configuration files.

Settings come from, in order of precedence, an explicit TOML file, the file
named by ``EFI_AUTOTEST_CONFIG`` and the ``[tool.efi_autotest]`` table of the
``pyproject.toml`` in the working directory.  A standalone file holds the
same tables at its top level::

    [simulator]
    host = "127.0.0.1"
    port = 29001

    [commands]
    retry_count = 20
    timeout_ms = 100
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping as ABCMapping
from dataclasses import dataclass, field
import math
import os
from pathlib import Path
from typing import Any, Mapping, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

from .simulator.capture import DEFAULT_CAPTURE_TIMEOUT
from .simulator.commands import (
    COMPLEX_RETRY_COUNT,
    COMPLEX_TIMEOUT_MS,
    DEFAULT_RETRY_COUNT,
    DEFAULT_TIMEOUT_MS,
)
from .simulator.link import DEFAULT_HOST, DEFAULT_PORT
from .waves.chart import FOUR_STROKE_CYCLE
from .waves.comparator import POSITION_TOLERANCE
from .waves.tolerance import RATIO

__all__ = [
    "CONFIG_ENV_VAR",
    "CaptureSettings",
    "CommandSettings",
    "ComparatorSettings",
    "Settings",
    "SimulatorSettings",
    "load_config",
    "load_project_config",
]

CONFIG_ENV_VAR = "EFI_AUTOTEST_CONFIG"
_PROJECT_FILENAME = "pyproject.toml"
_TOOL_SECTION = "efi_autotest"


def _as_dict(payload: ABCMapping[str, Any]) -> dict[str, Any]:
    """Recursively coerce TOML mappings into regular dictionaries."""

    result: dict[str, Any] = {}
    for key, value in payload.items():
        key_str = str(key)
        if isinstance(value, ABCMapping):
            result[key_str] = _as_dict(value)
        elif isinstance(value, list):
            result[key_str] = [
                _as_dict(item) if isinstance(item, ABCMapping) else item for item in value
            ]
        else:
            result[key_str] = value
    return result


def _iter_unique_paths(paths: Iterable[Path]) -> list[Path]:
    seen: dict[Path, None] = {}
    ordered: list[Path] = []
    for path in paths:
        resolved = path.expanduser().resolve(strict=False)
        if resolved in seen:
            continue
        seen[resolved] = None
        ordered.append(resolved)
    return ordered


def _load_toml_mapping(path: Path) -> dict[str, Any] | None:
    if not path.is_file():
        return None
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if isinstance(data, ABCMapping):
        return _as_dict(data)
    return None


def load_project_config(path: Path) -> tuple[dict[str, Any], Path] | None:
    """Load the ``[tool.efi_autotest]`` section from ``pyproject.toml``."""

    candidate = path.expanduser()
    if candidate.name != _PROJECT_FILENAME:
        if candidate.suffix:
            return None
        candidate = candidate / _PROJECT_FILENAME
    candidate = candidate.resolve(strict=False)

    payload = _load_toml_mapping(candidate)
    if not payload:
        return None
    tool_section = payload.get("tool")
    if not isinstance(tool_section, ABCMapping):
        return None
    section = tool_section.get(_TOOL_SECTION)
    if not isinstance(section, ABCMapping):
        return None
    return _as_dict(section), candidate


def _load_explicit(path: Path) -> tuple[dict[str, Any], Path] | None:
    resolved = path.expanduser().resolve(strict=False)
    if resolved.name == _PROJECT_FILENAME or resolved.is_dir():
        return load_project_config(resolved)
    payload = _load_toml_mapping(resolved)
    if payload is None:
        raise FileNotFoundError(f"Configuration file not found: {resolved}")
    return payload, resolved


def load_config(path: Optional[Path] = None) -> dict[str, Any]:
    """Return the raw configuration mapping plus ``_config_path``."""

    env_config = os.environ.get(CONFIG_ENV_VAR)
    explicit = [candidate for candidate in (path, Path(env_config) if env_config else None) if candidate]
    for base in _iter_unique_paths(explicit):
        loaded = _load_explicit(base)
        if loaded:
            payload, source = loaded
            payload["_config_path"] = str(source)
            return payload

    loaded = load_project_config(Path.cwd())
    if loaded:
        payload, source = loaded
        payload["_config_path"] = str(source)
        return payload
    return {"_config_path": None}


# ---------------------------------------------------------------------------
# Typed settings
# ---------------------------------------------------------------------------
def _section(config: Mapping[str, Any] | None, name: str) -> Mapping[str, Any]:
    if not config:
        return {}
    value = config.get(name, {})
    if not isinstance(value, ABCMapping):
        raise ValueError(f"[{name}] must be a table, got {type(value).__name__}")
    return value


def _number(section: Mapping[str, Any], table: str, key: str, fallback: float, *, minimum: float = 0.0) -> float:
    value = section.get(key, fallback)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{table}.{key} must be a number, got {value!r}")
    number = float(value)
    if not math.isfinite(number) or number < minimum:
        raise ValueError(f"{table}.{key} must be a finite number >= {minimum:g}, got {value!r}")
    return number


def _integer(section: Mapping[str, Any], table: str, key: str, fallback: int, *, minimum: int = 0) -> int:
    value = section.get(key, fallback)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{table}.{key} must be an integer, got {value!r}")
    if value < minimum:
        raise ValueError(f"{table}.{key} must be >= {minimum}, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class SimulatorSettings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = 2.0

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "SimulatorSettings":
        section = _section(config, "simulator")
        host = section.get("host", DEFAULT_HOST)
        if not isinstance(host, str) or not host:
            raise ValueError(f"simulator.host must be a non-empty string, got {host!r}")
        return cls(
            host=host,
            port=_integer(section, "simulator", "port", DEFAULT_PORT, minimum=1),
            timeout=_number(section, "simulator", "timeout", 2.0),
        )


@dataclass(frozen=True, slots=True)
class CommandSettings:
    retry_count: int = DEFAULT_RETRY_COUNT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    complex_retry_count: int = COMPLEX_RETRY_COUNT
    complex_timeout_ms: int = COMPLEX_TIMEOUT_MS

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "CommandSettings":
        section = _section(config, "commands")
        return cls(
            retry_count=_integer(section, "commands", "retry_count", DEFAULT_RETRY_COUNT, minimum=1),
            timeout_ms=_integer(section, "commands", "timeout_ms", DEFAULT_TIMEOUT_MS),
            complex_retry_count=_integer(
                section, "commands", "complex_retry_count", COMPLEX_RETRY_COUNT, minimum=1
            ),
            complex_timeout_ms=_integer(
                section, "commands", "complex_timeout_ms", COMPLEX_TIMEOUT_MS
            ),
        )


@dataclass(frozen=True, slots=True)
class ComparatorSettings:
    width_tolerance: float = RATIO
    position_tolerance: float = POSITION_TOLERANCE
    cycle_length: float = FOUR_STROKE_CYCLE

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "ComparatorSettings":
        section = _section(config, "comparator")
        cycle_length = _number(section, "comparator", "cycle_length", FOUR_STROKE_CYCLE)
        if cycle_length == 0.0:
            raise ValueError("comparator.cycle_length must be positive")
        return cls(
            width_tolerance=_number(section, "comparator", "width_tolerance", RATIO),
            position_tolerance=_number(
                section, "comparator", "position_tolerance", POSITION_TOLERANCE
            ),
            cycle_length=cycle_length,
        )


@dataclass(frozen=True, slots=True)
class CaptureSettings:
    timeout: float = DEFAULT_CAPTURE_TIMEOUT
    skip: int = 1

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None) -> "CaptureSettings":
        section = _section(config, "capture")
        return cls(
            timeout=_number(section, "capture", "timeout", DEFAULT_CAPTURE_TIMEOUT),
            skip=_integer(section, "capture", "skip", 1),
        )


@dataclass(frozen=True, slots=True)
class Settings:
    simulator: SimulatorSettings = field(default_factory=SimulatorSettings)
    commands: CommandSettings = field(default_factory=CommandSettings)
    comparator: ComparatorSettings = field(default_factory=ComparatorSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)

    @classmethod
    def from_config(cls, config: Mapping[str, Any] | None = None) -> "Settings":
        return cls(
            simulator=SimulatorSettings.from_config(config),
            commands=CommandSettings.from_config(config),
            comparator=ComparatorSettings.from_config(config),
            capture=CaptureSettings.from_config(config),
        )
