"""Package version lookup."""

from __future__ import annotations

from importlib import metadata
from pathlib import Path

from packaging.version import InvalidVersion, Version

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - Python < 3.11 fallback
    import tomli as tomllib  # type: ignore

_DISTRIBUTION = "efi-autotest"


def _version_from_sources() -> str:
    """Return the version declared in the checkout's ``pyproject.toml``.

    Used in development trees where the distribution metadata has not been
    generated yet.
    """

    pyproject = Path(__file__).resolve().parents[2] / "pyproject.toml"
    if pyproject.is_file():
        with pyproject.open("rb") as handle:
            payload = tomllib.load(handle)
        version = payload.get("project", {}).get("version")
        if isinstance(version, str):
            return version
    raise RuntimeError(
        f"Unable to determine the '{_DISTRIBUTION}' version from package metadata "
        "or repository sources."
    )


def _load_version() -> str:
    try:
        raw_version = metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        raw_version = _version_from_sources()

    try:
        parsed = Version(raw_version)
    except InvalidVersion as exc:
        raise RuntimeError(
            f"Invalid version string for '{_DISTRIBUTION}': {raw_version!r}."
        ) from exc

    if len(parsed.release) != 3:
        raise RuntimeError(
            f"The '{_DISTRIBUTION}' version must follow the MAJOR.MINOR.PATCH format. "
            f"Found: {raw_version!r}."
        )
    return raw_version


__version__ = _load_version()

__all__ = ["__version__"]
