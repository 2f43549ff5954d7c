"""Error helpers for the efi-autotest command line."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from ..errors import AutotestError, normalise_context

__all__ = [
    "CliError",
    "ErrorPayload",
    "build_error_payload",
    "from_autotest_error",
    "log_cli_error",
]


_CATEGORY_STATUS_CODES: Mapping[str, int] = {
    "runtime": 1,
    "usage": 2,
    "io": 3,
    "not_found": 4,
    "mismatch": 5,
    "command": 6,
}

_DEFAULT_CATEGORY = "runtime"
_DEFAULT_LOGGER_NAME = "efi_autotest.cli"


@dataclass(frozen=True, slots=True)
class ErrorPayload:
    """Structured representation of an error emitted by the CLI."""

    status_code: int
    category: str
    message: str
    context: Mapping[str, Any]

    def as_dict(self) -> Mapping[str, Any]:
        return {
            "status_code": self.status_code,
            "category": self.category,
            "message": self.message,
            "context": dict(self.context),
        }


def build_error_payload(
    message: str,
    *,
    category: str = _DEFAULT_CATEGORY,
    status_code: Optional[int] = None,
    context: Optional[Mapping[str, Any]] = None,
) -> ErrorPayload:
    """Create a :class:`ErrorPayload` describing a CLI failure."""

    resolved_category = category or _DEFAULT_CATEGORY
    resolved_status = (
        status_code
        if status_code is not None
        else _CATEGORY_STATUS_CODES.get(resolved_category, _CATEGORY_STATUS_CODES[_DEFAULT_CATEGORY])
    )
    return ErrorPayload(
        status_code=resolved_status,
        category=resolved_category,
        message=message,
        context=normalise_context(context),
    )


def log_cli_error(
    payload: ErrorPayload,
    *,
    logger: Optional[logging.Logger] = None,
    exc_info: Optional[BaseException] = None,
) -> None:
    """Emit ``payload`` using ``logger.error`` with structured context."""

    target = logger or logging.getLogger(_DEFAULT_LOGGER_NAME)
    target.error(
        payload.message,
        extra={
            "event": "cli.error",
            "category": payload.category,
            "status_code": payload.status_code,
            "context": dict(payload.context),
        },
        exc_info=exc_info,
    )


class CliError(RuntimeError):
    """Consistent error type raised by CLI helpers."""

    __slots__ = ("category", "status_code", "context", "_payload", "logged")

    def __init__(
        self,
        message: str,
        *,
        category: str = _DEFAULT_CATEGORY,
        status_code: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
        payload: Optional[ErrorPayload] = None,
        logged: bool = False,
    ) -> None:
        super().__init__(message)
        self.category = category or _DEFAULT_CATEGORY
        resolved_payload = payload or build_error_payload(
            message,
            category=self.category,
            status_code=status_code,
            context=context,
        )
        self.status_code = resolved_payload.status_code
        self.context = dict(resolved_payload.context)
        self._payload = resolved_payload
        self.logged = logged

    @property
    def payload(self) -> ErrorPayload:
        return self._payload


def from_autotest_error(exc: AutotestError, *, message: Optional[str] = None) -> CliError:
    """Wrap a library failure so its category selects the exit status."""

    return CliError(message or str(exc), category=exc.category, context=exc.context)
