"""Wait for a fresh engine chart from the simulator."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional, Protocol

from ..errors import CaptureTimeout
from ..waves.chart import EngineChart
from ..waves.report import ReportParser, parse_report

__all__ = ["DEFAULT_CAPTURE_TIMEOUT", "ChartSource", "capture_chart"]

logger = logging.getLogger(__name__)

DEFAULT_CAPTURE_TIMEOUT = 30.0


class ChartSource(Protocol):
    def pop_chart_report(self, timeout: float = 0.0) -> Optional[str]: ...

    def discard_chart_reports(self) -> int: ...


def capture_chart(
    source: ChartSource,
    *,
    timeout: float = DEFAULT_CAPTURE_TIMEOUT,
    skip: int = 1,
    parser: Optional[ReportParser] = None,
    clock: Callable[[], float] = time.monotonic,
) -> EngineChart:
    """Return the next complete chart produced after this call.

    Reports already queued are dropped, then ``skip`` fresh reports are
    discarded because the one in flight may mix the previous and the new
    configuration.
    """

    if skip < 0:
        raise ValueError(f"skip must not be negative, got {skip}")
    dropped = source.discard_chart_reports()
    deadline = clock() + timeout
    remaining_skips = skip
    while True:
        remaining = deadline - clock()
        if remaining <= 0.0:
            raise CaptureTimeout(
                f"No engine chart received within {timeout:g}s",
                context={"timeout": timeout, "skip": skip},
            )
        report = source.pop_chart_report(remaining)
        if report is None:
            continue
        if remaining_skips:
            remaining_skips -= 1
            continue
        chart = parser.parse(report) if parser is not None else parse_report(report)
        logger.info(
            "Engine chart captured.",
            extra={
                "event": "chart.captured",
                "channels": [channel.wire_name for channel in chart.channels],
                "window": list(chart.window),
                "dropped": dropped,
            },
        )
        return chart
