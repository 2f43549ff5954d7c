"""Parser for the simulator's engine chart reports.

A report is the text the simulator emits once per chart capture::

    wave_chart,c1!u!100.0!c1!d!239.97!i1!u!176.86!i1!d!181.37!,

Each ``!``-separated triple is ``<channel>!<u|d>!<crank degrees>``.  The
``wave_chart,`` prefix and the trailing comma are optional so that saved
payloads can be fed to :func:`parse_report` directly.
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..channels import Channel, lookup
from ..errors import MalformedReport, UnknownChannel
from .chart import EMPTY_WINDOW, Edge, EdgeKind, EngineChart

__all__ = [
    "REPORT_PREFIX",
    "ReportParser",
    "is_chart_report",
    "parse_report",
    "read_report",
]

REPORT_PREFIX = "wave_chart"
FIELD_DELIMITER = "!"

_EDGE_MARKERS = {kind.value: kind for kind in EdgeKind}


def is_chart_report(line: str) -> bool:
    return line.startswith(REPORT_PREFIX + ",")


def _strip_envelope(text: str) -> str:
    payload = text.strip()
    if payload.startswith(REPORT_PREFIX):
        payload = payload[len(REPORT_PREFIX):].lstrip(",")
    return payload.rstrip(",").strip()


def _tokenize(payload: str) -> List[str]:
    if not payload:
        return []
    tokens = [token.strip() for token in payload.split(FIELD_DELIMITER)]
    if tokens and tokens[-1] == "":
        tokens.pop()
    return tokens


class ReportParser:
    """Turn chart report text into an :class:`EngineChart`.

    Parameters
    ----------
    resolve:
        Maps a channel token to a :class:`Channel`; raises
        :class:`UnknownChannel` for anything outside the registry.
    """

    def __init__(self, resolve: Callable[[str], Channel] = lookup) -> None:
        self._resolve = resolve

    def parse(self, text: str, *, window: Optional[Tuple[float, float]] = None) -> EngineChart:
        tokens = _tokenize(_strip_envelope(text))
        if len(tokens) % 3:
            raise MalformedReport(
                f"Report holds {len(tokens)} tokens, not a whole number of "
                "channel/edge/position triples",
                context={"tokens": len(tokens)},
            )

        edges: Dict[Channel, List[Edge]] = {}
        lowest = math.inf
        highest = -math.inf
        for offset in range(0, len(tokens), 3):
            name, marker, raw_position = tokens[offset:offset + 3]
            triple = offset // 3
            channel = self._channel(name, triple)
            kind = _EDGE_MARKERS.get(marker)
            if kind is None:
                raise MalformedReport(
                    f"Unknown edge marker {marker!r} in triple #{triple}",
                    context={"triple": triple, "marker": marker},
                )
            position = self._position(raw_position, triple)

            sequence = edges.setdefault(channel, [])
            if sequence:
                previous = sequence[-1]
                if previous.kind is kind:
                    raise MalformedReport(
                        f"Channel {channel.wire_name} repeats a {kind.name.lower()} edge "
                        f"at triple #{triple}",
                        context={"triple": triple, "channel": channel},
                    )
                if position < previous.position:
                    raise MalformedReport(
                        f"Channel {channel.wire_name} goes back in time at triple #{triple} "
                        f"({position} < {previous.position})",
                        context={"triple": triple, "channel": channel},
                    )
            sequence.append(Edge(channel=channel, kind=kind, position=position))
            lowest = min(lowest, position)
            highest = max(highest, position)

        if window is None:
            resolved = (lowest, highest) if edges else EMPTY_WINDOW
        else:
            resolved = (float(window[0]), float(window[1]))
            if resolved[0] > resolved[1]:
                raise ValueError(f"Invalid capture window {window!r}")
            if edges and (lowest < resolved[0] or highest > resolved[1]):
                raise MalformedReport(
                    f"Edges span [{lowest}, {highest}] outside the capture window {resolved}",
                    context={"window": list(resolved)},
                )
        return EngineChart(window=resolved, edges_by_channel=edges)

    def _channel(self, name: str, triple: int) -> Channel:
        if not name:
            raise MalformedReport(
                f"Empty channel name in triple #{triple}", context={"triple": triple}
            )
        try:
            return self._resolve(name)
        except UnknownChannel as exc:
            raise UnknownChannel(name, context={"triple": triple}) from exc

    @staticmethod
    def _position(raw: str, triple: int) -> float:
        try:
            position = float(raw)
        except ValueError as exc:
            raise MalformedReport(
                f"Position {raw!r} in triple #{triple} is not a number",
                context={"triple": triple, "position": raw},
            ) from exc
        if not math.isfinite(position):
            raise MalformedReport(
                f"Position {raw!r} in triple #{triple} is not finite",
                context={"triple": triple, "position": raw},
            )
        return position


_DEFAULT_PARSER = ReportParser()


def parse_report(text: str, *, window: Optional[Tuple[float, float]] = None) -> EngineChart:
    """Parse one report with the default channel registry."""

    return _DEFAULT_PARSER.parse(text, window=window)


def read_report(source: str | Path | Iterable[str]) -> EngineChart:
    """Parse the first chart report found in a file or iterable of lines."""

    if isinstance(source, (str, Path)):
        with open(source, "r", encoding="utf8") as handle:
            lines = handle.read().splitlines()
    else:
        lines = list(source)
    for line in lines:
        if is_chart_report(line.strip()):
            return parse_report(line)
    # A bare payload without the ``wave_chart`` envelope.
    return parse_report("".join(line.strip() for line in lines))
