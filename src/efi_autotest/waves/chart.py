"""Immutable engine chart snapshot built from one report."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple

from ..channels import Channel

__all__ = [
    "EMPTY_WINDOW",
    "Edge",
    "EdgeKind",
    "EngineChart",
    "FOUR_STROKE_CYCLE",
    "Pulse",
]

#: Crank degrees in one four-stroke engine cycle.
FOUR_STROKE_CYCLE = 720.0

EMPTY_WINDOW = (0.0, 0.0)


class EdgeKind(str, Enum):
    RISING = "u"
    FALLING = "d"

    @property
    def opposite(self) -> "EdgeKind":
        return EdgeKind.FALLING if self is EdgeKind.RISING else EdgeKind.RISING


@dataclass(frozen=True, slots=True)
class Edge:
    """Transition of ``channel`` at ``position`` crank degrees into the window."""

    channel: Channel
    kind: EdgeKind
    position: float


@dataclass(frozen=True, slots=True)
class Pulse:
    """A rising edge paired with the falling edge that ends it."""

    rise: Edge
    fall: Edge

    @property
    def width(self) -> float:
        return self.fall.position - self.rise.position

    def duty_ratio(self, cycle_length: float = FOUR_STROKE_CYCLE) -> float:
        return self.width / cycle_length


@dataclass(frozen=True)
class EngineChart:
    """Per-channel edge sequences observed within one capture window.

    Channels missing from the chart (or present with no edges) had no
    activity during the capture.
    """

    window: Tuple[float, float] = EMPTY_WINDOW
    edges_by_channel: Mapping[Channel, Tuple[Edge, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        frozen = {channel: tuple(edges) for channel, edges in self.edges_by_channel.items()}
        object.__setattr__(self, "edges_by_channel", MappingProxyType(frozen))
        start, end = self.window
        object.__setattr__(self, "window", (float(start), float(end)))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def get(self, channel: Channel) -> Optional[Tuple[Edge, ...]]:
        return self.edges_by_channel.get(channel)

    def edges(self, channel: Channel) -> Tuple[Edge, ...]:
        return self.edges_by_channel.get(channel, ())

    def rising(self, channel: Channel) -> Tuple[Edge, ...]:
        return tuple(edge for edge in self.edges(channel) if edge.kind is EdgeKind.RISING)

    def falling(self, channel: Channel) -> Tuple[Edge, ...]:
        return tuple(edge for edge in self.edges(channel) if edge.kind is EdgeKind.FALLING)

    def pulses(self, channel: Channel) -> Tuple[Pulse, ...]:
        """Complete pulses; a pulse cut by either window boundary is skipped."""

        edges = self.edges(channel)
        return tuple(
            Pulse(rise=current, fall=following)
            for current, following in zip(edges, edges[1:])
            if current.kind is EdgeKind.RISING
        )

    def is_silent(self, channel: Channel) -> bool:
        return not self.edges(channel)

    @property
    def channels(self) -> Tuple[Channel, ...]:
        """Channels with at least one edge, in first-seen order."""

        return tuple(channel for channel, edges in self.edges_by_channel.items() if edges)

    def __contains__(self, channel: object) -> bool:
        return bool(self.edges_by_channel.get(channel))  # type: ignore[call-overload]

    def __iter__(self) -> Iterator[Channel]:
        return iter(self.channels)

    def __len__(self) -> int:
        return len(self.channels)
