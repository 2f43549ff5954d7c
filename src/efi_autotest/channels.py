"""Registry of the simulator's engine chart channels."""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from .errors import UnknownChannel

__all__ = ["Channel", "MAX_CYLINDERS", "injector", "lookup", "spark"]

MAX_CYLINDERS = 12


class Channel(str, Enum):
    """Named output line reported in engine chart streams.

    The value is the wire name used by the simulator.
    """

    SPARK_1 = "c1"
    SPARK_2 = "c2"
    SPARK_3 = "c3"
    SPARK_4 = "c4"
    SPARK_5 = "c5"
    SPARK_6 = "c6"
    SPARK_7 = "c7"
    SPARK_8 = "c8"
    SPARK_9 = "c9"
    SPARK_10 = "c10"
    SPARK_11 = "c11"
    SPARK_12 = "c12"

    INJECTOR_1 = "i1"
    INJECTOR_2 = "i2"
    INJECTOR_3 = "i3"
    INJECTOR_4 = "i4"
    INJECTOR_5 = "i5"
    INJECTOR_6 = "i6"
    INJECTOR_7 = "i7"
    INJECTOR_8 = "i8"
    INJECTOR_9 = "i9"
    INJECTOR_10 = "i10"
    INJECTOR_11 = "i11"
    INJECTOR_12 = "i12"

    TRIGGER_1 = "t1"
    TRIGGER_2 = "t2"

    MAP_AVERAGING = "map"

    @property
    def wire_name(self) -> str:
        return self.value

    @property
    def cylinder(self) -> Optional[int]:
        """Cylinder number of a spark or injector output, ``None`` otherwise."""

        if self.name.startswith(("SPARK_", "INJECTOR_")):
            return int(self.value[1:])
        return None

    def __str__(self) -> str:
        return self.value


_BY_WIRE_NAME: Dict[str, Channel] = {channel.value: channel for channel in Channel}
_BY_MEMBER_NAME: Dict[str, Channel] = {channel.name: channel for channel in Channel}


def lookup(token: str) -> Channel:
    """Resolve ``token`` by wire name (``c1``) or member name (``SPARK_1``)."""

    if isinstance(token, Channel):
        return token
    key = str(token).strip()
    channel = _BY_WIRE_NAME.get(key)
    if channel is None:
        channel = _BY_MEMBER_NAME.get(key.upper())
    if channel is None:
        raise UnknownChannel(key)
    return channel


def _numbered(prefix: str, cylinder: int) -> Channel:
    if not 1 <= cylinder <= MAX_CYLINDERS:
        raise ValueError(f"cylinder must be within 1..{MAX_CYLINDERS}, got {cylinder}")
    return _BY_WIRE_NAME[f"{prefix}{cylinder}"]


def spark(cylinder: int) -> Channel:
    """Spark output channel for ``cylinder`` (1-based)."""

    return _numbered("c", cylinder)


def injector(cylinder: int) -> Channel:
    """Injector output channel for ``cylinder`` (1-based)."""

    return _numbered("i", cylinder)
