"""Readiness probe for the simulator socket."""

from __future__ import annotations

import select
import socket
import time
from typing import Optional

__all__ = ["wait_for_read_ready"]


def wait_for_read_ready(
    sock: socket.socket,
    *,
    timeout: float,
    deadline: Optional[float] = None,
) -> bool:
    """Return ``True`` if ``sock`` has data to read before ``deadline``.

    Parameters
    ----------
    sock:
        The connected simulator socket.
    timeout:
        Maximum wait duration for this probe; ``0`` checks without waiting.
    deadline:
        Optional monotonic timestamp after which waiting should stop.
    """

    wait_time = max(0.0, timeout)
    if deadline is not None:
        remaining = deadline - time.monotonic()
        if remaining <= 0.0:
            wait_time = 0.0
        else:
            wait_time = min(wait_time, remaining)

    try:
        readable, _, _ = select.select([sock], [], [], wait_time)
    except (OSError, ValueError):
        return False
    return bool(readable)
