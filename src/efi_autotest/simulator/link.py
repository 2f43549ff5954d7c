"""Line-oriented TCP client for the firmware simulator's console port.

The simulator accepts newline-terminated ``<verb> <args...>`` commands and
writes three kinds of lines back:

``confirmation_<command>:<length>``
    echo of the last command it applied;
``wave_chart,<payload>,``
    one engine chart report per capture (see :mod:`efi_autotest.waves.report`);
``<name>!<value>!<name>!<value>!...``
    status lines carrying sensor values.

The client never spawns threads: callers pump pending input with
:meth:`SimulatorLink.poll`, which the accessors below also do.
"""

from __future__ import annotations

from collections import deque
import logging
import math
import socket
from types import TracebackType
from typing import Deque, Dict, Optional, Type

from ..errors import LinkError
from ..waves.report import is_chart_report
from ._socket_poll import wait_for_read_ready

__all__ = ["DEFAULT_HOST", "DEFAULT_PORT", "SimulatorLink"]

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 29001


class SimulatorLink:
    """Small TCP client speaking the simulator console protocol."""

    CONFIRMATION_PREFIX = "confirmation_"
    SENSOR_DELIMITER = "!"
    RECV_SIZE = 4096
    MAX_PENDING_REPORTS = 16

    def __init__(
        self,
        *,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float = 2.0,
        encoding: str = "ascii",
    ) -> None:
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)
        self.encoding = encoding
        self._socket: Optional[socket.socket] = None
        self._buffer = bytearray()
        self._reports: Deque[str] = deque(maxlen=self.MAX_PENDING_REPORTS)
        self._sensors: Dict[str, float] = {}
        self._last_confirmation: Optional[str] = None

    # ------------------------------------------------------------------
    # Context management helpers
    # ------------------------------------------------------------------
    def __enter__(self) -> "SimulatorLink":
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        return self._socket is not None

    @property
    def address(self) -> tuple[str, int]:
        return (self.host, self.port)

    def connect(self) -> None:
        if self._socket is not None:
            return
        try:
            sock = socket.create_connection(self.address, timeout=self.timeout)
        except OSError as exc:
            raise LinkError(
                f"Cannot connect to simulator at {self.host}:{self.port}: {exc}",
                context={"host": self.host, "port": self.port},
            ) from exc
        sock.settimeout(self.timeout)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        self._socket = sock
        logger.info(
            "Connected to simulator.",
            extra={"event": "link.connected", "host": self.host, "port": self.port},
        )

    def close(self) -> None:
        if self._socket is None:
            return
        try:
            self._socket.close()
        finally:
            self._socket = None
            self._buffer.clear()

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------
    def send_line(self, text: str) -> None:
        """Write ``text`` followed by a newline."""

        if "\n" in text or "\r" in text:
            raise ValueError(f"Command must be a single line: {text!r}")
        sock = self._ensure_connected()
        # Only an echo received after this send may confirm it.
        self.poll()
        self._last_confirmation = None
        try:
            sock.sendall((text + "\n").encode(self.encoding))
        except OSError as exc:
            raise LinkError(
                f"Failed to send {text!r} to the simulator: {exc}",
                context={"command": text},
            ) from exc
        logger.debug("Sent line.", extra={"event": "link.sent", "line": text})

    # ------------------------------------------------------------------
    # Incoming
    # ------------------------------------------------------------------
    def poll(self, timeout: float = 0.0) -> int:
        """Read whatever is pending, waiting at most ``timeout`` for the first chunk.

        Returns the number of complete lines handled.
        """

        sock = self._ensure_connected()
        handled = 0
        wait = timeout
        while wait_for_read_ready(sock, timeout=wait):
            try:
                chunk = sock.recv(self.RECV_SIZE)
            except BlockingIOError:
                break
            except OSError as exc:
                raise LinkError(f"Simulator connection failed: {exc}") from exc
            if not chunk:
                self.close()
                raise LinkError("Simulator closed the connection")
            self._buffer.extend(chunk)
            handled += self._drain_lines()
            wait = 0.0
        return handled

    def handle_line(self, line: str) -> None:
        """Classify one line received from the simulator."""

        line = line.strip()
        if not line:
            return
        if line.startswith(self.CONFIRMATION_PREFIX):
            self._handle_confirmation(line[len(self.CONFIRMATION_PREFIX):])
        elif is_chart_report(line):
            if len(self._reports) == self._reports.maxlen:
                logger.warning(
                    "Dropping oldest pending chart report.",
                    extra={"event": "link.report_overflow", "pending": len(self._reports)},
                )
            self._reports.append(line)
        elif self.SENSOR_DELIMITER in line:
            self._handle_status(line)
        else:
            logger.debug("Ignoring simulator line.", extra={"event": "link.ignored", "line": line})

    def last_confirmation(self) -> Optional[str]:
        """Most recent command echoed back by the simulator."""

        if self.connected:
            self.poll()
        return self._last_confirmation

    def read_sensor(self, name: str) -> Optional[float]:
        """Latest reported value of sensor ``name``, ``None`` if never seen."""

        if self.connected:
            self.poll()
        return self._sensors.get(name)

    def pop_chart_report(self, timeout: float = 0.0) -> Optional[str]:
        """Return the oldest pending chart report, waiting up to ``timeout``."""

        if not self._reports and self.connected:
            self.poll(timeout)
        if not self._reports:
            return None
        return self._reports.popleft()

    def discard_chart_reports(self) -> int:
        """Drop every pending chart report and return how many were dropped."""

        if self.connected:
            self.poll()
        dropped = len(self._reports)
        self._reports.clear()
        return dropped

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------
    def _ensure_connected(self) -> socket.socket:
        if self._socket is None:
            raise LinkError("Simulator link is not connected")
        return self._socket

    def _drain_lines(self) -> int:
        handled = 0
        while True:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                return handled
            raw = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            self.handle_line(raw.decode(self.encoding, errors="replace"))
            handled += 1

    def _handle_confirmation(self, payload: str) -> None:
        command, sep, length = payload.rpartition(":")
        if not sep or not length.isdigit() or int(length) != len(command):
            logger.debug(
                "Ignoring garbled confirmation.",
                extra={"event": "link.bad_confirmation", "payload": payload},
            )
            return
        self._last_confirmation = command

    def _handle_status(self, line: str) -> None:
        fields = line.rstrip(self.SENSOR_DELIMITER).split(self.SENSOR_DELIMITER)
        if len(fields) % 2:
            logger.debug("Ignoring odd status line.", extra={"event": "link.bad_status", "line": line})
            return
        for name, raw in zip(fields[::2], fields[1::2]):
            try:
                value = float(raw)
            except ValueError:
                continue
            if math.isfinite(value):
                self._sensors[name.strip()] = value
