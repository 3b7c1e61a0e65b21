"""Line-oriented command link over a serial port."""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Callable, Deque, Optional

import serial

from .. import constants

LOGGER = logging.getLogger(__name__)

MAX_LINE_BYTES = 256


class SerialLinkError(RuntimeError):
    """Raised when the serial port cannot be opened, read or written."""


class SerialCommandLink:
    """Non-blocking command transport backed by pyserial.

    Reads never wait: whatever bytes are already buffered by the driver are
    pulled in, split on ``\\n``, and returned one line per call.
    """

    def __init__(
        self,
        port: str = constants.DEFAULT_SERIAL_PORT,
        baudrate: int = constants.DEFAULT_BAUD_RATE,
        *,
        write_timeout: Optional[float] = 1.0,
        serial_factory: Callable[..., Any] = serial.Serial,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.write_timeout = write_timeout
        self._serial_factory = serial_factory
        self._serial: Any = None
        self._buffer = bytearray()
        self._lines: Deque[str] = deque()

    @property
    def is_open(self) -> bool:
        return self._serial is not None and bool(self._serial.is_open)

    def open(self) -> None:
        if self.is_open:
            return
        try:
            self._serial = self._serial_factory(
                port=self.port,
                baudrate=self.baudrate,
                timeout=0,
                write_timeout=self.write_timeout,
            )
        except serial.SerialException as exc:
            self._serial = None
            raise SerialLinkError(f"Error opening {self.port}: {exc}") from exc
        LOGGER.info("Serial link open on %s @ %d baud", self.port, self.baudrate)

    def close(self) -> None:
        if self._serial is not None and self._serial.is_open:
            self._serial.close()
        self._serial = None
        self._buffer.clear()
        self._lines.clear()

    def __enter__(self) -> "SerialCommandLink":
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def read_line(self) -> Optional[str]:
        if not self._lines:
            self._fill()
        if self._lines:
            return self._lines.popleft()
        return None

    def write_line(self, text: str) -> None:
        port = self._require_open()
        try:
            port.write(text.encode("ascii", errors="replace") + b"\n")
        except serial.SerialException as exc:
            raise SerialLinkError(f"Error writing to {self.port}: {exc}") from exc

    def _fill(self) -> None:
        port = self._require_open()
        try:
            waiting = port.in_waiting
            chunk = port.read(waiting) if waiting else b""
        except serial.SerialException as exc:
            raise SerialLinkError(f"Error reading from {self.port}: {exc}") from exc
        if not chunk:
            return

        self._buffer.extend(chunk)
        while True:
            index = self._buffer.find(b"\n")
            if index < 0:
                break
            raw = bytes(self._buffer[:index])
            del self._buffer[: index + 1]
            self._lines.append(raw.decode("ascii", errors="replace").rstrip("\r"))

        if len(self._buffer) > MAX_LINE_BYTES:
            LOGGER.warning(
                "Dropping %d bytes of unterminated input on %s",
                len(self._buffer),
                self.port,
            )
            self._buffer.clear()

    def _require_open(self) -> Any:
        if not self.is_open:
            raise SerialLinkError(f"Serial link {self.port} is not open")
        return self._serial
