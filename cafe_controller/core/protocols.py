"""Protocol definitions for the hardware drivers and the command link."""

from __future__ import annotations

from typing import Callable, Optional, Protocol


Clock = Callable[[], int]
"""Monotonic clock returning whole milliseconds."""


class Valve(Protocol):
    """Two-position actuator driven by open/close."""

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...


class Switch(Protocol):
    """Relay-style actuator driven by on/off."""

    def on(self) -> None:
        ...

    def off(self) -> None:
        ...


class AvailabilitySensor(Protocol):
    """Stock sensor or float switch reporting whether product is present."""

    def is_available(self) -> bool:
        """Sample the sensor. Must not block and must not move any actuator."""
        ...


class CommandTransport(Protocol):
    """Line-oriented text channel delivering one raw command at a time."""

    def read_line(self) -> Optional[str]:
        """Return the next complete line without its terminator, or None.

        Never blocks waiting for input.
        """
        ...

    def write_line(self, text: str) -> None:
        """Send one line of text back to the host."""
        ...


class ManagedTransport(CommandTransport, Protocol):
    """Command transport with an explicit open/close lifecycle."""

    def open(self) -> None:
        ...

    def close(self) -> None:
        ...
