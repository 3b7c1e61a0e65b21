"""Command parsing and validation for the dispensing controller.

A raw line from the command link becomes a ``Command`` through
``parse_command`` and is then checked by ``CommandValidator``. Duration
bounds are checked up front; stock availability is checked separately,
immediately before the actuators are engaged, because stock can change
between commands.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Callable, Optional

from . import constants
from .core.models import Command, CommandKind, ValidationResult
from .core.products import ProductCatalog, ProductProfile

LOGGER = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class CommandRejectedError(RuntimeError):
    """Raised when a command cannot be admitted.

    The message is the reply text sent back on the command link.
    """

    code = "rejected"

    def __init__(self, message: str, *, kind: Optional[CommandKind] = None) -> None:
        super().__init__(message)
        self.kind = kind


class UnknownCommandError(CommandRejectedError):
    code = "unknown_command"


class DurationTooShortError(CommandRejectedError):
    code = "duration_too_short"


class DurationTooLongError(CommandRejectedError):
    code = "duration_too_long"


class InvalidDurationError(CommandRejectedError):
    code = "invalid_duration"


class StockUnavailableError(CommandRejectedError):
    code = "stock_unavailable"


def _parse_duration(text: str) -> float:
    """Read the leading number of ``text``; trailing text is ignored and
    nothing parseable yields 0."""

    match = _LEADING_NUMBER.match(text.strip())
    if match is None:
        return 0.0
    return float(match.group(0))


def parse_command(line: Optional[str], catalog: ProductCatalog) -> Command:
    """Turn one raw line into a ``Command``.

    Leading spaces are skipped and blank input yields ``CommandKind.NONE``.
    The first non-space character selects the kind; the remainder of the
    line is the requested duration in seconds.
    """

    if line is None:
        return Command(kind=CommandKind.NONE)

    text = line.strip()
    if not text:
        return Command(kind=CommandKind.NONE)

    kind = catalog.kind_for_prefix(text[0])
    if kind is CommandKind.UNKNOWN:
        return Command(kind=kind, raw_text=text)

    return Command(
        kind=kind,
        requested_duration_seconds=_parse_duration(text[1:]),
        raw_text=text,
    )


class CommandValidator:
    """Checks parsed commands against duration bounds and stock state."""

    def __init__(
        self,
        catalog: ProductCatalog,
        *,
        min_duration_seconds: float = constants.MIN_DURATION_SECONDS,
    ) -> None:
        self._catalog = catalog
        self._min_duration = min_duration_seconds

    @property
    def min_duration_seconds(self) -> float:
        return self._min_duration

    def validate(self, command: Command) -> ValidationResult:
        """Check kind and duration bounds. Never mutates ``command``."""
        try:
            self._check_bounds(command)
        except CommandRejectedError as exc:
            return ValidationResult.rejected(exc)
        return ValidationResult.accepted()

    def check_availability(
        self,
        kind: CommandKind,
        is_available: Callable[[CommandKind], bool],
    ) -> ValidationResult:
        """Check stock for ``kind`` right before its actuators engage."""
        profile = self._catalog.get(kind)
        if not profile.checks_stock:
            return ValidationResult.accepted()
        if is_available(kind):
            return ValidationResult.accepted()
        return ValidationResult.rejected(
            StockUnavailableError(profile.unavailable_message, kind=kind)
        )

    def _check_bounds(self, command: Command) -> None:
        if command.kind is CommandKind.NONE:
            raise ValueError("Blank commands are not validated")

        if command.kind is CommandKind.UNKNOWN or command.kind not in self._catalog:
            raise UnknownCommandError(f"unknown command: {command.raw_text}")

        profile = self._catalog.get(command.kind)
        duration = command.requested_duration_seconds
        if not math.isfinite(duration):
            raise InvalidDurationError(
                f"invalid duration: {command.raw_text}", kind=command.kind
            )
        if duration < self._min_duration:
            raise DurationTooShortError(
                f"duration too short (minimum: {self._min_duration:g}s)",
                kind=command.kind,
            )

        self._check_ceiling(profile, duration)

    @staticmethod
    def _check_ceiling(profile: ProductProfile, duration: float) -> None:
        ceiling = profile.max_duration_seconds
        if ceiling is not None and duration > ceiling:
            raise DurationTooLongError(
                f"duration too long for {profile.label} (maximum: {ceiling:g}s)",
                kind=profile.kind,
            )
