"""Execution state machine for dispense operations.

The machine owns the single ``ExecutionSlot``. It admits at most one
operation at a time, engages the actuators for it, and releases them once
the requested duration has elapsed on the monotonic clock. Nothing here
blocks: every wait is a repeated non-blocking poll from the dispatch loop.

States: ``idle`` -> ``executing`` on a successful admit, ``executing`` ->
``idle`` only when the duration elapses. Operations cannot be cancelled.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Optional

from .actuators import ActuatorFault, ActuatorRegistry
from .commands import CommandValidator
from .core.models import Command, CommandKind, CommandReply, ExecutionSlot
from .core.products import ProductCatalog
from .core.utils import seconds_to_ms

LOGGER = logging.getLogger(__name__)


ReplySink = Callable[[CommandReply], None]


class ExecutionState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"


class ExecutionStateMachine:
    """Exclusive, timer-driven core of the controller."""

    def __init__(
        self,
        *,
        catalog: ProductCatalog,
        validator: CommandValidator,
        registry: ActuatorRegistry,
        emit: ReplySink,
    ) -> None:
        self._catalog = catalog
        self._validator = validator
        self._registry = registry
        self._emit = emit
        self._slot = ExecutionSlot()
        self._discarded = 0

    @property
    def state(self) -> ExecutionState:
        return ExecutionState.EXECUTING if self._slot.active else ExecutionState.IDLE

    def is_executing(self) -> bool:
        return self._slot.active

    @property
    def slot(self) -> ExecutionSlot:
        """Copy of the current slot; mutating it has no effect on the machine."""
        return replace(self._slot)

    @property
    def discarded_count(self) -> int:
        return self._discarded

    def idle_tick(self, command: Command, now_ms: int) -> bool:
        """Validate and, if possible, admit ``command``.

        Returns True when the machine moved to ``executing``. Every rejection
        is reported and the input is consumed.
        """
        if self._slot.active:
            raise RuntimeError("idle_tick called while an operation is in flight")

        if command.is_empty:
            return False

        result = self._validator.validate(command)
        if not result.valid:
            LOGGER.warning("Rejected %r: %s", command.raw_text, result.reason)
            self._emit(CommandReply.error(result.reason or "invalid command"))
            return False

        availability = self._validator.check_availability(
            command.kind, self._registry.is_available
        )
        if not availability.valid:
            LOGGER.warning("Rejected %r: %s", command.raw_text, availability.reason)
            self._emit(CommandReply.error(availability.reason or "stock unavailable"))
            return False

        return self._admit(command, now_ms)

    def executing_tick(self, now_ms: int) -> bool:
        """Finish the in-flight operation once its duration has elapsed.

        Returns True when the machine moved back to ``idle``.
        """
        if not self._slot.active:
            return False
        if not self._slot.is_due(now_ms):
            return False
        self._complete(now_ms)
        return True

    def discard(self, command: Command) -> None:
        """Drop a command received while busy. The sender gets no reply."""
        if command.is_empty:
            return
        self._discarded += 1
        LOGGER.info(
            "Discarded %r while %s is in progress",
            command.raw_text,
            self._slot.kind.value,
        )

    def _admit(self, command: Command, now_ms: int) -> bool:
        kind = command.kind
        profile = self._catalog.get(kind)
        duration_ms = seconds_to_ms(command.requested_duration_seconds)

        self._emit(
            CommandReply.success(
                profile.received_message(command.requested_duration_seconds)
            )
        )
        self._slot.occupy(kind, start_ms=now_ms, duration_ms=duration_ms)

        try:
            self._registry.begin(kind)
            if profile.uses_agitator:
                self._registry.start_agitator()
                self._slot.agitator_engaged = True
        except ActuatorFault as exc:
            LOGGER.error("Failed to start %s: %s", kind.value, exc)
            self._release(kind)
            self._slot.clear()
            self._emit(CommandReply.error(f"{kind.value} actuator fault: {exc}"))
            return False

        LOGGER.info(
            "%s started for %d ms (idle -> executing)", kind.value, duration_ms
        )
        return True

    def _complete(self, now_ms: int) -> None:
        kind = self._slot.kind
        profile = self._catalog.get(kind)
        elapsed_ms = self._slot.elapsed_ms(now_ms)

        fault = self._release(kind)
        self._slot.clear()

        if fault is not None:
            self._emit(CommandReply.error(f"{kind.value} actuator fault: {fault}"))
        else:
            self._emit(CommandReply.success(profile.completion_message))
        LOGGER.info(
            "%s finished after %d ms (executing -> idle)", kind.value, elapsed_ms
        )

    def _release(self, kind: CommandKind) -> Optional[ActuatorFault]:
        """Return the primary actuator and agitator to idle.

        Both are attempted even if the first fails; the first fault is
        returned.
        """
        fault: Optional[ActuatorFault] = None
        try:
            self._registry.end(kind)
        except ActuatorFault as exc:
            LOGGER.error("Failed to release %s: %s", kind.value, exc)
            fault = exc
        if self._slot.agitator_engaged:
            try:
                self._registry.stop_agitator()
            except ActuatorFault as exc:
                LOGGER.error("Failed to stop agitator: %s", exc)
                fault = fault or exc
            self._slot.agitator_engaged = False
        return fault
