"""Dispatch loop tying telemetry and command execution together per tick."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from . import constants
from .actuators import ActuatorRegistry
from .commands import CommandValidator, parse_command
from .core.models import CommandReply, StockSnapshot
from .core.products import ProductCatalog
from .core.protocols import Clock, CommandTransport
from .execution import ExecutionState, ExecutionStateMachine
from .telemetry import TelemetryPoller, format_snapshot, stock_channels

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TickResult:
    now_ms: int
    state: ExecutionState
    snapshot: Optional[StockSnapshot] = None
    line: Optional[str] = None


class DispatchLoop:
    """Runs one pass of the controller per call to ``tick``.

    Each tick drives the telemetry poller first, then either the executing
    branch (drain one line and drop it, then check for completion) or the
    idle branch (read, parse, validate, admit). Telemetry is never skipped
    while a dispense is running.
    """

    def __init__(
        self,
        *,
        transport: CommandTransport,
        catalog: ProductCatalog,
        machine: ExecutionStateMachine,
        poller: TelemetryPoller,
        clock: Clock,
    ) -> None:
        self._transport = transport
        self._catalog = catalog
        self._machine = machine
        self._poller = poller
        self._clock = clock

    @property
    def machine(self) -> ExecutionStateMachine:
        return self._machine

    @property
    def poller(self) -> TelemetryPoller:
        return self._poller

    def tick(self) -> TickResult:
        now_ms = self._clock()

        snapshot = self._poller.tick(now_ms)
        if snapshot is not None:
            self._transport.write_line(format_snapshot(snapshot))

        line = self._transport.read_line()
        command = parse_command(line, self._catalog)

        if self._machine.is_executing():
            self._machine.discard(command)
            self._machine.executing_tick(now_ms)
        else:
            self._machine.idle_tick(command, now_ms)

        return TickResult(
            now_ms=now_ms,
            state=self._machine.state,
            snapshot=snapshot,
            line=line,
        )

    @classmethod
    def create(
        cls,
        *,
        transport: CommandTransport,
        registry: ActuatorRegistry,
        catalog: ProductCatalog,
        clock: Clock,
        min_duration_seconds: float = constants.MIN_DURATION_SECONDS,
        telemetry_interval_ms: int = constants.DEFAULT_TELEMETRY_INTERVAL_MS,
    ) -> "DispatchLoop":
        """Wire a validator, state machine and poller around ``transport``."""

        def emit(reply: CommandReply) -> None:
            transport.write_line(reply.render())

        machine = ExecutionStateMachine(
            catalog=catalog,
            validator=CommandValidator(
                catalog, min_duration_seconds=min_duration_seconds
            ),
            registry=registry,
            emit=emit,
        )
        poller = TelemetryPoller(
            stock_channels(catalog, registry), interval_ms=telemetry_interval_ms
        )
        return cls(
            transport=transport,
            catalog=catalog,
            machine=machine,
            poller=poller,
            clock=clock,
        )
