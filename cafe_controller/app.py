"""Main application entry-point for cafe-controller."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import constants
from .actuators import ActuatorFault, ActuatorRegistry
from .adapters import BenchDevices, SerialCommandLink, SerialLinkError
from .config import ControllerConfig, load_config
from .core.protocols import Clock, ManagedTransport
from .core.utils import monotonic_ms
from .dispatch import DispatchLoop, TickResult
from .execution import ExecutionState
from .health import HealthReporter, HealthServer
from .logging import configure_logging

LOGGER = logging.getLogger(__name__)


class CafeControllerApp:
    """Coordinates startup, the tick loop and shutdown.

    Everything the controller does happens inside ``DispatchLoop.tick``,
    which is synchronous; the event loop only paces ticks and serves the
    optional health endpoint between them.

    The transport, devices and clock can be injected for testing.
    """

    def __init__(
        self,
        config: Optional[ControllerConfig] = None,
        *,
        transport: Optional[ManagedTransport] = None,
        devices: Optional[BenchDevices] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._config = config or load_config()
        serial_config = self._config.serial
        self._transport: ManagedTransport = transport or SerialCommandLink(
            serial_config.port,
            serial_config.baudrate,
            write_timeout=serial_config.write_timeout_seconds,
        )
        self._devices = devices or BenchDevices.create()
        self._clock = clock or monotonic_ms
        self._catalog = self._config.build_catalog()
        self._registry: Optional[ActuatorRegistry] = None
        self._dispatch: Optional[DispatchLoop] = None
        self._health = HealthReporter()
        self._health_server: Optional[HealthServer] = None
        self._shutdown_event: Optional[asyncio.Event] = None
        self._last_state: Optional[ExecutionState] = None
        self._last_discarded = 0
        self._ticks = 0

    @property
    def dispatch(self) -> Optional[DispatchLoop]:
        return self._dispatch

    @property
    def health(self) -> HealthReporter:
        return self._health

    @property
    def ticks(self) -> int:
        return self._ticks

    async def run(self) -> None:
        """Start services and tick until ``request_stop`` is called."""

        self._shutdown_event = asyncio.Event()
        LOGGER.info("cafe-controller starting with config: %s", self._config.path)
        try:
            await self._start_services()
            await self._tick_loop()
        except asyncio.CancelledError:
            LOGGER.info("cafe-controller received shutdown signal")
            raise
        finally:
            await self._stop_services()

    def request_stop(self) -> None:
        if self._shutdown_event is not None:
            self._shutdown_event.set()

    @classmethod
    def start(cls, config: Optional[ControllerConfig] = None) -> None:
        instance = cls(config=config)
        configure_logging(
            instance._config.logging.level,
            log_path=instance._config.logging.path,
            log_serial=instance._config.logging.log_serial,
        )
        try:
            asyncio.run(instance.run())
        except KeyboardInterrupt:
            LOGGER.info("cafe-controller received shutdown signal")

    async def _start_services(self) -> None:
        try:
            self._transport.open()
        except SerialLinkError as exc:
            LOGGER.error("Failed to open command link: %s", exc)
            await self._health.update("transport", False, str(exc))
            raise
        await self._health.update("transport", True, None)

        actuators = self._config.actuators
        self._devices.enable_lasers()
        registry = self._devices.build_registry(
            open_angle=actuators.servo_open_angle,
            closed_angle=actuators.servo_closed_angle,
        )
        registry.release_all()
        self._registry = registry

        self._dispatch = DispatchLoop.create(
            transport=self._transport,
            registry=registry,
            catalog=self._catalog,
            clock=self._clock,
            min_duration_seconds=self._config.dispense.min_duration_seconds,
            telemetry_interval_ms=self._config.telemetry.interval_ms,
        )
        await self._health.update("telemetry", True, None)
        await self._health.set_machine_state(ExecutionState.IDLE.value)
        self._last_state = ExecutionState.IDLE

        await self._start_health_server()

        self._transport.write_line(constants.BOOT_BANNER)
        LOGGER.info("cafe-controller ready")

    async def _tick_loop(self) -> None:
        dispatch = self._dispatch
        if dispatch is None or self._shutdown_event is None:
            return

        interval = self._config.loop.tick_interval_seconds
        while not self._shutdown_event.is_set():
            try:
                result = dispatch.tick()
            except SerialLinkError as exc:
                LOGGER.error("Command link failed: %s", exc)
                await self._health.update("transport", False, str(exc))
                raise
            self._ticks += 1
            await self._publish_health(result)
            await asyncio.sleep(interval)

    async def _publish_health(self, result: TickResult) -> None:
        if result.snapshot is not None:
            await self._health.set_stock(result.snapshot.as_dict())

        machine = self._dispatch.machine if self._dispatch is not None else None
        discarded = machine.discarded_count if machine is not None else 0
        if result.state == self._last_state and discarded == self._last_discarded:
            return
        self._last_state = result.state
        self._last_discarded = discarded

        kind = None
        if machine is not None:
            slot = machine.slot
            kind = slot.kind.value if slot.active else None
        await self._health.set_machine_state(
            result.state.value, kind=kind, discarded_commands=discarded
        )

    async def _start_health_server(self) -> None:
        health = self._config.health
        if not health.enabled or health.port <= 0:
            return

        server = HealthServer(self._health, health.host, health.port)
        try:
            await server.start()
        except OSError as exc:
            LOGGER.error("Failed to start health endpoint: %s", exc)
            await self._health.update("health-endpoint", False, str(exc))
        else:
            self._health_server = server
            await self._health.update("health-endpoint", True, None)

    async def _stop_health_server(self) -> None:
        if self._health_server is None:
            return
        await self._health_server.stop()
        self._health_server = None
        await self._health.update("health-endpoint", False, "shutdown")

    async def _stop_services(self) -> None:
        if self._registry is not None:
            try:
                self._registry.release_all()
            except ActuatorFault as exc:
                LOGGER.error("Failed to release actuators during shutdown: %s", exc)

        await self._stop_health_server()

        self._transport.close()
        await self._health.update("transport", False, "shutdown")

        if self._shutdown_event is not None:
            self._shutdown_event.set()
        LOGGER.info("cafe-controller stopped after %d ticks", self._ticks)
