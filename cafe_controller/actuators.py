"""Actuator registry mapping each dispensable kind to its hardware.

The registry is the only place that knows which physical position means
"dispensing" for a given actuator: an angle for a servo gate, a relay state
for a pump, open/close for a plain valve. The state machine only ever calls
``begin``/``end`` with a kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Mapping, Optional, Protocol

from . import constants
from .core.models import CommandKind
from .core.protocols import AvailabilitySensor, Switch, Valve

LOGGER = logging.getLogger(__name__)


class ActuatorFault(RuntimeError):
    """Raised when a driver call fails while engaging or releasing hardware."""

    def __init__(self, message: str, *, kind: Optional[CommandKind] = None) -> None:
        super().__init__(message)
        self.kind = kind


class AngleServo(Protocol):
    def set_angle(self, angle: int) -> None:
        ...


@dataclass(frozen=True, slots=True)
class ActuatorBinding:
    """Association of a product kind with its primary actuator and sensor.

    Attributes:
        kind: Product kind served by this binding.
        name: Human-readable actuator name used in logs.
        engage: Moves the primary actuator to its dispensing position.
        release: Returns the primary actuator to its idle position.
        stock_sensor: Optional sensor consulted before engaging.
    """

    kind: CommandKind
    name: str
    engage: Callable[[], None]
    release: Callable[[], None]
    stock_sensor: Optional[AvailabilitySensor] = None


def servo_binding(
    kind: CommandKind,
    servo: AngleServo,
    *,
    name: str,
    stock_sensor: Optional[AvailabilitySensor] = None,
    open_angle: int = constants.SERVO_ANGLE_MAX,
    closed_angle: int = constants.SERVO_ANGLE_MIN,
) -> ActuatorBinding:
    return ActuatorBinding(
        kind=kind,
        name=name,
        engage=lambda: servo.set_angle(open_angle),
        release=lambda: servo.set_angle(closed_angle),
        stock_sensor=stock_sensor,
    )


def relay_binding(
    kind: CommandKind,
    relay: Switch,
    *,
    name: str,
    stock_sensor: Optional[AvailabilitySensor] = None,
) -> ActuatorBinding:
    return ActuatorBinding(
        kind=kind,
        name=name,
        engage=relay.on,
        release=relay.off,
        stock_sensor=stock_sensor,
    )


def valve_binding(
    kind: CommandKind,
    valve: Valve,
    *,
    name: str,
    stock_sensor: Optional[AvailabilitySensor] = None,
) -> ActuatorBinding:
    return ActuatorBinding(
        kind=kind,
        name=name,
        engage=valve.open,
        release=valve.close,
        stock_sensor=stock_sensor,
    )


class ActuatorRegistry:
    """Fixed set of actuator bindings plus the shared agitator.

    The device set is built once at startup and owned for the lifetime of
    the process.
    """

    def __init__(self, bindings: Iterable[ActuatorBinding], agitator: Switch) -> None:
        self._bindings: Dict[CommandKind, ActuatorBinding] = {}
        for binding in bindings:
            if binding.kind in self._bindings:
                raise ValueError(f"Duplicate actuator binding for {binding.kind.value}")
            self._bindings[binding.kind] = binding
        self._agitator = agitator
        self._agitator_running = False

    @property
    def kinds(self) -> frozenset[CommandKind]:
        return frozenset(self._bindings)

    @property
    def agitator_running(self) -> bool:
        return self._agitator_running

    def binding(self, kind: CommandKind) -> ActuatorBinding:
        try:
            return self._bindings[kind]
        except KeyError:
            raise KeyError(f"No actuator bound for {kind.value}") from None

    def stock_sensors(self) -> Mapping[CommandKind, AvailabilitySensor]:
        return {
            kind: binding.stock_sensor
            for kind, binding in self._bindings.items()
            if binding.stock_sensor is not None
        }

    def release_all(self) -> None:
        """Drive every actuator to its idle position and stop the agitator.

        Every actuator is attempted; the first fault is raised afterwards.
        """
        fault: Optional[ActuatorFault] = None
        for binding in self._bindings.values():
            try:
                self._call(binding, binding.release, "release")
            except ActuatorFault as exc:
                LOGGER.error("Failed to release %s: %s", binding.name, exc)
                fault = fault or exc
        try:
            self.stop_agitator()
        except ActuatorFault as exc:
            LOGGER.error("Failed to stop agitator: %s", exc)
            fault = fault or exc
        if fault is not None:
            raise fault
        LOGGER.info("Released %d actuators and the agitator", len(self._bindings))

    def is_available(self, kind: CommandKind) -> bool:
        if kind is CommandKind.CUP:
            return True
        sensor = self.binding(kind).stock_sensor
        if sensor is None:
            return True
        return bool(sensor.is_available())

    def begin(self, kind: CommandKind) -> None:
        binding = self.binding(kind)
        LOGGER.debug("Engaging %s for %s", binding.name, kind.value)
        self._call(binding, binding.engage, "engage")

    def end(self, kind: CommandKind) -> None:
        binding = self.binding(kind)
        LOGGER.debug("Releasing %s for %s", binding.name, kind.value)
        self._call(binding, binding.release, "release")

    def start_agitator(self) -> None:
        try:
            self._agitator.on()
        except Exception as exc:
            raise ActuatorFault(f"agitator failed to start: {exc}") from exc
        self._agitator_running = True

    def stop_agitator(self) -> None:
        try:
            self._agitator.off()
        except Exception as exc:
            raise ActuatorFault(f"agitator failed to stop: {exc}") from exc
        self._agitator_running = False

    @staticmethod
    def _call(binding: ActuatorBinding, action: Callable[[], None], verb: str) -> None:
        try:
            action()
        except ActuatorFault:
            raise
        except Exception as exc:
            raise ActuatorFault(
                f"{binding.name} failed to {verb}: {exc}", kind=binding.kind
            ) from exc
