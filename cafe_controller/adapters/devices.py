"""In-process drivers for the dispenser hardware.

These mirror the physical devices closely enough to run the controller on a
bench or in tests: servo gates with clamped angles, relay-driven pump and
agitator, laser stock sensors and the tank float switch. Each driver only
records its state and logs transitions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict

from .. import constants
from ..actuators import ActuatorRegistry, relay_binding, servo_binding
from ..core.models import CommandKind

LOGGER = logging.getLogger(__name__)


class ServoMotor:
    """Servo gate. Angles outside the supported range are clamped."""

    def __init__(
        self,
        name: str,
        *,
        min_angle: int = constants.SERVO_ANGLE_MIN,
        max_angle: int = constants.SERVO_ANGLE_MAX,
    ) -> None:
        self.name = name
        self._min_angle = min_angle
        self._max_angle = max_angle
        self._angle = min_angle
        self.moves = 0

    @property
    def angle(self) -> int:
        return self._angle

    def set_angle(self, angle: int) -> None:
        clamped = max(self._min_angle, min(self._max_angle, int(angle)))
        if clamped != self._angle:
            LOGGER.debug("%s: %d -> %d deg", self.name, self._angle, clamped)
        self._angle = clamped
        self.moves += 1

    def open(self) -> None:
        self.set_angle(self._max_angle)

    def close(self) -> None:
        self.set_angle(self._min_angle)

    @property
    def is_open(self) -> bool:
        return self._angle != self._min_angle


class RelaySwitch:
    """Relay output driving a pump or a DC motor."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._on = False
        self.activations = 0

    @property
    def is_on(self) -> bool:
        return self._on

    def on(self) -> None:
        if not self._on:
            LOGGER.debug("%s: on", self.name)
            self.activations += 1
        self._on = True

    def off(self) -> None:
        if self._on:
            LOGGER.debug("%s: off", self.name)
        self._on = False


class LaserStockSensor:
    """Laser/light-barrier stock sensor for a powder hopper."""

    def __init__(self, name: str, *, stocked: bool = True) -> None:
        self.name = name
        self.stocked = stocked
        self._laser_on = False

    @property
    def laser_on(self) -> bool:
        return self._laser_on

    def turn_on_laser(self) -> None:
        self._laser_on = True

    def turn_off_laser(self) -> None:
        self._laser_on = False

    def is_available(self) -> bool:
        return self.stocked


class FloatSwitch:
    """Tank float switch; available while the float is raised."""

    def __init__(self, name: str, *, liquid_present: bool = True) -> None:
        self.name = name
        self.liquid_present = liquid_present

    def is_available(self) -> bool:
        return self.liquid_present


_SERVO_PRODUCTS: Dict[CommandKind, str] = {
    CommandKind.SUGAR: "Sugar",
    CommandKind.COFFEE: "Coffee",
    CommandKind.ICED_TEA: "IcedTea",
    CommandKind.GREEN_TEA: "GreenTea",
}


@dataclass
class BenchDevices:
    """The complete, fixed device set of one machine."""

    servos: Dict[CommandKind, ServoMotor] = field(default_factory=dict)
    stock_sensors: Dict[CommandKind, LaserStockSensor] = field(default_factory=dict)
    pump: RelaySwitch = field(default_factory=lambda: RelaySwitch("WaterPump"))
    float_switch: FloatSwitch = field(
        default_factory=lambda: FloatSwitch("WaterFloatSwitch")
    )
    agitator: RelaySwitch = field(default_factory=lambda: RelaySwitch("Agitator"))

    @classmethod
    def create(cls) -> "BenchDevices":
        devices = cls()
        for kind, label in _SERVO_PRODUCTS.items():
            devices.servos[kind] = ServoMotor(f"{label}Dispenser")
            devices.stock_sensors[kind] = LaserStockSensor(f"{label}Stock")
        devices.servos[CommandKind.CUP] = ServoMotor("CupDispenser")
        return devices

    def enable_lasers(self) -> None:
        for sensor in self.stock_sensors.values():
            sensor.turn_on_laser()

    def build_registry(
        self,
        *,
        open_angle: int = constants.SERVO_ANGLE_MAX,
        closed_angle: int = constants.SERVO_ANGLE_MIN,
    ) -> ActuatorRegistry:
        bindings = [
            servo_binding(
                kind,
                servo,
                name=servo.name,
                stock_sensor=self.stock_sensors.get(kind),
                open_angle=open_angle,
                closed_angle=closed_angle,
            )
            for kind, servo in self.servos.items()
        ]
        bindings.append(
            relay_binding(
                CommandKind.WATER,
                self.pump,
                name=self.pump.name,
                stock_sensor=self.float_switch,
            )
        )
        return ActuatorRegistry(bindings, self.agitator)
