"""Adapters bridging the controller to hardware and the command link."""

from .devices import (
    BenchDevices,
    FloatSwitch,
    LaserStockSensor,
    RelaySwitch,
    ServoMotor,
)
from .serial_link import SerialCommandLink, SerialLinkError

__all__ = [
    "BenchDevices",
    "FloatSwitch",
    "LaserStockSensor",
    "RelaySwitch",
    "SerialCommandLink",
    "SerialLinkError",
    "ServoMotor",
]
