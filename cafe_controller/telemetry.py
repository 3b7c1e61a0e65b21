"""Periodic stock telemetry.

The poller samples every stock sensor and the tank float switch at a fixed
interval, independent of whether a dispense is in progress, and hands the
snapshot back to the caller for serialization.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, Mapping, Optional

from . import constants
from .actuators import ActuatorRegistry
from .core.models import StockLevel, StockSnapshot
from .core.products import ProductCatalog
from .core.protocols import AvailabilitySensor

LOGGER = logging.getLogger(__name__)


class TelemetryConfigurationError(RuntimeError):
    """Raised when the poller is configured with an invalid interval."""


class TelemetryPoller:
    """Fires at most once per interval, measured from the previous fire.

    The first tick always fires so a host sees stock state right after boot.
    """

    def __init__(
        self,
        sensors: Mapping[str, AvailabilitySensor],
        *,
        interval_ms: int = constants.DEFAULT_TELEMETRY_INTERVAL_MS,
    ) -> None:
        if interval_ms <= 0:
            raise TelemetryConfigurationError(
                f"Telemetry interval must be positive, got {interval_ms} ms"
            )
        self._sensors: Dict[str, AvailabilitySensor] = dict(sensors)
        self._interval_ms = interval_ms
        self._last_fire_ms: Optional[int] = None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    @property
    def last_fire_ms(self) -> Optional[int]:
        return self._last_fire_ms

    def tick(self, now_ms: int) -> Optional[StockSnapshot]:
        last = self._last_fire_ms
        if last is not None and now_ms - last < self._interval_ms:
            return None
        self._last_fire_ms = now_ms
        return self.sample(now_ms)

    def sample(self, now_ms: int) -> StockSnapshot:
        channels = {
            key: StockLevel.from_available(bool(sensor.is_available()))
            for key, sensor in self._sensors.items()
        }
        snapshot = StockSnapshot(channels=channels, captured_at_ms=now_ms)
        LOGGER.debug("Stock snapshot: %s", snapshot.as_dict())
        return snapshot


def format_snapshot(snapshot: StockSnapshot) -> str:
    """Serialize a snapshot as one compact JSON line."""
    return json.dumps(snapshot.as_dict(), separators=(",", ":"))


def stock_channels(
    catalog: ProductCatalog, registry: ActuatorRegistry
) -> Dict[str, AvailabilitySensor]:
    """Map telemetry keys to the sensors bound for each stocked product."""
    sensors = registry.stock_sensors()
    channels: Dict[str, AvailabilitySensor] = {}
    for profile in catalog:
        if profile.telemetry_key is None:
            continue
        sensor = sensors.get(profile.kind)
        if sensor is None:
            LOGGER.warning("No stock sensor bound for %s", profile.label)
            continue
        channels[profile.telemetry_key] = sensor
    return channels
