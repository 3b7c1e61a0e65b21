"""Constants used across the cafe-controller package."""

from __future__ import annotations

from pathlib import Path

APP_NAME = "cafe-controller"
DEFAULT_CONFIG_FILENAME = f"{APP_NAME}.cfg"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / APP_NAME / DEFAULT_CONFIG_FILENAME
DEFAULT_LOG_PATH = Path.home() / ".local" / "state" / APP_NAME / f"{APP_NAME}.log"

DEFAULT_SERIAL_PORT = "/dev/ttyACM0"
DEFAULT_BAUD_RATE = 9600

MIN_DURATION_SECONDS = 0.01
DEFAULT_TELEMETRY_INTERVAL_MS = 1000
DEFAULT_TICK_INTERVAL_SECONDS = 0.005

SERVO_ANGLE_MIN = 0
SERVO_ANGLE_MAX = 90

BOOT_BANNER = "CafeController initialized successfully"
