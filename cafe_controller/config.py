"""Configuration loader for cafe-controller."""

from __future__ import annotations

from configparser import ConfigParser
from configparser import Error as ConfigParserError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

from . import constants
from .core.models import CommandKind
from .core.products import DEFAULT_PRODUCTS, ProductCatalog


class ConfigurationError(ValueError):
    """Raised when a configuration value cannot be used."""


_DISABLED_LIMITS = {"", "none", "off", "unbounded"}


def _option_name(kind: CommandKind) -> str:
    return kind.value.lower()


@dataclass(slots=True)
class SerialConfig:
    port: str = constants.DEFAULT_SERIAL_PORT
    baudrate: int = constants.DEFAULT_BAUD_RATE
    write_timeout_seconds: float = 1.0


@dataclass(slots=True)
class DispenseConfig:
    min_duration_seconds: float = constants.MIN_DURATION_SECONDS
    max_duration_seconds: Dict[CommandKind, Optional[float]] = field(
        default_factory=lambda: {
            profile.kind: profile.max_duration_seconds for profile in DEFAULT_PRODUCTS
        }
    )
    prefixes: Dict[CommandKind, str] = field(
        default_factory=lambda: {
            profile.kind: profile.prefix for profile in DEFAULT_PRODUCTS
        }
    )


@dataclass(slots=True)
class ActuatorConfig:
    servo_open_angle: int = constants.SERVO_ANGLE_MAX
    servo_closed_angle: int = constants.SERVO_ANGLE_MIN


@dataclass(slots=True)
class TelemetryConfig:
    interval_ms: int = constants.DEFAULT_TELEMETRY_INTERVAL_MS


@dataclass(slots=True)
class LoopConfig:
    tick_interval_seconds: float = constants.DEFAULT_TICK_INTERVAL_SECONDS


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    path: Optional[Path] = constants.DEFAULT_LOG_PATH
    log_serial: bool = False


@dataclass(slots=True)
class HealthConfig:
    enabled: bool = False
    host: str = "127.0.0.1"
    port: int = 0


@dataclass(slots=True)
class ControllerConfig:
    serial: SerialConfig
    dispense: DispenseConfig
    actuators: ActuatorConfig
    telemetry: TelemetryConfig
    loop: LoopConfig
    logging: LoggingConfig
    health: HealthConfig
    raw: ConfigParser
    path: Path

    def build_catalog(self) -> ProductCatalog:
        """Apply the configured prefixes and ceilings to the product table."""
        try:
            return ProductCatalog(DEFAULT_PRODUCTS).with_overrides(
                prefixes=self.dispense.prefixes,
                limits=self.dispense.max_duration_seconds,
            )
        except ValueError as exc:
            raise ConfigurationError(str(exc)) from exc


def _parse_limit(kind: CommandKind, value: str) -> Optional[float]:
    text = value.strip()
    if text.lower() in _DISABLED_LIMITS:
        return None
    try:
        limit = float(text)
    except ValueError as exc:
        raise ConfigurationError(
            f"[limits] {_option_name(kind)} must be a number of seconds, got {value!r}"
        ) from exc
    if limit <= 0:
        raise ConfigurationError(
            f"[limits] {_option_name(kind)} must be positive, got {value!r}"
        )
    return limit


def _parse_prefix(kind: CommandKind, value: str) -> str:
    text = value.strip()
    if len(text) != 1:
        raise ConfigurationError(
            f"[prefixes] {_option_name(kind)} must be a single character, got {value!r}"
        )
    return text.upper()


def load_config(path: Optional[Path] = None) -> ControllerConfig:
    """Load configuration from disk, applying defaults where necessary."""

    config_path = path or constants.DEFAULT_CONFIG_PATH
    parser = ConfigParser()
    parser.read_dict(
        {
            "serial": {
                "port": constants.DEFAULT_SERIAL_PORT,
                "baudrate": str(constants.DEFAULT_BAUD_RATE),
                "write_timeout_seconds": "1.0",
            },
            "dispense": {
                "min_duration_seconds": str(constants.MIN_DURATION_SECONDS),
            },
            "limits": {
                _option_name(profile.kind): (
                    ""
                    if profile.max_duration_seconds is None
                    else str(profile.max_duration_seconds)
                )
                for profile in DEFAULT_PRODUCTS
            },
            "prefixes": {
                _option_name(profile.kind): profile.prefix
                for profile in DEFAULT_PRODUCTS
            },
            "actuators": {
                "servo_open_angle": str(constants.SERVO_ANGLE_MAX),
                "servo_closed_angle": str(constants.SERVO_ANGLE_MIN),
            },
            "telemetry": {
                "interval_ms": str(constants.DEFAULT_TELEMETRY_INTERVAL_MS),
            },
            "loop": {
                "tick_interval_seconds": str(constants.DEFAULT_TICK_INTERVAL_SECONDS),
            },
            "logging": {
                "level": "INFO",
                "path": str(constants.DEFAULT_LOG_PATH),
                "log_serial": "false",
            },
            "health": {
                "enabled": "false",
                "host": "127.0.0.1",
                "port": "0",
            },
        }
    )

    try:
        if config_path.exists():
            parser.read(config_path)
        config = _materialize(parser, config_path)
    except ConfigurationError:
        raise
    except (ValueError, ConfigParserError) as exc:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {exc}"
        ) from exc
    config.build_catalog()
    return config


def _materialize(parser: ConfigParser, config_path: Path) -> ControllerConfig:
    serial_config = SerialConfig(
        port=parser.get("serial", "port"),
        baudrate=parser.getint("serial", "baudrate", fallback=constants.DEFAULT_BAUD_RATE),
        write_timeout_seconds=max(
            0.0, parser.getfloat("serial", "write_timeout_seconds", fallback=1.0)
        ),
    )

    min_duration = parser.getfloat(
        "dispense",
        "min_duration_seconds",
        fallback=constants.MIN_DURATION_SECONDS,
    )
    if min_duration <= 0:
        raise ConfigurationError(
            f"[dispense] min_duration_seconds must be positive, got {min_duration}"
        )

    limits: Dict[CommandKind, Optional[float]] = {}
    prefixes: Dict[CommandKind, str] = {}
    for profile in DEFAULT_PRODUCTS:
        option = _option_name(profile.kind)
        limits[profile.kind] = _parse_limit(
            profile.kind, parser.get("limits", option, fallback="")
        )
        prefixes[profile.kind] = _parse_prefix(
            profile.kind, parser.get("prefixes", option, fallback=profile.prefix)
        )

    dispense = DispenseConfig(
        min_duration_seconds=min_duration,
        max_duration_seconds=limits,
        prefixes=prefixes,
    )

    actuator_defaults = ActuatorConfig()
    actuators = ActuatorConfig(
        servo_open_angle=parser.getint(
            "actuators",
            "servo_open_angle",
            fallback=actuator_defaults.servo_open_angle,
        ),
        servo_closed_angle=parser.getint(
            "actuators",
            "servo_closed_angle",
            fallback=actuator_defaults.servo_closed_angle,
        ),
    )

    telemetry = TelemetryConfig(
        interval_ms=max(
            1,
            parser.getint(
                "telemetry",
                "interval_ms",
                fallback=constants.DEFAULT_TELEMETRY_INTERVAL_MS,
            ),
        ),
    )

    loop = LoopConfig(
        tick_interval_seconds=max(
            0.0,
            parser.getfloat(
                "loop",
                "tick_interval_seconds",
                fallback=constants.DEFAULT_TICK_INTERVAL_SECONDS,
            ),
        ),
    )

    log_path_value = parser.get("logging", "path", fallback="").strip()
    logging_config = LoggingConfig(
        level=parser.get("logging", "level", fallback="INFO"),
        path=Path(log_path_value).expanduser() if log_path_value else None,
        log_serial=parser.getboolean("logging", "log_serial", fallback=False),
    )

    health = HealthConfig(
        enabled=parser.getboolean("health", "enabled", fallback=False),
        host=parser.get("health", "host", fallback="127.0.0.1"),
        port=parser.getint("health", "port", fallback=0),
    )

    return ControllerConfig(
        serial=serial_config,
        dispense=dispense,
        actuators=actuators,
        telemetry=telemetry,
        loop=loop,
        logging=logging_config,
        health=health,
        raw=parser,
        path=config_path,
    )


def save_config(config: ControllerConfig) -> None:
    """Persist the current configuration to disk."""

    config_path = config.path
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with config_path.open("w", encoding="utf-8") as stream:
        config.raw.write(stream)
