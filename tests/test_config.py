from pathlib import Path

import pytest

from cafe_controller import constants
from cafe_controller.config import ConfigurationError, load_config, save_config
from cafe_controller.core.models import CommandKind


def _write(tmp_path: Path, text: str) -> Path:
    config_path = tmp_path / "cafe-controller.cfg"
    config_path.write_text(text.strip() + "\n", encoding="utf-8")
    return config_path


def test_load_config_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "cafe-controller.cfg")

    assert config.serial.port == constants.DEFAULT_SERIAL_PORT
    assert config.serial.baudrate == 9600
    assert config.dispense.min_duration_seconds == 0.01
    assert config.dispense.max_duration_seconds[CommandKind.SUGAR] == 10.0
    assert config.dispense.max_duration_seconds[CommandKind.WATER] == 30.0
    assert config.dispense.max_duration_seconds[CommandKind.COFFEE] is None
    assert config.dispense.prefixes[CommandKind.CUP] == "U"
    assert config.actuators.servo_open_angle == 90
    assert config.actuators.servo_closed_angle == 0
    assert config.telemetry.interval_ms == 1000
    assert config.health.enabled is False
    assert config.logging.path == constants.DEFAULT_LOG_PATH


def test_load_config_overrides_defaults(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path,
        """
[serial]
port = /dev/ttyUSB3
baudrate = 115200

[dispense]
min_duration_seconds = 0.5

[telemetry]
interval_ms = 250

[health]
enabled = true
port = 8765

[logging]
level = DEBUG
path =
log_serial = true
        """,
    )

    config = load_config(config_path)

    assert config.serial.port == "/dev/ttyUSB3"
    assert config.serial.baudrate == 115200
    assert config.dispense.min_duration_seconds == 0.5
    assert config.telemetry.interval_ms == 250
    assert config.health.enabled is True
    assert config.health.port == 8765
    assert config.logging.level == "DEBUG"
    assert config.logging.path is None
    assert config.logging.log_serial is True


def test_limits_can_be_changed_or_disabled(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path,
        """
[limits]
sugar = none
coffee = 12.5
        """,
    )

    config = load_config(config_path)
    catalog = config.build_catalog()

    assert config.dispense.max_duration_seconds[CommandKind.SUGAR] is None
    assert catalog.get(CommandKind.SUGAR).max_duration_seconds is None
    assert catalog.get(CommandKind.COFFEE).max_duration_seconds == 12.5
    assert catalog.get(CommandKind.WATER).max_duration_seconds == 30.0


def test_prefixes_are_normalised(tmp_path: Path) -> None:
    config_path = _write(tmp_path, "[prefixes]\ncup = k\n")

    config = load_config(config_path)

    assert config.build_catalog().kind_for_prefix("K") is CommandKind.CUP


@pytest.mark.parametrize(
    "text",
    [
        "[prefixes]\nsugar = SU\n",
        "[prefixes]\ncup = S\n",
        "[limits]\nwater = -1\n",
        "[limits]\nwater = lots\n",
        "[dispense]\nmin_duration_seconds = 0\n",
        "[serial]\nbaudrate = abc\n",
        "[telemetry]\ninterval_ms = 1.5\n",
        "[health]\nenabled = maybe\n",
        "no section header\n",
    ],
)
def test_invalid_values_raise_configuration_error(tmp_path: Path, text: str) -> None:
    config_path = _write(tmp_path, text)

    with pytest.raises(ConfigurationError):
        load_config(config_path)


def test_save_config_round_trips_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "nested" / "cafe-controller.cfg"
    config = load_config(config_path)
    config.raw.set("serial", "port", "/dev/ttyS9")

    save_config(config)
    reloaded = load_config(config_path)

    assert reloaded.serial.port == "/dev/ttyS9"
