import asyncio
import json

import pytest

from cafe_controller import constants
from cafe_controller.adapters import SerialLinkError
from cafe_controller.app import CafeControllerApp
from cafe_controller.config import load_config
from cafe_controller.core.models import CommandKind


class _UnpluggedTransport:
    def open(self) -> None:
        raise SerialLinkError("Error opening /dev/ttyACM0: no such device")

    def close(self) -> None:
        pass

    def read_line(self):
        return None

    def write_line(self, text: str) -> None:
        raise AssertionError("nothing should be written")


async def _wait_for_ticks(app: CafeControllerApp, count: int) -> None:
    while app.ticks < count:
        await asyncio.sleep(0.001)


@pytest.fixture
def config(tmp_path):
    return load_config(tmp_path / "cafe-controller.cfg")


@pytest.mark.asyncio
async def test_app_boots_dispatches_and_shuts_down(
    config, transport, devices, clock
) -> None:
    app = CafeControllerApp(config, transport=transport, devices=devices, clock=clock)
    task = asyncio.create_task(app.run())

    await asyncio.wait_for(_wait_for_ticks(app, 2), timeout=5)
    assert transport.opened
    assert transport.written[0] == constants.BOOT_BANNER
    assert all(sensor.laser_on for sensor in devices.stock_sensors.values())
    assert json.loads(transport.telemetry[0])["sugar"] == "High"

    transport.feed("S1")
    await asyncio.wait_for(_wait_for_ticks(app, app.ticks + 2), timeout=5)

    assert transport.replies == ["SUCCESS: Sugar command received: 1.00s"]
    assert devices.servos[CommandKind.SUGAR].angle == 90
    snapshot = await app.health.snapshot()
    assert snapshot["machine"]["state"] == "executing"
    assert snapshot["machine"]["kind"] == "Sugar"
    assert snapshot["stock"]["water"] == "High"

    app.request_stop()
    await asyncio.wait_for(task, timeout=5)

    assert transport.closed
    assert devices.servos[CommandKind.SUGAR].angle == 0
    assert not devices.agitator.is_on
    components = {
        item["name"]: item for item in (await app.health.snapshot())["components"]
    }
    assert components["transport"]["healthy"] is False


@pytest.mark.asyncio
async def test_app_reports_unavailable_command_link(config, devices, clock) -> None:
    app = CafeControllerApp(
        config, transport=_UnpluggedTransport(), devices=devices, clock=clock
    )

    with pytest.raises(SerialLinkError):
        await app.run()

    snapshot = await app.health.snapshot()
    assert snapshot["status"] == "degraded"
    assert app.dispatch is None


@pytest.mark.asyncio
async def test_health_counts_commands_dropped_while_busy(
    config, transport, devices, clock
) -> None:
    app = CafeControllerApp(config, transport=transport, devices=devices, clock=clock)
    task = asyncio.create_task(app.run())

    try:
        await asyncio.wait_for(_wait_for_ticks(app, 1), timeout=5)
        transport.feed("C3")
        await asyncio.wait_for(_wait_for_ticks(app, app.ticks + 2), timeout=5)

        transport.feed("S1", "W1")
        await asyncio.wait_for(_wait_for_ticks(app, app.ticks + 3), timeout=5)

        snapshot = await app.health.snapshot()
        assert snapshot["machine"]["state"] == "executing"
        assert snapshot["machine"]["kind"] == "Coffee"
        assert snapshot["machine"]["discardedCommands"] == 2
    finally:
        app.request_stop()
        await asyncio.wait_for(task, timeout=5)
