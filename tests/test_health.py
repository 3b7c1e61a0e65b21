import aiohttp
import pytest

from cafe_controller.health import HealthReporter, HealthServer


@pytest.mark.asyncio
async def test_health_reporter_snapshot():
    reporter = HealthReporter()

    await reporter.update("serial", True)
    await reporter.update("telemetry", False, "stopped")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    components = {item["name"]: item for item in snapshot["components"]}
    assert components["serial"]["healthy"] is True
    assert components["telemetry"]["detail"] == "stopped"
    assert "machine" not in snapshot


@pytest.mark.asyncio
async def test_health_reporter_tracks_machine_and_stock():
    reporter = HealthReporter()

    await reporter.update("serial", True)
    await reporter.set_machine_state("executing", kind="Sugar", discarded_commands=2)
    await reporter.set_stock({"sugar": "High", "water": "Low"})

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["machine"]["state"] == "executing"
    assert snapshot["machine"]["kind"] == "Sugar"
    assert snapshot["machine"]["discardedCommands"] == 2
    assert snapshot["stock"] == {"sugar": "High", "water": "Low"}


@pytest.mark.asyncio
async def test_health_server_serves_snapshot(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.update("serial", True)

    host = "127.0.0.1"
    port = unused_tcp_port
    server = HealthServer(reporter, host, port)
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/healthz") as response:
                payload = await response.json()
                assert response.status == 200
                assert payload["status"] == "ok"

            await reporter.update("serial", False, "port closed")
            async with session.get(f"http://{host}:{port}/healthz") as response:
                assert response.status == 503
    finally:
        await server.stop()
