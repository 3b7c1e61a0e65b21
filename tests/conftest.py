from collections import deque
from typing import Deque, List, Optional

import pytest

from cafe_controller.adapters.devices import BenchDevices
from cafe_controller.core.products import ProductCatalog
from cafe_controller.dispatch import DispatchLoop


class FakeClock:
    """Monotonic millisecond clock advanced by hand."""

    def __init__(self, start_ms: int = 10_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, delta_ms: int) -> int:
        self.now_ms += delta_ms
        return self.now_ms


class MemoryTransport:
    """In-memory command link recording everything written to it."""

    def __init__(self) -> None:
        self.incoming: Deque[str] = deque()
        self.written: List[str] = []
        self.reads = 0
        self.opened = False
        self.closed = False

    def feed(self, *lines: str) -> None:
        self.incoming.extend(lines)

    def open(self) -> None:
        self.opened = True

    def close(self) -> None:
        self.closed = True

    def read_line(self) -> Optional[str]:
        self.reads += 1
        if self.incoming:
            return self.incoming.popleft()
        return None

    def write_line(self, text: str) -> None:
        self.written.append(text)

    @property
    def replies(self) -> List[str]:
        return [
            line
            for line in self.written
            if line.startswith("SUCCESS: ") or line.startswith("ERROR: ")
        ]

    @property
    def telemetry(self) -> List[str]:
        return [line for line in self.written if line.startswith("{")]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> MemoryTransport:
    return MemoryTransport()


@pytest.fixture
def devices() -> BenchDevices:
    return BenchDevices.create()


@pytest.fixture
def catalog() -> ProductCatalog:
    return ProductCatalog()


@pytest.fixture
def registry(devices):
    registry = devices.build_registry()
    registry.release_all()
    return registry


@pytest.fixture
def dispatch(transport, registry, catalog, clock) -> DispatchLoop:
    return DispatchLoop.create(
        transport=transport,
        registry=registry,
        catalog=catalog,
        clock=clock,
    )
