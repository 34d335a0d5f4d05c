"""Shared fixtures and fakes for depth_viewer tests."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from depth_viewer.datafeed.base import StreamHandle, VenueAdapter
from depth_viewer.datafeed.registry import AdapterRegistry
from depth_viewer.errors import TransportError
from depth_viewer.types import Entry

NOW_MS = 1_700_000_000_000
MINUTE_MS = 60_000


class FakeClock:
    """Controllable millisecond clock."""

    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class FakeAdapter(VenueAdapter):
    """In-memory adapter: canned snapshot, streams driven by push()/fail()."""

    def __init__(
        self,
        venue: str,
        snapshot: list[Entry] | None = None,
        fail_snapshot: bool = False,
    ) -> None:
        super().__init__()
        self.venue = venue
        self.snapshot = list(snapshot or [])
        self.fail_snapshot = fail_snapshot
        self.fetch_calls = 0
        self.handles: list[StreamHandle] = []
        self.on_entries: Callable[[list[Entry]], None] | None = None
        self.on_error: Callable[[TransportError], None] | None = None
        self._crash: asyncio.Event | None = None

    def snapshot_url(self, symbol: str) -> str:
        return f"memory://{self.venue}/depth"

    def snapshot_params(self, symbol: str, limit: int) -> dict[str, str]:
        return {"symbol": symbol, "limit": str(limit)}

    def parse_snapshot(self, payload: Any, received_ms: int) -> list[Entry]:
        return list(payload)

    def stream_url(self, symbol: str) -> str:
        return f"memory://{self.venue}/stream"

    def parse_message(self, payload: Any, received_ms: int) -> list[Entry] | None:
        return list(payload)

    async def fetch_snapshot(self, session, symbol: str, limit: int) -> list[Entry]:
        self.fetch_calls += 1
        if self.fail_snapshot:
            raise TransportError(self.venue, "HTTP error! status: 503")
        return list(self.snapshot)

    def open_stream(self, session, symbol, on_entries, on_error) -> StreamHandle:
        crash = asyncio.Event()

        async def run() -> None:
            await crash.wait()
            raise RuntimeError("stream task crashed")

        handle = StreamHandle(self.venue, symbol, asyncio.create_task(run()))
        self.handles.append(handle)
        self._crash = crash
        self.on_entries = on_entries
        self.on_error = on_error
        return handle

    def push(self, entries: list[Entry]) -> None:
        assert self.on_entries is not None
        self.on_entries(list(entries))

    def fail(self, message: str = "stream error") -> None:
        assert self.on_error is not None
        self.on_error(TransportError(self.venue, message))

    def crash(self) -> None:
        """Make the latest stream task die without reporting through on_error."""
        self._crash.set()


def make_entry(price: float, quantity: float, venue: str = "binance", timestamp: int = NOW_MS) -> Entry:
    return Entry(price, quantity, venue, timestamp)


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    """Poll `predicate` until it holds.

    Raises:
        AssertionError: If the predicate is still false after `timeout_s`.
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    while (loop.time() - start) < timeout_s:
        if predicate():
            return
        await asyncio.sleep(0.01)
    raise AssertionError("Timed out waiting for condition")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def binance() -> FakeAdapter:
    return FakeAdapter("binance", [make_entry(100.0, 5.0), make_entry(101.0, 3.0)])


@pytest.fixture
def okx() -> FakeAdapter:
    return FakeAdapter("okx", [make_entry(99.0, 8.0, venue="okx")])


@pytest.fixture
def registry(binance: FakeAdapter, okx: FakeAdapter) -> AdapterRegistry:
    return AdapterRegistry({"binance": binance, "okx": okx})
