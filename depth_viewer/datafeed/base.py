"""
Shared venue adapter machinery.

Every venue speaks a different dialect of the same thing:
1. REST snapshot of the current book
2. WebSocket stream of book snapshots/deltas

Subclasses only describe URLs and payload shapes; fetching, streaming,
JSON decoding and error mapping live here.

Performance notes:
- Uses orjson for fast JSON parsing
- Minimal logging in hot path (only dropped messages are logged)
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable

import aiohttp
import orjson

from ..errors import DecodeError, TransportError
from ..types import Entry, VenueId

logger = logging.getLogger(__name__)

EntriesCallback = Callable[[list[Entry]], None]
ErrorCallback = Callable[[TransportError], None]

DEFAULT_TIMEOUT_SEC = 10.0
HEARTBEAT_SEC = 20.0

# What a venue parser raises when valid JSON has the wrong shape
MALFORMED_PAYLOAD_ERRORS = (TypeError, ValueError, KeyError, IndexError, AttributeError)


def now_ms() -> int:
    """Local wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def levels_to_entries(
    venue: VenueId,
    levels: Any,
    timestamp: int,
) -> list[Entry]:
    """
    Normalize [[price, qty, ...], ...] string pairs into entries.

    Zero-quantity levels are deletions and are dropped: a windowed depth
    view has nothing to show for them.

    Raises DecodeError if `levels` is not a list or a level is not a
    numeric pair.
    """
    if not isinstance(levels, (list, tuple)):
        raise DecodeError(venue, f"levels are not a list: {levels!r}")

    entries: list[Entry] = []
    for level in levels:
        if not isinstance(level, (list, tuple)) or len(level) < 2:
            raise DecodeError(venue, f"bad level {level!r}")
        try:
            price, qty = float(level[0]), float(level[1])
        except (TypeError, ValueError) as exc:
            raise DecodeError(venue, f"bad level {level!r}: {exc}") from exc
        if qty > 0:
            entries.append(Entry(price, qty, venue, timestamp))
    return entries


def parse_timestamp(venue: VenueId, value: Any, fallback: int) -> int:
    """Venue timestamp in ms (int or numeric string), or `fallback` if absent."""
    if value is None or value == "":
        return fallback
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise DecodeError(venue, f"bad timestamp {value!r}") from exc


class StreamHandle:
    """
    Live stream for one venue/symbol.

    Wraps the task running the WebSocket loop. Closing cancels the task and
    waits for it, so nothing outlives the handle. Never reconnects by itself.
    """

    __slots__ = ('venue', 'symbol', '_task')

    def __init__(self, venue: VenueId, symbol: str, task: asyncio.Task) -> None:
        self.venue = venue
        self.symbol = symbol
        self._task = task

    @property
    def closed(self) -> bool:
        return self._task.done()

    async def close(self) -> None:
        """
        Cancel the stream task and wait for it to finish.

        A task that already died is reaped here; its failure is logged, not
        re-raised, so closing never fails.
        """
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("[%s] Stream task for %s had failed", self.venue, self.symbol)

    def __repr__(self) -> str:
        state = "closed" if self.closed else "open"
        return f"StreamHandle({self.venue!r}, {self.symbol!r}, {state})"


class VenueAdapter(ABC):
    """
    Async adapter turning one venue's feed into normalized entries.

    Holds no state between calls; the only long-lived resource is the
    stream task owned by each StreamHandle.
    """

    venue: VenueId = ""
    rest_base: str = ""
    ws_base: str = ""

    def __init__(
        self,
        rest_base: str | None = None,
        ws_base: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SEC,
    ) -> None:
        if rest_base is not None:
            self.rest_base = rest_base.rstrip("/")
        if ws_base is not None:
            self.ws_base = ws_base.rstrip("/")
        self.timeout = timeout

    # --- venue dialect -------------------------------------------------

    @abstractmethod
    def snapshot_url(self, symbol: str) -> str:
        """REST depth endpoint."""

    @abstractmethod
    def snapshot_params(self, symbol: str, limit: int) -> dict[str, str]:
        """Query parameters for the depth endpoint."""

    @abstractmethod
    def parse_snapshot(self, payload: Any, received_ms: int) -> list[Entry]:
        """Normalize a decoded REST payload. Raises DecodeError if malformed."""

    @abstractmethod
    def stream_url(self, symbol: str) -> str:
        """WebSocket endpoint for the symbol's depth stream."""

    def subscribe_message(self, symbol: str) -> dict[str, Any] | None:
        """Message sent right after connecting, if the venue needs one."""
        return None

    @abstractmethod
    def parse_message(self, payload: Any, received_ms: int) -> list[Entry] | None:
        """
        Normalize a decoded stream message.

        Returns None for acknowledgements and heartbeats. Raises DecodeError
        for malformed data, TransportError for venue-reported stream failures.
        """

    # --- shared mechanics ----------------------------------------------

    async def fetch_snapshot(
        self,
        session: aiohttp.ClientSession,
        symbol: str,
        limit: int,
    ) -> list[Entry]:
        """
        Fetch the current book via REST.

        Raises TransportError on network failure, non-2xx status, or a
        payload that cannot be normalized.
        """
        url = self.snapshot_url(symbol)
        params = self.snapshot_params(symbol, limit)
        try:
            async with session.get(
                url,
                params=params,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            ) as resp:
                if not 200 <= resp.status < 300:
                    raise TransportError(self.venue, f"HTTP error! status: {resp.status}")
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(self.venue, f"snapshot request failed: {exc!r}") from exc

        try:
            payload = orjson.loads(data)
            return self.parse_snapshot(payload, now_ms())
        except orjson.JSONDecodeError as exc:
            raise TransportError(self.venue, f"malformed snapshot: {exc}") from exc
        except DecodeError as exc:
            raise TransportError(self.venue, f"malformed snapshot: {exc}") from exc
        except MALFORMED_PAYLOAD_ERRORS as exc:
            raise TransportError(self.venue, f"malformed snapshot: {exc!r}") from exc

    def decode(self, raw: bytes | str, received_ms: int | None = None) -> list[Entry] | None:
        """Decode one raw stream frame. Raises DecodeError if it is unusable."""
        if received_ms is None:
            received_ms = now_ms()
        try:
            payload = orjson.loads(raw)
        except orjson.JSONDecodeError as exc:
            raise DecodeError(self.venue, f"invalid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise DecodeError(self.venue, f"unexpected message type {type(payload).__name__}")
        try:
            return self.parse_message(payload, received_ms)
        except MALFORMED_PAYLOAD_ERRORS as exc:
            raise DecodeError(self.venue, f"malformed message: {exc!r}") from exc

    def open_stream(
        self,
        session: aiohttp.ClientSession,
        symbol: str,
        on_entries: EntriesCallback,
        on_error: ErrorCallback,
    ) -> StreamHandle:
        """
        Start streaming `symbol` in a background task.

        `on_entries` receives each non-empty decoded batch in message order.
        `on_error` is called once if the stream fails; the task then ends.
        """
        task = asyncio.create_task(
            self._run_stream(session, symbol, on_entries, on_error),
            name=f"{self.venue}-{symbol}-stream",
        )
        return StreamHandle(self.venue, symbol, task)

    async def _run_stream(
        self,
        session: aiohttp.ClientSession,
        symbol: str,
        on_entries: EntriesCallback,
        on_error: ErrorCallback,
    ) -> None:
        url = self.stream_url(symbol)
        try:
            async with session.ws_connect(url, heartbeat=HEARTBEAT_SEC) as ws:
                logger.info("[%s] Connected stream for %s", self.venue, symbol)

                subscribe = self.subscribe_message(symbol)
                if subscribe is not None:
                    await ws.send_str(orjson.dumps(subscribe).decode())

                async for msg in ws:
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self._handle_frame(msg.data, on_entries)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        raise TransportError(self.venue, f"stream error: {ws.exception()!r}")

            # The iterator only ends when the venue closed the socket
            raise TransportError(self.venue, "stream closed by venue")

        except asyncio.CancelledError:
            logger.info("[%s] Disconnected stream for %s", self.venue, symbol)
            raise
        except TransportError as exc:
            logger.error("%s", exc)
            on_error(exc)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            error = TransportError(self.venue, f"stream failure: {exc!r}")
            logger.error("%s", error)
            on_error(error)
        except Exception as exc:
            # Unexpected failure: the stream is over, report it like any other
            error = TransportError(self.venue, f"stream crashed: {exc!r}")
            logger.exception("%s", error)
            on_error(error)

    def _handle_frame(self, raw: bytes | str, on_entries: EntriesCallback) -> None:
        """
        Decode one frame and forward its entries.

        HOT PATH - called for every stream message. A bad message is dropped;
        the stream keeps going.
        """
        try:
            entries = self.decode(raw)
        except DecodeError as exc:
            logger.warning("Dropping message: %s", exc)
            return
        if entries:
            on_entries(entries)
