"""
Session controller: owns venue streams, the inbound buffer and the
published state.

State machine:
    connecting -> open            snapshots fetched, at least one entry
    connecting -> error           every snapshot empty or failed
    open       -> error           any stream reports a transport failure
    open|error -> connecting      reconnect() or a venue-set change
    *          -> closed          close()

Concurrency model (single asyncio loop):
- Adapters push entry batches into one asyncio.Queue (many producers)
- One consumer task owns the buffer and runs aggregation passes
- Batched mode adds a ticker task that drains the buffer every interval
- Published state is an immutable SessionState swapped by reference

Teardown cancels every task and closes every stream handle before the
next connect starts. Callbacks from a previous connection are ignored.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import time
from typing import Callable, Iterable

import aiohttp

from .config import SessionConfig
from .datafeed.base import StreamHandle, VenueAdapter, now_ms
from .datafeed.registry import AdapterRegistry, default_registry
from .engine.aggregator import Aggregator, filter_window
from .errors import EmptyResultError, TransportError
from .types import AggregateView, Entry, SessionState, SessionStatus, VenueId

logger = logging.getLogger(__name__)

# Upper bound on buffered entries; oldest are dropped beyond this
MAX_BUFFER_ENTRIES = 250_000


class DepthSession:
    """
    Aggregated depth over a set of venues.

    Usage:
        async with DepthSession(SessionConfig(venues=("binance", "okx"))) as session:
            state = session.state  # bids, asks, pressure_zones, status, error, ...
            await session.set_venues(["binance"])
            await session.reconnect()
    """

    def __init__(
        self,
        config: SessionConfig,
        registry: AdapterRegistry | None = None,
        http: aiohttp.ClientSession | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.config = config.validate()
        self.registry = registry if registry is not None else default_registry()
        self._http = http
        self._owns_http = http is None
        self._clock = clock

        self._aggregator = Aggregator(
            config.window_ms,
            detect_zones=config.detect_zones,
            zone_share=config.zone_share,
            scan_radius=config.scan_radius,
            growth_ratio=config.growth_ratio,
        )

        # Connection state
        self._status = SessionStatus.CONNECTING
        self._error: str | None = None
        self._handles: list[StreamHandle] = []
        self._generation = 0
        self._lifecycle = asyncio.Lock()

        # Inbound path: adapters -> inbox -> consumer -> buffer
        self._inbox: asyncio.Queue[list[Entry]] | None = None
        self._buffer: list[Entry] = []
        self._consumer: asyncio.Task | None = None
        self._ticker: asyncio.Task | None = None

        # Published state and thread-safe hand-off queues for UI consumers
        self._state = self._make_state()
        self._subscribers: list[queue.Queue[SessionState]] = []

    # --- read side -----------------------------------------------------

    @property
    def state(self) -> SessionState:
        """Latest published state. Always internally consistent."""
        return self._state

    @property
    def status(self) -> SessionStatus:
        return self._state.status

    @property
    def error(self) -> str | None:
        return self._state.error

    @property
    def view(self) -> AggregateView:
        return self._state.view

    @property
    def handles(self) -> tuple[StreamHandle, ...]:
        return tuple(self._handles)

    def subscribe(self, maxsize: int = 5) -> queue.Queue[SessionState]:
        """
        Queue receiving every published state.

        Uses queue.Queue so a consumer on another thread can read it. When the
        queue is full the oldest state is dropped in favour of the newest.
        """
        q: queue.Queue[SessionState] = queue.Queue(maxsize=maxsize)
        self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[SessionState]) -> None:
        if q in self._subscribers:
            self._subscribers.remove(q)

    # --- lifecycle -----------------------------------------------------

    async def start(self) -> SessionState:
        """Fetch snapshots and open streams for the configured venues."""
        async with self._lifecycle:
            await self._restart()
        return self._state

    async def reconnect(self) -> SessionState:
        """Close every stream and connect again from scratch."""
        async with self._lifecycle:
            logger.info("Reconnecting %s", ", ".join(self.config.venues))
            await self._restart()
        return self._state

    async def set_venues(self, venues: Iterable[VenueId]) -> SessionState:
        """
        Switch to a new venue set.

        Any change restarts every stream, including those of venues that stay
        selected. An unchanged set is a no-op.
        """
        new_config = self.config.with_venues(list(venues)).validate()
        async with self._lifecycle:
            if set(new_config.venues) == set(self.config.venues) and self._handles:
                return self._state
            self.config = new_config
            await self._restart()
        return self._state

    async def set_window(self, window: str) -> SessionState:
        """Change the trailing window; takes effect on the next pass."""
        new_config = self.config._replace(window=window).validate()
        self.config = new_config
        self._aggregator.window_ms = new_config.window_ms
        if self._status is not SessionStatus.CLOSED and self.config.real_time and self._buffer:
            self._run_pass()
        return self._state

    async def set_real_time(self, real_time: bool) -> None:
        """Switch between per-batch passes and fixed-interval batched passes."""
        if real_time == self.config.real_time:
            return
        self.config = self.config._replace(real_time=real_time)
        if self._consumer is None:
            return
        if real_time:
            await self._cancel_task(self._ticker)
            self._ticker = None
        else:
            self._ticker = self._spawn(self._tick(self._generation), "depth-ticker")

    async def set_detect_zones(self, enabled: bool) -> None:
        self.config = self.config._replace(detect_zones=enabled)
        self._aggregator.detect_zones = enabled

    async def close(self) -> None:
        """Tear everything down. The session ends in the closed state."""
        async with self._lifecycle:
            await self._teardown()
            self._status = SessionStatus.CLOSED
            self._publish()
            if self._owns_http and self._http is not None:
                await self._http.close()
                self._http = None

    async def __aenter__(self) -> DepthSession:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- connect / teardown --------------------------------------------

    async def _restart(self) -> None:
        """Teardown, then connect. A failed connect leaves the session in error."""
        await self._teardown()
        try:
            await self._connect()
        except Exception as exc:
            logger.exception("Connect failed")
            await self._teardown()
            self._aggregator.reset()
            self._status = SessionStatus.ERROR
            self._error = f"connect failed: {exc}"
            self._publish()
            raise

    async def _connect(self) -> None:
        self._generation += 1
        generation = self._generation

        self._status = SessionStatus.CONNECTING
        self._error = None
        self._publish()

        http = self._ensure_http()
        adapters = self._resolve_adapters()

        # Venues are fetched one after another; a failure only empties that venue
        snapshot: list[Entry] = []
        for venue, adapter in adapters:
            symbol = self.config.symbol_for(venue)
            try:
                entries = await adapter.fetch_snapshot(http, symbol, self.config.snapshot_limit)
            except TransportError as exc:
                logger.error("Snapshot failed: %s", exc)
                continue
            logger.info("[%s] Snapshot for %s: %d entries", venue, symbol, len(entries))
            snapshot.extend(entries)

        if not snapshot:
            error = EmptyResultError(self.config.venues)
            logger.error("%s", error)
            self._aggregator.reset()
            self._buffer = []
            self._status = SessionStatus.ERROR
            self._error = str(error)
            self._publish()
            return

        self._buffer = snapshot
        self._aggregator.run(tuple(self._buffer), self._clock())

        self._inbox = asyncio.Queue()
        self._consumer = self._spawn(self._consume(generation, self._inbox), "depth-consumer")
        if not self.config.real_time:
            self._ticker = self._spawn(self._tick(generation), "depth-ticker")

        for venue, adapter in adapters:
            handle = adapter.open_stream(
                http,
                self.config.symbol_for(venue),
                self._entries_callback(generation),
                self._error_callback(generation),
            )
            self._handles.append(handle)

        self._status = SessionStatus.OPEN
        self._publish()

    async def _teardown(self) -> None:
        # Bumping the generation silences callbacks from the old streams
        self._generation += 1

        handles, self._handles = self._handles, []
        if handles:
            results = await asyncio.gather(*(h.close() for h in handles), return_exceptions=True)
            for handle, result in zip(handles, results):
                if isinstance(result, Exception):
                    logger.error("Closing %r failed: %r", handle, result)
            logger.info("Closed %d stream(s)", len(handles))

        await self._cancel_task(self._ticker)
        await self._cancel_task(self._consumer)
        self._ticker = None
        self._consumer = None
        self._inbox = None
        self._buffer = []

    def _resolve_adapters(self) -> list[tuple[VenueId, VenueAdapter]]:
        adapters: list[tuple[VenueId, VenueAdapter]] = []
        for venue in self.config.venues:
            if venue not in self.registry:
                logger.warning("No adapter registered for venue %r, skipping", venue)
                continue
            adapters.append((venue, self.registry.get(venue)))
        return adapters

    def _ensure_http(self) -> aiohttp.ClientSession:
        if self._http is None:
            self._http = aiohttp.ClientSession()
            self._owns_http = True
        return self._http

    # --- inbound path --------------------------------------------------

    def _entries_callback(self, generation: int) -> Callable[[list[Entry]], None]:
        def on_entries(entries: list[Entry]) -> None:
            if generation != self._generation or self._inbox is None:
                return
            self._inbox.put_nowait(entries)
        return on_entries

    def _error_callback(self, generation: int) -> Callable[[TransportError], None]:
        def on_error(error: TransportError) -> None:
            if generation != self._generation:
                return
            # Sibling streams keep running until reconnect()
            self._status = SessionStatus.ERROR
            self._error = str(error)
            self._publish()
        return on_error

    async def _consume(self, generation: int, inbox: asyncio.Queue[list[Entry]]) -> None:
        """
        Single owner of the buffer. Real-time mode runs one pass per batch.

        Real-time passes keep the buffer (pruned to the window) so the view
        covers the whole window; batched mode instead clears it on each tick.
        """
        while generation == self._generation:
            batch = await inbox.get()
            self._append(batch)
            if self.config.real_time:
                self._run_pass()

    async def _tick(self, generation: int) -> None:
        """Batched mode: drain and process the buffer on a fixed period."""
        while generation == self._generation:
            await asyncio.sleep(self.config.batch_interval)
            drained, self._buffer = self._buffer, []
            if drained:
                self._run_pass(drained)

    def _append(self, batch: list[Entry]) -> None:
        self._buffer.extend(batch)
        overflow = len(self._buffer) - MAX_BUFFER_ENTRIES
        if overflow > 0:
            del self._buffer[:overflow]

    def _run_pass(self, entries: list[Entry] | None = None) -> AggregateView:
        """Aggregate a copy of the buffer (or `entries`) and publish it."""
        now = self._clock()
        snapshot = tuple(self._buffer if entries is None else entries)

        start = time.perf_counter()
        view = self._aggregator.run(snapshot, now)
        elapsed_ms = (time.perf_counter() - start) * 1000

        if entries is None:
            # Entries that left the window can never come back into it
            self._buffer = filter_window(self._buffer, self._aggregator.window_ms, now)

        logger.debug(
            "Pass: %d entries -> %d bids, %d asks, %d zones in %.2fms",
            len(snapshot), len(view.bids), len(view.asks), len(view.pressure_zones), elapsed_ms,
        )
        self._publish()
        return view

    # --- publication ---------------------------------------------------

    def _make_state(self) -> SessionState:
        return SessionState(
            view=self._aggregator.view,
            status=self._status,
            error=self._error,
            venues=self.config.venues,
            window=self.config.window,
        )

    def _publish(self) -> None:
        state = self._make_state()
        self._state = state

        # Non-blocking put (drop oldest if full)
        for q in self._subscribers:
            try:
                q.put_nowait(state)
            except queue.Full:
                try:
                    q.get_nowait()
                except queue.Empty:
                    pass
                q.put_nowait(state)

    # --- task helpers --------------------------------------------------

    def _spawn(self, coro, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_worker_done)
        return task

    def _on_worker_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("%s failed", task.get_name(), exc_info=exc)
        self._status = SessionStatus.ERROR
        self._error = f"{task.get_name()} failed: {exc}"
        self._publish()

    @staticmethod
    async def _cancel_task(task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
