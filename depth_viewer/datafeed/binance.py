"""
Binance spot depth adapter.

Handles:
1. REST snapshot from /api/v3/depth
2. Raw `<symbol>@depth` WebSocket stream (diff depth, ~1s cadence)

Combined-stream envelopes ({stream, data}) are unwrapped as well, so the
adapter also works against /stream?streams=... endpoints.
"""

from __future__ import annotations

from typing import Any

from ..errors import DecodeError
from ..types import Entry
from .base import VenueAdapter, levels_to_entries, parse_timestamp

REST_BASE = "https://api.binance.com"
WS_BASE = "wss://stream.binance.com:9443/ws"


class BinanceAdapter(VenueAdapter):
    """
    Usage:
        adapter = BinanceAdapter()
        entries = await adapter.fetch_snapshot(http, "btcusdt", 100)
        handle = adapter.open_stream(http, "btcusdt", on_entries, on_error)
    """

    venue = "binance"
    rest_base = REST_BASE
    ws_base = WS_BASE

    def snapshot_url(self, symbol: str) -> str:
        return f"{self.rest_base}/api/v3/depth"

    def snapshot_params(self, symbol: str, limit: int) -> dict[str, str]:
        return {"symbol": symbol.upper(), "limit": str(limit)}

    def parse_snapshot(self, payload: Any, received_ms: int) -> list[Entry]:
        """
        Expected format: {lastUpdateId, bids: [[price, qty], ...], asks: [[price, qty], ...]}

        The snapshot carries no time of its own, so receipt time is used.
        """
        if not isinstance(payload, dict) or "bids" not in payload or "asks" not in payload:
            raise DecodeError(self.venue, "snapshot without bids/asks")
        return (
            levels_to_entries(self.venue, payload["bids"], received_ms)
            + levels_to_entries(self.venue, payload["asks"], received_ms)
        )

    def stream_url(self, symbol: str) -> str:
        return f"{self.ws_base}/{symbol.lower()}@depth"

    def parse_message(self, payload: Any, received_ms: int) -> list[Entry] | None:
        """
        Expected format: {e: "depthUpdate", E: event_ms, U, u, b: [[price, qty], ...], a: [...]}

        HOT PATH - called for every depth message.
        """
        # Combined stream format: {stream: "...", data: {...}}
        if "stream" in payload and "data" in payload:
            payload = payload["data"]
            if not isinstance(payload, dict):
                raise DecodeError(self.venue, "combined stream without object payload")

        # Reply to a SUBSCRIBE/UNSUBSCRIBE request
        if "result" in payload and "id" in payload:
            return None

        bids, asks = payload.get("b"), payload.get("a")
        if bids is None or asks is None:
            raise DecodeError(self.venue, f"depth message without b/a: {sorted(payload)}")

        timestamp = parse_timestamp(self.venue, payload.get("E"), received_ms)
        return (
            levels_to_entries(self.venue, bids, timestamp)
            + levels_to_entries(self.venue, asks, timestamp)
        )
