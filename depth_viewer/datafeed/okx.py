"""
OKX depth adapter (v5 public API).

Handles:
1. REST snapshot from /api/v5/market/books
2. `books` channel subscription on the public WebSocket
"""

from __future__ import annotations

from typing import Any

from ..errors import DecodeError, TransportError
from ..types import Entry
from .base import VenueAdapter, levels_to_entries, parse_timestamp

REST_BASE = "https://www.okx.com"
WS_BASE = "wss://ws.okx.com:8443/ws/v5/public"

CHANNEL = "books"


class OkxAdapter(VenueAdapter):
    """Levels arrive as [price, qty, deprecated, num_orders] string tuples."""

    venue = "okx"
    rest_base = REST_BASE
    ws_base = WS_BASE

    def snapshot_url(self, symbol: str) -> str:
        return f"{self.rest_base}/api/v5/market/books"

    def snapshot_params(self, symbol: str, limit: int) -> dict[str, str]:
        return {"instId": symbol, "sz": str(limit)}

    def _book_entries(self, book: Any, received_ms: int) -> list[Entry]:
        if not isinstance(book, dict):
            raise DecodeError(self.venue, "book payload is not an object")
        timestamp = parse_timestamp(self.venue, book.get("ts"), received_ms)
        return (
            levels_to_entries(self.venue, book.get("bids") or [], timestamp)
            + levels_to_entries(self.venue, book.get("asks") or [], timestamp)
        )

    def parse_snapshot(self, payload: Any, received_ms: int) -> list[Entry]:
        """Expected format: {code: "0", msg, data: [{asks, bids, ts}]}"""
        if not isinstance(payload, dict):
            raise DecodeError(self.venue, "snapshot is not an object")
        if str(payload.get("code", "0")) != "0":
            raise DecodeError(self.venue, f"error response: {payload.get('msg')!r}")
        data = payload.get("data")
        if not data:
            raise DecodeError(self.venue, "No data in OKX response")
        return self._book_entries(data[0], received_ms)

    def stream_url(self, symbol: str) -> str:
        return self.ws_base

    def subscribe_message(self, symbol: str) -> dict[str, Any]:
        return {"op": "subscribe", "args": [{"channel": CHANNEL, "instId": symbol}]}

    def parse_message(self, payload: Any, received_ms: int) -> list[Entry] | None:
        """
        Expected format: {arg, action: "snapshot"|"update", data: [{asks, bids, ts, checksum}]}

        HOT PATH - called for every book message.
        """
        event = payload.get("event")
        if event == "error":
            raise TransportError(self.venue, f"subscription rejected: {payload.get('msg')!r}")
        if event is not None:
            # subscribe / unsubscribe / login acknowledgements
            return None

        data = payload.get("data")
        if data is None:
            raise DecodeError(self.venue, f"message without data: {sorted(payload)}")
        if not isinstance(data, list):
            raise DecodeError(self.venue, "data is not a list")

        entries: list[Entry] = []
        for book in data:
            entries.extend(self._book_entries(book, received_ms))
        return entries
