"""
Bybit spot depth adapter (v5 API).

Handles:
1. REST snapshot from /v5/market/orderbook (category=spot)
2. `orderbook.<depth>.<symbol>` subscription on the public spot WebSocket
"""

from __future__ import annotations

from typing import Any

from ..errors import DecodeError, TransportError
from ..types import Entry
from .base import VenueAdapter, levels_to_entries, parse_timestamp

REST_BASE = "https://api.bybit.com"
WS_BASE = "wss://stream.bybit.com/v5/public/spot"

STREAM_DEPTH = 50
CATEGORY = "spot"


class BybitAdapter(VenueAdapter):
    """Levels arrive as [price, qty] string pairs under `b` / `a`."""

    venue = "bybit"
    rest_base = REST_BASE
    ws_base = WS_BASE

    def snapshot_url(self, symbol: str) -> str:
        return f"{self.rest_base}/v5/market/orderbook"

    def snapshot_params(self, symbol: str, limit: int) -> dict[str, str]:
        return {"category": CATEGORY, "symbol": symbol, "limit": str(limit)}

    def parse_snapshot(self, payload: Any, received_ms: int) -> list[Entry]:
        """Expected format: {retCode: 0, retMsg, result: {s, b, a, ts, u}, time}"""
        if not isinstance(payload, dict):
            raise DecodeError(self.venue, "snapshot is not an object")
        if payload.get("retCode", 0) != 0:
            raise DecodeError(self.venue, f"error response: {payload.get('retMsg')!r}")
        book = payload.get("result")
        if not isinstance(book, dict) or "b" not in book or "a" not in book:
            raise DecodeError(self.venue, "No data in Bybit response")

        timestamp = parse_timestamp(self.venue, book.get("ts"), received_ms)
        return (
            levels_to_entries(self.venue, book["b"], timestamp)
            + levels_to_entries(self.venue, book["a"], timestamp)
        )

    def stream_url(self, symbol: str) -> str:
        return self.ws_base

    def subscribe_message(self, symbol: str) -> dict[str, Any]:
        return {"op": "subscribe", "args": [f"orderbook.{STREAM_DEPTH}.{symbol}"]}

    def parse_message(self, payload: Any, received_ms: int) -> list[Entry] | None:
        """
        Expected format: {topic: "orderbook.50.BTCUSDT", type, ts, data: {s, b, a, u, seq}}

        HOT PATH - called for every book message.
        """
        topic = payload.get("topic")
        if topic is None:
            # Command replies: {"success": bool, "ret_msg": ..., "op": "subscribe"|"pong"}
            if payload.get("success") is False:
                raise TransportError(
                    self.venue, f"subscription rejected: {payload.get('ret_msg')!r}"
                )
            if "op" in payload or "success" in payload:
                return None
            raise DecodeError(self.venue, f"message without topic: {sorted(payload)}")

        if not str(topic).startswith("orderbook"):
            return None

        book = payload.get("data")
        if not isinstance(book, dict):
            raise DecodeError(self.venue, "orderbook message without data")

        timestamp = parse_timestamp(self.venue, payload.get("ts"), received_ms)
        return (
            levels_to_entries(self.venue, book.get("b") or [], timestamp)
            + levels_to_entries(self.venue, book.get("a") or [], timestamp)
        )
