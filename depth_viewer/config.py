"""
Session configuration.

The engine never reads these constants directly: DepthSession receives a
SessionConfig and passes the relevant numbers down to each pass.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, NamedTuple

from .types import VenueId

# Selectable trailing windows, in milliseconds
WINDOWS: dict[str, int] = {
    "1m": 60 * 1000,
    "5m": 5 * 60 * 1000,
    "15m": 15 * 60 * 1000,
    "1h": 60 * 60 * 1000,
}
DEFAULT_WINDOW = "1m"

# Each venue spells the same pair differently
DEFAULT_SYMBOLS: dict[VenueId, str] = {
    "binance": "btcusdt",
    "okx": "BTC-USDT",
    "bybit": "BTCUSDT",
}
FALLBACK_SYMBOL = "BTCUSDT"

# Pressure-zone heuristics
ZONE_THRESHOLD_SHARE = 0.2   # Seed threshold as a share of max single-entry quantity
ZONE_SCAN_RADIUS = 5         # Buckets scanned on each side of a seed
ZONE_GROWTH_RATIO = 0.5      # Neighbour threshold as a share of the seed threshold

DEFAULT_SNAPSHOT_LIMIT = 100
DEFAULT_BATCH_INTERVAL_SEC = 1.0


def window_ms(window: str) -> int:
    """Resolve a window id ("1m", "5m", "15m", "1h") to milliseconds."""
    try:
        return WINDOWS[window]
    except KeyError:
        raise ValueError(
            f"Unknown window {window!r}; expected one of {', '.join(WINDOWS)}"
        ) from None


class SessionConfig(NamedTuple):
    """Everything DepthSession needs to know about what to aggregate."""
    venues: tuple[VenueId, ...] = ("binance",)
    window: str = DEFAULT_WINDOW
    real_time: bool = True
    detect_zones: bool = True
    symbols: Mapping[VenueId, str] = MappingProxyType({})
    snapshot_limit: int = DEFAULT_SNAPSHOT_LIMIT
    batch_interval: float = DEFAULT_BATCH_INTERVAL_SEC
    zone_share: float = ZONE_THRESHOLD_SHARE
    scan_radius: int = ZONE_SCAN_RADIUS
    growth_ratio: float = ZONE_GROWTH_RATIO

    @property
    def window_ms(self) -> int:
        return window_ms(self.window)

    def symbol_for(self, venue: VenueId) -> str:
        """Symbol to request from `venue`: explicit override, then venue default."""
        if venue in self.symbols:
            return self.symbols[venue]
        return DEFAULT_SYMBOLS.get(venue, FALLBACK_SYMBOL)

    def with_venues(self, venues: tuple[VenueId, ...] | list[VenueId]) -> SessionConfig:
        # dict.fromkeys keeps the caller's order while dropping duplicates
        return self._replace(venues=tuple(dict.fromkeys(venues)))

    def validate(self) -> SessionConfig:
        """Raise ValueError if the configuration cannot drive a session."""
        if not self.venues:
            raise ValueError("At least one venue must be selected")
        window_ms(self.window)
        if self.snapshot_limit <= 0:
            raise ValueError(f"snapshot_limit must be > 0, got {self.snapshot_limit}")
        if self.batch_interval <= 0:
            raise ValueError(f"batch_interval must be > 0, got {self.batch_interval}")
        if self.scan_radius < 0:
            raise ValueError(f"scan_radius must be >= 0, got {self.scan_radius}")
        return self
