"""
Data types for Depth Viewer.

Performance notes:
- Using NamedTuple for immutable, memory-efficient structures
- Sequences inside published values are tuples so a view can be shared
  across threads without copying
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

# Venues are an open set: any string with a registered adapter is valid
VenueId = str


class Entry(NamedTuple):
    """One normalized price/quantity observation from a venue."""
    price: float
    quantity: float   # Always > 0, deletions never become entries
    venue: VenueId
    timestamp: int    # Milliseconds since epoch


class ZoneType(str, Enum):
    BID = "bid"
    ASK = "ask"


class PressureZone(NamedTuple):
    """
    Contiguous run of integer price buckets holding heavy resting volume.

    Recomputed from scratch on every aggregation pass.
    """
    min_price: float
    max_price: float
    total_volume: float       # Sum of quantities of `entries`
    pressure_score: float     # total_volume * (max_price - min_price + 1)
    type: ZoneType
    entries: tuple[Entry, ...]


class AggregateView(NamedTuple):
    """
    Complete aggregated depth snapshot for consumers.

    Replaced as a whole on every pass; never mutated in place.
    """
    bids: tuple[Entry, ...]                   # Price descending
    asks: tuple[Entry, ...]                   # Price ascending
    pressure_zones: tuple[PressureZone, ...]  # Score descending
    min_price: float
    max_price: float
    max_quantity: float
    last_updated: int

    @classmethod
    def empty(cls, now_ms: int = 0) -> AggregateView:
        """Zeroed view used before the first pass and for empty windows."""
        return cls((), (), (), 0.0, 0.0, 0.0, now_ms)

    @property
    def is_empty(self) -> bool:
        return not self.bids and not self.asks


class SessionStatus(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"
    ERROR = "error"


class SessionState(NamedTuple):
    """
    What the presentation layer reads: the latest view plus connection status.

    Pushed to subscriber queues on every publish.
    """
    view: AggregateView
    status: SessionStatus
    error: str | None
    venues: tuple[VenueId, ...] = ()
    window: str = ""

    @property
    def bids(self) -> tuple[Entry, ...]:
        return self.view.bids

    @property
    def asks(self) -> tuple[Entry, ...]:
        return self.view.asks

    @property
    def pressure_zones(self) -> tuple[PressureZone, ...]:
        return self.view.pressure_zones

    @property
    def min_price(self) -> float:
        return self.view.min_price

    @property
    def max_price(self) -> float:
        return self.view.max_price

    @property
    def max_quantity(self) -> float:
        return self.view.max_quantity

    @property
    def last_updated(self) -> int:
        return self.view.last_updated
