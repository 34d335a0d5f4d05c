"""
Windowed multi-venue aggregation engine.

HOT PATH: aggregate() runs on every buffered batch in real-time mode and once
per second in batched mode.

Each pass is a pure function of (entries, window, now):
1. Drop entries outside the trailing window (hard cutoff, strict <)
2. Group by venue and take each venue's mean price as its "mid"
3. Split into bids (price < mid) and asks, stable-sorted for depth display
4. Cluster each venue into pressure zones and merge them by score

The venue mean is a crude splitter, not the real top of book. Snapshots and
deltas mix many levels without a best bid/ask marker, so entries near the
mean can land on the wrong side.
"""

from __future__ import annotations

from operator import attrgetter
from typing import Iterable, Sequence

import numpy as np

from ..config import ZONE_GROWTH_RATIO, ZONE_SCAN_RADIUS, ZONE_THRESHOLD_SHARE
from ..types import AggregateView, Entry, VenueId
from .zones import detect_all

# A venue needs at least this many entries before its own mean is trusted
MIN_MID_ENTRIES = 2

_by_price = attrgetter("price")


def filter_window(entries: Iterable[Entry], window_ms: int, now_ms: int) -> list[Entry]:
    """Keep entries strictly younger than the window."""
    return [e for e in entries if now_ms - e.timestamp < window_ms]


def group_by_venue(entries: Iterable[Entry]) -> dict[VenueId, list[Entry]]:
    """Group entries by venue, preserving first-seen venue and entry order."""
    groups: dict[VenueId, list[Entry]] = {}
    for entry in entries:
        groups.setdefault(entry.venue, []).append(entry)
    return groups


def venue_mid_prices(groups: dict[VenueId, list[Entry]]) -> dict[VenueId, float]:
    """Mean price per venue, skipping venues too thin to have one."""
    return {
        venue: float(np.mean([e.price for e in group]))
        for venue, group in groups.items()
        if len(group) >= MIN_MID_ENTRIES
    }


def classify(
    entries: Sequence[Entry],
    groups: dict[VenueId, list[Entry]] | None = None,
) -> tuple[list[Entry], list[Entry]]:
    """
    Split entries into (bids, asks) against each venue's mean price.

    Venues without a mean fall back to the mean over all `entries`.
    Bids come back price-descending, asks price-ascending; ties keep
    arrival order.
    """
    if not entries:
        return [], []

    if groups is None:
        groups = group_by_venue(entries)
    mids = venue_mid_prices(groups)
    global_mid = float(np.mean([e.price for e in entries]))

    bids: list[Entry] = []
    asks: list[Entry] = []
    for entry in entries:
        mid = mids.get(entry.venue, global_mid)
        if entry.price < mid:
            bids.append(entry)
        else:
            asks.append(entry)

    # list.sort is stable, including with reverse=True
    bids.sort(key=_by_price, reverse=True)
    asks.sort(key=_by_price)
    return bids, asks


def aggregate(
    entries: Iterable[Entry],
    window_ms: int,
    now_ms: int,
    detect_zones: bool = True,
    zone_share: float = ZONE_THRESHOLD_SHARE,
    scan_radius: int = ZONE_SCAN_RADIUS,
    growth_ratio: float = ZONE_GROWTH_RATIO,
) -> AggregateView:
    """
    Run one full aggregation pass.

    Args:
        entries: Buffered entries from every venue (not mutated)
        window_ms: Trailing window length
        now_ms: Reference time for the window and `last_updated`
        detect_zones: Whether to run pressure-zone detection at all
        zone_share: Zone seed threshold as a share of max quantity

    Returns a new AggregateView; an empty window yields the zeroed view.
    """
    current = filter_window(entries, window_ms, now_ms)
    if not current:
        return AggregateView.empty(now_ms)

    groups = group_by_venue(current)
    bids, asks = classify(current, groups)

    # bids + asks is exactly `current`, so extrema can come from it directly
    prices = np.fromiter((e.price for e in current), dtype=np.float64, count=len(current))
    quantities = np.fromiter((e.quantity for e in current), dtype=np.float64, count=len(current))
    min_price = float(prices.min())
    max_price = float(prices.max())
    max_quantity = float(quantities.max())

    if detect_zones:
        zones = detect_all(groups, max_quantity * zone_share, scan_radius, growth_ratio)
    else:
        zones = ()

    return AggregateView(
        bids=tuple(bids),
        asks=tuple(asks),
        pressure_zones=zones,
        min_price=min_price,
        max_price=max_price,
        max_quantity=max_quantity,
        last_updated=now_ms,
    )


class Aggregator:
    """
    Holds pass parameters and the most recently published view.

    The view is swapped by a single reference assignment, so readers see
    either the previous view or the new one, never a mix.
    """

    __slots__ = ('window_ms', 'detect_zones', 'zone_share', 'scan_radius',
                 'growth_ratio', '_view', '_pass_count')

    def __init__(
        self,
        window_ms: int,
        detect_zones: bool = True,
        zone_share: float = ZONE_THRESHOLD_SHARE,
        scan_radius: int = ZONE_SCAN_RADIUS,
        growth_ratio: float = ZONE_GROWTH_RATIO,
    ) -> None:
        self.window_ms = window_ms
        self.detect_zones = detect_zones
        self.zone_share = zone_share
        self.scan_radius = scan_radius
        self.growth_ratio = growth_ratio
        self._view = AggregateView.empty()
        self._pass_count = 0

    @property
    def view(self) -> AggregateView:
        return self._view

    @property
    def pass_count(self) -> int:
        return self._pass_count

    def run(self, entries: Iterable[Entry], now_ms: int) -> AggregateView:
        """Aggregate `entries` and publish the result as the current view."""
        view = aggregate(
            entries,
            self.window_ms,
            now_ms,
            detect_zones=self.detect_zones,
            zone_share=self.zone_share,
            scan_radius=self.scan_radius,
            growth_ratio=self.growth_ratio,
        )
        self._view = view
        self._pass_count += 1
        return view

    def reset(self) -> None:
        self._view = AggregateView.empty()
