"""
Pressure-zone detection.

Clusters one venue's entries into integer price buckets and grows contiguous
runs of heavy buckets into zones.

HOT PATH: detect_pressure_zones() runs once per venue on every aggregation pass.

Performance strategy:
1. Single pass to bucket entries, per-bucket volumes computed once
2. Claimed buckets tracked in a set so each bucket is absorbed at most once
3. Neighbour scan bounded by the scan radius, not by the book size
"""

from __future__ import annotations

import math
from typing import Iterable, Mapping, Sequence

from ..config import ZONE_GROWTH_RATIO, ZONE_SCAN_RADIUS
from ..types import Entry, PressureZone, VenueId, ZoneType


def bucket_of(price: float) -> int:
    """Integer price bucket, rounding halves up (100.5 -> 101, -2.5 -> -2)."""
    return math.floor(price + 0.5)


def pressure_score(total_volume: float, min_price: float, max_price: float) -> float:
    """Score rewarding both the volume and the breadth of a zone."""
    return total_volume * (max_price - min_price + 1)


def detect_pressure_zones(
    entries: Sequence[Entry],
    threshold: float,
    scan_radius: int = ZONE_SCAN_RADIUS,
    growth_ratio: float = ZONE_GROWTH_RATIO,
) -> tuple[list[PressureZone], float]:
    """
    Find pressure zones in a single venue's entries.

    Args:
        entries: Entries of one venue, already filtered to the active window
        threshold: Minimum bucket volume needed to seed a zone
        scan_radius: Buckets inspected on each side of a seed
        growth_ratio: Neighbour volume must reach threshold * growth_ratio

    Returns (zones sorted by score descending, max single-entry quantity).
    """
    if not entries:
        return [], 0.0

    buckets: dict[int, list[Entry]] = {}
    max_quantity = 0.0
    price_sum = 0.0

    for entry in entries:
        buckets.setdefault(bucket_of(entry.price), []).append(entry)
        price_sum += entry.price
        if entry.quantity > max_quantity:
            max_quantity = entry.quantity

    volumes = {bucket: sum(e.quantity for e in group) for bucket, group in buckets.items()}
    # Coarse side label, independent of the aggregator's bid/ask split
    mean_price = price_sum / len(entries)
    neighbour_threshold = threshold * growth_ratio

    claimed: set[int] = set()
    zones: list[PressureZone] = []

    for seed in sorted(buckets):
        if seed in claimed or volumes[seed] < threshold:
            continue

        claimed.add(seed)
        low = high = seed
        zone_entries = list(buckets[seed])

        # Grow downwards, then upwards; a gap or weak bucket ends the run
        for step in (-1, 1):
            for offset in range(1, scan_radius + 1):
                bucket = seed + step * offset
                if (bucket not in buckets or bucket in claimed
                        or volumes[bucket] < neighbour_threshold):
                    break
                claimed.add(bucket)
                zone_entries.extend(buckets[bucket])
                if step < 0:
                    low = bucket
                else:
                    high = bucket

        total_volume = sum(e.quantity for e in zone_entries)
        min_price, max_price = float(low), float(high)
        zone_type = ZoneType.BID if zone_entries[0].price < mean_price else ZoneType.ASK

        zones.append(PressureZone(
            min_price=min_price,
            max_price=max_price,
            total_volume=total_volume,
            pressure_score=pressure_score(total_volume, min_price, max_price),
            type=zone_type,
            entries=tuple(zone_entries),
        ))

    zones.sort(key=lambda z: z.pressure_score, reverse=True)
    return zones, max_quantity


def detect_all(
    groups: Mapping[VenueId, Sequence[Entry]] | Iterable[tuple[VenueId, Sequence[Entry]]],
    threshold: float,
    scan_radius: int = ZONE_SCAN_RADIUS,
    growth_ratio: float = ZONE_GROWTH_RATIO,
) -> tuple[PressureZone, ...]:
    """
    Run detection per venue group and merge the results.

    Overlapping zones from different venues are kept side by side.
    """
    items = groups.items() if isinstance(groups, Mapping) else groups

    merged: list[PressureZone] = []
    for _venue, group in items:
        if not group:
            continue
        zones, _ = detect_pressure_zones(group, threshold, scan_radius, growth_ratio)
        merged.extend(zones)

    merged.sort(key=lambda z: z.pressure_score, reverse=True)
    return tuple(merged)
