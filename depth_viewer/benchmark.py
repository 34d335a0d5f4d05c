#!/usr/bin/env python3
"""
Micro-benchmark for Depth Viewer performance.

Tests:
1. Adapter decode throughput (raw frame -> entries)
2. Classification speed on a full window
3. Pressure-zone detection speed per venue
4. Full aggregation pass speed (what every real-time message costs)

Usage:
    python -m depth_viewer.benchmark
"""

from __future__ import annotations

import random
import time
from statistics import mean, stdev

import orjson

from .datafeed.binance import BinanceAdapter
from .engine.aggregator import aggregate, classify
from .engine.zones import detect_pressure_zones
from .types import Entry

VENUES = ("binance", "okx", "bybit")


def generate_mock_entries(
    base_price: float = 60000.0,
    count: int = 5000,
    now_ms: int | None = None,
    span_ms: int = 60_000,
) -> list[Entry]:
    """Generate entries spread around `base_price` across all venues."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    entries = []
    for _ in range(count):
        entries.append(Entry(
            price=round(base_price + random.uniform(-50, 50), 2),
            quantity=random.uniform(0.001, 5.0),
            venue=random.choice(VENUES),
            timestamp=now_ms - random.randint(0, span_ms * 2),
        ))
    return entries


def generate_mock_frame(base_price: float, changes: int = 50) -> bytes:
    """Generate a raw Binance depth frame."""
    bids = []
    asks = []

    for _ in range(changes // 2):
        offset = random.randint(1, 500) * 0.01
        # Random qty (0 = remove level)
        bid_qty = random.uniform(0, 5) if random.random() > 0.2 else 0
        ask_qty = random.uniform(0, 5) if random.random() > 0.2 else 0

        bids.append([f"{base_price - offset:.2f}", f"{bid_qty:.5f}"])
        asks.append([f"{base_price + offset:.2f}", f"{ask_qty:.5f}"])

    return orjson.dumps({
        'e': 'depthUpdate',
        'E': int(time.time() * 1000),
        's': 'BTCUSDT',
        'U': 1,
        'u': 2,
        'b': bids,
        'a': asks,
    })


def _report(times: list[float], iterations: int) -> float:
    avg_time = mean(times) * 1000
    std_time = stdev(times) * 1000

    print(f"  Iterations: {iterations}")
    print(f"  Avg time: {avg_time:.3f}ms")
    print(f"  Std dev: {std_time:.3f}ms")
    return avg_time


def benchmark_decode(iterations: int = 10000) -> None:
    """Benchmark adapter decode throughput."""
    print("\n=== Adapter Decode Benchmark ===")

    adapter = BinanceAdapter()
    frames = [generate_mock_frame(60000.0) for _ in range(iterations)]

    start = time.perf_counter()
    produced = 0
    for frame in frames:
        produced += len(adapter.decode(frame) or ())
    elapsed = time.perf_counter() - start

    rate = iterations / elapsed
    print(f"  Frames decoded: {iterations:,}")
    print(f"  Entries produced: {produced:,}")
    print(f"  Time: {elapsed*1000:.1f}ms")
    print(f"  Rate: {rate:,.0f} frames/sec")
    print(f"  Per frame: {elapsed/iterations*1_000_000:.1f}µs")


def benchmark_classify(iterations: int = 200) -> None:
    """Benchmark bid/ask classification."""
    print("\n=== Classification Benchmark ===")

    entries = generate_mock_entries()

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        classify(entries)
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_zones(iterations: int = 200) -> None:
    """Benchmark pressure-zone detection for one venue."""
    print("\n=== Pressure Zone Benchmark ===")

    entries = [e._replace(venue="binance") for e in generate_mock_entries(count=2000)]
    threshold = 0.2 * max(e.quantity for e in entries)

    times = []
    zones = []
    for _ in range(iterations):
        start = time.perf_counter()
        zones, _ = detect_pressure_zones(entries, threshold)
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Zones found: {len(zones)}")
    print(f"  Rate: {1000/avg_time:,.0f} calls/sec")


def benchmark_full_pass(iterations: int = 100) -> None:
    """Benchmark a full aggregation pass (what each real-time message costs)."""
    print("\n=== Full Aggregation Pass Benchmark ===")

    now_ms = int(time.time() * 1000)
    entries = generate_mock_entries(count=10000, now_ms=now_ms)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        aggregate(entries, 60_000, now_ms)
        times.append(time.perf_counter() - start)

    avg_time = _report(times, iterations)
    print(f"  Max passes/sec possible: {1000/avg_time:,.0f}")


def main() -> None:
    """Run all benchmarks."""
    print("=" * 60)
    print("Depth Viewer Performance Benchmark")
    print("=" * 60)

    benchmark_decode()
    benchmark_classify()
    benchmark_zones()
    benchmark_full_pass()

    print("\n" + "=" * 60)
    print("Benchmark complete.")
    print("=" * 60)


if __name__ == "__main__":
    main()
