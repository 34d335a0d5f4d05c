#!/usr/bin/env python3
"""
Depth Viewer - Aggregated market depth across Binance, OKX and Bybit.

Usage:
    python -m depth_viewer.main --venues binance okx --window 5m

    Or with the installed script:
    depth-viewer --venues binance bybit --batched

Controls:
    q - Quit
    r - Reconnect all venues
    z - Toggle pressure zones
    w - Cycle the trailing window
    b - Toggle batched mode
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import DEFAULT_SNAPSHOT_LIMIT, DEFAULT_WINDOW, WINDOWS, SessionConfig


async def main(
    config: SessionConfig,
    levels: int,
    min_quantity: float,
    price_range: tuple[float, float] = (0.0, 0.0),
) -> None:
    """Main entry point - runs the session and UI on one event loop."""

    # Import here to avoid slow startup for --help
    from .session import DepthSession
    from .ui.depth_view import run_ui

    print(f"Starting Depth Viewer for {', '.join(config.venues)}...")
    print(f"  Window: {config.window}")
    print(f"  Mode: {'real-time' if config.real_time else 'batched'}")
    print()

    session = DepthSession(config)

    # Connect in the background so the UI shows the connecting state
    connect_task = asyncio.create_task(session.start())

    try:
        # Run UI (blocks until quit)
        await run_ui(session, levels=levels, price_range=price_range, min_quantity=min_quantity)
    finally:
        # Cleanup
        if not connect_task.done():
            connect_task.cancel()
            try:
                await connect_task
            except asyncio.CancelledError:
                pass
        await session.close()


def parse_symbols(pairs: list[str]) -> dict[str, str]:
    """Parse repeated VENUE=SYMBOL overrides."""
    symbols: dict[str, str] = {}
    for pair in pairs:
        venue, sep, symbol = pair.partition("=")
        if not sep or not venue or not symbol:
            raise argparse.ArgumentTypeError(f"expected VENUE=SYMBOL, got {pair!r}")
        symbols[venue.strip().lower()] = symbol.strip()
    return symbols


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Depth Viewer - Aggregated order book depth across crypto venues",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m depth_viewer.main
    python -m depth_viewer.main --venues binance okx bybit --window 15m
    python -m depth_viewer.main --venues okx --symbol okx=ETH-USDT --batched
        """
    )

    parser.add_argument(
        "--venues",
        nargs="+",
        default=["binance"],
        help="Venues to aggregate (default: binance)"
    )

    parser.add_argument(
        "--window",
        choices=list(WINDOWS),
        default=DEFAULT_WINDOW,
        help=f"Trailing time window (default: {DEFAULT_WINDOW})"
    )

    parser.add_argument(
        "--batched",
        action="store_true",
        help="Process buffered updates once per second instead of on every message"
    )

    parser.add_argument(
        "--no-zones",
        action="store_true",
        help="Disable pressure-zone detection"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_SNAPSHOT_LIMIT,
        help=f"Snapshot depth per venue (default: {DEFAULT_SNAPSHOT_LIMIT})"
    )

    parser.add_argument(
        "--symbol",
        action="append",
        default=[],
        metavar="VENUE=SYMBOL",
        help="Override a venue's symbol, e.g. okx=ETH-USDT (repeatable)"
    )

    parser.add_argument(
        "--levels",
        type=int,
        default=20,
        help="Entries shown per side (default: 20)"
    )

    parser.add_argument(
        "--min-qty",
        type=float,
        default=0.0,
        help="Hide entries below this quantity (default: 0, show all)"
    )

    parser.add_argument(
        "--price-range",
        nargs=2,
        type=float,
        default=[0.0, 0.0],
        metavar=("LOW", "HIGH"),
        help="Only show entries priced within LOW..HIGH (0 = unbounded)"
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: WARNING)"
    )

    return parser


def config_from_args(args: argparse.Namespace) -> SessionConfig:
    return SessionConfig(
        venues=tuple(dict.fromkeys(v.lower() for v in args.venues)),
        window=args.window,
        real_time=not args.batched,
        detect_zones=not args.no_zones,
        symbols=parse_symbols(args.symbol),
        snapshot_limit=args.limit,
    ).validate()


def price_range_from_args(args: argparse.Namespace) -> tuple[float, float]:
    """Display price filter; a 0 bound is open-ended."""
    low, high = args.price_range
    if low < 0 or high < 0 or (high and low > high):
        raise ValueError(f"invalid price range {low} - {high}")
    return low, high


def cli() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    try:
        config = config_from_args(args)
        price_range = price_range_from_args(args)
    except (ValueError, argparse.ArgumentTypeError) as e:
        parser.error(str(e))

    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        filename="depth_viewer.log",
    )

    # Run
    try:
        asyncio.run(main(config, args.levels, args.min_qty, price_range))
    except KeyboardInterrupt:
        print("\nShutdown requested.")
        sys.exit(0)


if __name__ == "__main__":
    cli()
