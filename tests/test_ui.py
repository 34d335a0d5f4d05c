"""Tests for the ladder's display helpers."""

from __future__ import annotations

from conftest import make_entry

from depth_viewer.ui.depth_view import filter_levels, format_qty, make_bar, next_window


def test_filter_levels_unbounded_by_default():
    entries = [make_entry(99.0, 0.1), make_entry(101.0, 5.0)]
    assert filter_levels(entries) == entries


def test_filter_levels_price_range_inclusive():
    entries = [make_entry(p, 1.0) for p in (98.0, 99.0, 100.0, 101.0, 102.0)]
    kept = filter_levels(entries, price_range=(99.0, 101.0))
    assert [e.price for e in kept] == [99.0, 100.0, 101.0]


def test_filter_levels_one_sided_bounds():
    entries = [make_entry(p, 1.0) for p in (98.0, 100.0, 102.0)]
    assert [e.price for e in filter_levels(entries, price_range=(100.0, 0.0))] == [100.0, 102.0]
    assert [e.price for e in filter_levels(entries, price_range=(0.0, 100.0))] == [98.0, 100.0]


def test_filter_levels_min_quantity():
    entries = [make_entry(100.0, 0.5), make_entry(101.0, 2.0)]
    assert [e.quantity for e in filter_levels(entries, min_quantity=1.0)] == [2.0]


def test_format_qty():
    assert format_qty(2500.0) == "2.5K"
    assert format_qty(12.34) == "12.3"
    assert format_qty(0.0123) == "0.012"


def test_make_bar():
    assert make_bar(5.0, 10.0, 10, "green").plain == "█████     "
    assert make_bar(20.0, 10.0, 4, "green").plain == "████"


def test_make_bar_without_data():
    assert make_bar(1.0, 0.0, 6, "green").plain == " " * 6


def test_next_window_cycles_through_all_windows():
    assert next_window("1m") == "5m"
    assert next_window("15m") == "1h"
    assert next_window("1h") == "1m"
    assert next_window("bogus") == "1m"
