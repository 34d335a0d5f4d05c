"""Tests for the venue adapter registry."""

from __future__ import annotations

import pytest
from conftest import FakeAdapter

from depth_viewer.datafeed.binance import BinanceAdapter
from depth_viewer.datafeed.bybit import BybitAdapter
from depth_viewer.datafeed.okx import OkxAdapter
from depth_viewer.datafeed.registry import AdapterRegistry, default_registry


def test_default_registry_has_builtin_venues():
    registry = default_registry()

    assert registry.venues() == ["binance", "okx", "bybit"]
    assert isinstance(registry.get("binance"), BinanceAdapter)
    assert isinstance(registry.get("okx"), OkxAdapter)
    assert isinstance(registry.get("bybit"), BybitAdapter)


def test_register_and_replace():
    registry = AdapterRegistry()
    first = FakeAdapter("kraken")
    second = FakeAdapter("kraken")

    registry.register(first)
    registry.register(second)

    assert len(registry) == 1
    assert registry.get("kraken") is second
    assert "kraken" in registry
    assert list(registry) == ["kraken"]


def test_register_under_alias():
    registry = AdapterRegistry()
    adapter = FakeAdapter("binance")
    registry.register(adapter, venue="binance-testnet")
    assert registry.get("binance-testnet") is adapter


def test_register_requires_venue():
    with pytest.raises(ValueError):
        AdapterRegistry().register(FakeAdapter(""))


def test_unknown_venue():
    registry = default_registry()
    with pytest.raises(KeyError, match="kraken"):
        registry.get("kraken")

    registry.unregister("okx")
    registry.unregister("kraken")
    assert "okx" not in registry
