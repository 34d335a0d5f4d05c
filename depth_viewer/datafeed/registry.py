"""
Venue-keyed adapter registry.

Adding a venue means registering one adapter; nothing in the engine or the
session knows venue names.
"""

from __future__ import annotations

from typing import Iterator

from ..types import VenueId
from .base import VenueAdapter
from .binance import BinanceAdapter
from .bybit import BybitAdapter
from .okx import OkxAdapter


class AdapterRegistry:
    """Mapping from VenueId to the adapter that speaks its protocol."""

    __slots__ = ('_adapters',)

    def __init__(self, adapters: dict[VenueId, VenueAdapter] | None = None) -> None:
        self._adapters: dict[VenueId, VenueAdapter] = dict(adapters or {})

    def register(self, adapter: VenueAdapter, venue: VenueId | None = None) -> None:
        """Register `adapter` under `venue` (defaults to adapter.venue). Replaces any existing one."""
        key = venue or adapter.venue
        if not key:
            raise ValueError(f"{type(adapter).__name__} has no venue id")
        self._adapters[key] = adapter

    def unregister(self, venue: VenueId) -> None:
        self._adapters.pop(venue, None)

    def get(self, venue: VenueId) -> VenueAdapter:
        try:
            return self._adapters[venue]
        except KeyError:
            raise KeyError(f"No adapter registered for venue {venue!r}") from None

    def venues(self) -> list[VenueId]:
        return list(self._adapters)

    def __contains__(self, venue: object) -> bool:
        return venue in self._adapters

    def __iter__(self) -> Iterator[VenueId]:
        return iter(self._adapters)

    def __len__(self) -> int:
        return len(self._adapters)


def default_registry() -> AdapterRegistry:
    """Registry holding the built-in Binance, OKX and Bybit adapters."""
    registry = AdapterRegistry()
    for adapter in (BinanceAdapter(), OkxAdapter(), BybitAdapter()):
        registry.register(adapter)
    return registry
