"""
Error taxonomy for the aggregation core.

- TransportError: snapshot fetch or stream failure for one venue. Recoverable
  with DepthSession.reconnect().
- DecodeError: one malformed venue message. Dropped where it is raised.
- EmptyResultError: every selected venue returned an empty snapshot.
"""

from __future__ import annotations


class DepthViewerError(Exception):
    """Base class for all Depth Viewer errors."""


class TransportError(DepthViewerError):
    """Network, HTTP status, or payload-level failure talking to a venue."""

    def __init__(self, venue: str, message: str) -> None:
        super().__init__(f"[{venue}] {message}")
        self.venue = venue


class DecodeError(DepthViewerError):
    """A single venue message could not be normalized."""

    def __init__(self, venue: str, message: str) -> None:
        super().__init__(f"[{venue}] {message}")
        self.venue = venue


class EmptyResultError(DepthViewerError):
    """No selected venue produced any snapshot entries."""

    def __init__(self, venues: tuple[str, ...] | list[str] = ()) -> None:
        names = ", ".join(venues) if venues else "no venues"
        super().__init__(f"Failed to fetch initial orderbook data ({names})")
        self.venues = tuple(venues)
