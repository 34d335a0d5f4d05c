"""
Depth Viewer - Aggregated market depth across multiple crypto venues.

Architecture:
- datafeed/: Venue adapters (REST snapshot + WebSocket deltas) and their registry
- engine/: Windowed aggregation, bid/ask classification, pressure-zone clustering
- session.py: Connection lifecycle, inbound buffer, periodic/real-time passes
- ui/: Aggregated depth ladder + pressure zones (Textual TUI)
"""

__version__ = "0.1.0"
