"""
Aggregated depth ladder TUI using Textual.

Displays:
- Top: Session status, venues, window and last update time
- Left: Merged ladder (asks above bids) with quantity bars
- Right: Strongest pressure zones

Performance notes:
- Polls the session state at ~10 FPS instead of re-rendering per pass
- Only the top `levels` entries per side are rendered
- Rendering reads one immutable SessionState, never the live buffers
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Iterable

from rich.console import RenderableType
from rich.style import Style
from rich.table import Table
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import Footer, Static

from ..config import WINDOWS
from ..types import Entry, SessionStatus, ZoneType

if TYPE_CHECKING:
    from ..session import DepthSession
    from ..types import SessionState

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"
BAR_BG = "#1e293b"

STATUS_COLORS = {
    SessionStatus.CONNECTING: "yellow",
    SessionStatus.OPEN: BID_COLOR,
    SessionStatus.CLOSED: "dim",
    SessionStatus.ERROR: ASK_COLOR,
}

REFRESH_SEC = 0.1
MAX_ZONES_SHOWN = 10


def format_qty(qty: float) -> str:
    """Format quantity for display."""
    if qty >= 1000:
        return f"{qty/1000:.1f}K"
    elif qty >= 1:
        return f"{qty:.1f}"
    else:
        return f"{qty:.3f}"


def make_bar(value: float, max_value: float, width: int, color: str) -> Text:
    """Create a horizontal bar using block characters."""
    if max_value <= 0:
        return Text(" " * width)

    fill_ratio = min(1.0, value / max_value)
    fill_width = int(fill_ratio * width)

    bar = "█" * fill_width + " " * (width - fill_width)
    return Text(bar, style=Style(color=color, bgcolor=BAR_BG))


def next_window(window: str) -> str:
    """Window id after `window` in WINDOWS order, wrapping around."""
    order = list(WINDOWS)
    if window not in order:
        return order[0]
    return order[(order.index(window) + 1) % len(order)]


def filter_levels(
    entries: Iterable[Entry],
    price_range: tuple[float, float] = (0.0, 0.0),
    min_quantity: float = 0.0,
) -> list[Entry]:
    """
    Display filter: keep entries inside `price_range` with at least `min_quantity`.

    A 0 bound or a 0 quantity means "no limit" on that side.
    """
    low, high = price_range
    return [
        e for e in entries
        if (low == 0 or e.price >= low)
        and (high == 0 or e.price <= high)
        and (min_quantity == 0 or e.quantity >= min_quantity)
    ]


class LadderTable(Static):
    """Merged depth ladder across all selected venues."""

    DEFAULT_CSS = """
    LadderTable {
        width: 2fr;
        height: 100%;
    }
    """

    def __init__(
        self,
        levels: int = 20,
        price_range: tuple[float, float] = (0.0, 0.0),
        min_quantity: float = 0.0,
    ) -> None:
        super().__init__()
        self.levels = levels
        self.price_range = price_range
        self.min_quantity = min_quantity
        self._state: SessionState | None = None

    def update_state(self, state: SessionState) -> None:
        self._state = state
        self.refresh()

    def render(self) -> RenderableType:
        """Render the ladder as a Rich Table."""
        if self._state is None or self._state.view.is_empty:
            return Text("Waiting for data...", style="dim")

        state = self._state
        bids = filter_levels(state.bids, self.price_range, self.min_quantity)[:self.levels]
        asks = filter_levels(state.asks, self.price_range, self.min_quantity)[:self.levels]
        max_qty = state.max_quantity

        table = Table(
            show_header=True,
            header_style=HEADER_COLOR,
            box=None,
            padding=(0, 1),
            collapse_padding=True,
        )
        table.add_column("Venue", justify="left", width=8)
        table.add_column("Price", justify="right", width=12)
        table.add_column("Qty", justify="right", width=9)
        table.add_column("Depth", justify="left", width=20, no_wrap=True)

        # Asks on top, highest first, so the spread sits in the middle
        for entry in reversed(asks):
            table.add_row(
                Text(entry.venue, style="dim"),
                Text(f"{entry.price:.2f}", style=ASK_COLOR),
                Text(format_qty(entry.quantity), style=ASK_COLOR),
                make_bar(entry.quantity, max_qty, 20, ASK_COLOR),
            )
        for entry in bids:
            table.add_row(
                Text(entry.venue, style="dim"),
                Text(f"{entry.price:.2f}", style=BID_COLOR),
                Text(format_qty(entry.quantity), style=BID_COLOR),
                make_bar(entry.quantity, max_qty, 20, BID_COLOR),
            )

        return table


class ZoneTable(Static):
    """Top pressure zones by score."""

    DEFAULT_CSS = """
    ZoneTable {
        width: 1fr;
        height: 100%;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self.visible_zones = True
        self._state: SessionState | None = None

    def update_state(self, state: SessionState) -> None:
        self._state = state
        self.refresh()

    def render(self) -> RenderableType:
        if not self.visible_zones:
            return Text("Pressure zones hidden (z)", style="dim")
        if self._state is None or not self._state.pressure_zones:
            return Text("No pressure zones", style="dim")

        zones = self._state.pressure_zones[:MAX_ZONES_SHOWN]
        max_score = zones[0].pressure_score

        table = Table(show_header=True, header_style=HEADER_COLOR, box=None, padding=(0, 1))
        table.add_column("Side", width=4)
        table.add_column("Range", justify="right", width=17)
        table.add_column("Volume", justify="right", width=8)
        table.add_column("Score", justify="left", width=12, no_wrap=True)

        for zone in zones:
            color = BID_COLOR if zone.type is ZoneType.BID else ASK_COLOR
            if zone.min_price == zone.max_price:
                price_range = f"{zone.min_price:.0f}"
            else:
                price_range = f"{zone.min_price:.0f}-{zone.max_price:.0f}"
            table.add_row(
                Text(zone.type.value, style=color),
                Text(price_range, style=PRICE_COLOR),
                Text(format_qty(zone.total_volume), style=color),
                make_bar(zone.pressure_score, max_score, 12, color),
            )
        return table


class StatusBar(Static):
    """Status bar showing connection state, venues and window."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._state: SessionState | None = None

    def update_state(self, state: SessionState) -> None:
        self._state = state
        self.refresh()

    def render(self) -> RenderableType:
        if self._state is None:
            return Text("Connecting...", style="dim")

        state = self._state
        age_sec = max(0.0, time.time() - state.last_updated / 1000) if state.last_updated else 0.0

        parts = [
            Text(f" {state.status.value.upper()} ", style=f"bold black on {STATUS_COLORS[state.status]}"),
            Text("  "),
            Text("Venues: ", style="dim"),
            Text(", ".join(state.venues), style="cyan"),
            Text("  Window: ", style="dim"),
            Text(state.window, style="cyan"),
            Text("  Range: ", style="dim"),
            Text(f"{state.min_price:.2f} - {state.max_price:.2f}", style=PRICE_COLOR),
            Text("  │  ", style="dim"),
            Text("Updated: ", style="dim"),
            Text(f"{age_sec:.1f}s ago", style="yellow"),
        ]
        if state.error:
            parts.append(Text(f"\n {state.error}", style=ASK_COLOR))

        result = Text()
        for p in parts:
            result.append(p)
        return result


class DepthApp(App):
    """Main Depth Viewer application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    #main-container {
        width: 100%;
        height: 100%;
        padding: 1 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "reconnect", "Reconnect"),
        ("z", "toggle_zones", "Toggle Zones"),
        ("w", "cycle_window", "Window"),
        ("b", "toggle_batched", "Batched"),
    ]

    def __init__(
        self,
        session: DepthSession,
        levels: int = 20,
        price_range: tuple[float, float] = (0.0, 0.0),
        min_quantity: float = 0.0,
    ) -> None:
        super().__init__()
        self.session = session
        self._status_bar = StatusBar()
        self._ladder = LadderTable(levels, price_range, min_quantity)
        self._zones = ZoneTable()
        self._last_state: SessionState | None = None

    def compose(self) -> ComposeResult:
        yield self._status_bar
        yield Horizontal(self._ladder, self._zones, id="main-container")
        yield Footer()

    async def on_mount(self) -> None:
        """Start polling the session state."""
        self.set_interval(REFRESH_SEC, self._refresh_state)

    def _refresh_state(self) -> None:
        state = self.session.state
        # Status bar always refreshes so the "updated ago" clock keeps moving
        self._status_bar.update_state(state)
        if state is self._last_state:
            return
        self._last_state = state
        self._ladder.update_state(state)
        self._zones.update_state(state)

    def action_reconnect(self) -> None:
        """Tear down every stream and reconnect (bound to 'r' key)."""
        self.run_worker(self.session.reconnect(), exclusive=True)

    def action_toggle_zones(self) -> None:
        self._zones.visible_zones = not self._zones.visible_zones
        self._zones.refresh()

    def action_cycle_window(self) -> None:
        """Switch to the next trailing window (bound to 'w' key)."""
        window = next_window(self.session.config.window)
        self.run_worker(self.session.set_window(window))

    def action_toggle_batched(self) -> None:
        """Flip between real-time and batched passes (bound to 'b' key)."""
        real_time = not self.session.config.real_time
        self.run_worker(self.session.set_real_time(real_time))


async def run_ui(session: DepthSession, levels: int = 20, **filters) -> None:
    """Run the TUI application."""
    app = DepthApp(session, levels=levels, **filters)
    await app.run_async()
