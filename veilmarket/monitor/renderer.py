"""Rich terminal renderer for the market monitor.

Turns ``MarketSnapshot`` into Rich renderables: a stats header, the listing
table, and the recent-operations table.

Color scheme
------------
- green     : verified listing / success notice
- yellow    : pending notice
- cyan      : info notice
- bold red  : error notice
- dim       : encrypted (withheld) value
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from veilmarket.core.notifier import NoticeLevel
from veilmarket.models.history import OperationKind
from veilmarket.monitor.projection import MarketSnapshot

_NOTICE_STYLES: dict[NoticeLevel, str] = {
    NoticeLevel.PENDING: "yellow",
    NoticeLevel.INFO: "cyan",
    NoticeLevel.SUCCESS: "green",
    NoticeLevel.ERROR: "bold red",
}

_OPERATION_LABELS: dict[OperationKind, str] = {
    OperationKind.CREATE: "[cyan]create[/cyan]",
    OperationKind.DECRYPT: "[green]decrypt[/green]",
}

ENCRYPTED_LABEL = "[dim]encrypted[/dim]"


class MarketRenderer:
    """Renders ``MarketSnapshot`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_snapshot(self, snapshot: MarketSnapshot) -> Panel:
        """Render a snapshot as a Rich Panel."""
        parts: list = [
            Text.from_markup(self._stats_line(snapshot)),
            Text(""),
            self._build_listing_table(snapshot),
        ]
        if snapshot.recent_history:
            parts.extend([Text(""), self._build_history_table(snapshot)])
        if snapshot.skipped_ids:
            parts.append(
                Text.from_markup(
                    f"[yellow]{len(snapshot.skipped_ids)} record(s) could not be loaded.[/yellow]"
                )
            )
        if snapshot.notice is not None:
            style = _NOTICE_STYLES.get(snapshot.notice.level, "")
            parts.append(Text(snapshot.notice.message, style=style))

        return Panel(
            Group(*parts),
            title="[bold]Confidential Sensor Data Market[/bold]",
            subtitle=f"Contract: {snapshot.contract_address or '-'}",
            border_style="blue",
            padding=(1, 2),
        )

    def _stats_line(self, snapshot: MarketSnapshot) -> str:
        stats = snapshot.stats
        return "  |  ".join(
            [
                f"[bold]Listings:[/bold] {stats.total}",
                f"[bold]Available:[/bold] {stats.available}",
                f"[bold]Sold:[/bold] {stats.sold}",
                f"[bold]Avg price:[/bold] {stats.avg_price:.2f}",
                f"[bold]Verified:[/bold] [green]{stats.verified}[/green]",
            ]
        )

    def _build_listing_table(self, snapshot: MarketSnapshot) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Listing", min_width=20)
        table.add_column("Name", min_width=12)
        table.add_column("Creator")
        table.add_column("Price", justify="right")
        table.add_column("Status", justify="center")
        table.add_column("Verified", justify="center")
        table.add_column("Value", justify="right")

        if not snapshot.listings:
            table.add_row("[dim]No listings yet.[/dim]", "", "", "", "", "", "")
            return table

        for row in snapshot.listings:
            if row.is_verified and row.value is not None:
                value = f"[green]{row.value}[/green]"
                verified = "[green]verified[/green]"
            else:
                value = ENCRYPTED_LABEL
                verified = "[yellow]pending[/yellow]"
            table.add_row(
                escape(row.listing_id),
                escape(row.name),
                row.creator,
                str(row.price),
                row.status.value,
                verified,
                value,
            )
        return table

    def _build_history_table(self, snapshot: MarketSnapshot) -> Table:
        table = Table(title="Recent operations", show_header=True, header_style="bold")
        table.add_column("Time", style="dim")
        table.add_column("Operation")
        table.add_column("Listing")
        table.add_column("Value", justify="right")
        for entry in snapshot.recent_history:
            table.add_row(
                entry.timestamp.strftime("%H:%M:%S"),
                _OPERATION_LABELS.get(entry.kind, entry.kind.value),
                escape(entry.display_name),
                str(entry.value),
            )
        return table

    def print_snapshot(self, snapshot: MarketSnapshot) -> None:
        """Print a single snapshot to the console."""
        self.console.print(self.render_snapshot(snapshot))
