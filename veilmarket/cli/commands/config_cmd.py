"""``veilmarket config`` — show the active settings.

Settings come from ``VEILMARKET_*`` environment variables and ``.env``.
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from veilmarket.config import MarketConfig

console = Console()


def config_cmd() -> None:
    """Print every setting and its current value."""
    settings = MarketConfig()

    table = Table(title="veilmarket settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in settings.model_dump().items():
        shown = str(value) if value not in ("", None) else "[dim](unset)[/dim]"
        table.add_row(name, shown)

    console.print(table)
    console.print("[dim]Override any setting with VEILMARKET_<NAME>, e.g. VEILMARKET_LOG_LEVEL.[/dim]")
    if settings.is_production:
        console.print("[bold yellow]Running in production mode.[/bold yellow]")
