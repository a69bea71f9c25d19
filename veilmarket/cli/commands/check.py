"""``veilmarket check`` — run the contract availability check.

Runs against the in-process ledger; the exit code is 1 when the contract
reports itself unavailable or the check fails.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.panel import Panel

from veilmarket.bridge import LocalComputeService, LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.orchestrator import MarketOrchestrator
from veilmarket.core.session import SessionContext

console = Console()


async def _check(unavailable: bool) -> tuple[bool, str, str]:
    settings = MarketConfig()
    ledger = LocalLedger()
    ledger.available = not unavailable
    session = SessionContext(ledger, LocalComputeService(), config=settings)
    orchestrator = MarketOrchestrator(session)

    available = await orchestrator.check_availability()
    address = await session.contract_address()
    notice = session.notifier.current
    return available, address, notice.message if notice else ""


def check_cmd(
    unavailable: bool = typer.Option(
        False,
        "--simulate-unavailable",
        help="Make the local contract report itself unavailable.",
    ),
) -> None:
    """Ask the marketplace contract whether it is available."""
    available, address, message = asyncio.run(_check(unavailable))

    status = "[bold green]available[/bold green]" if available else "[bold red]unavailable[/bold red]"
    console.print(
        Panel(
            "\n".join([
                f"[bold]Contract:[/bold] {address}",
                f"[bold]Status:[/bold]   {status}",
                f"[dim]{message}[/dim]",
            ]),
            title="[bold]Availability Check[/bold]",
            border_style="green" if available else "red",
            padding=(1, 2),
        )
    )
    if not available:
        raise typer.Exit(code=1)
