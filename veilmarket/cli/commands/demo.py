"""``veilmarket demo`` — create and verify a sample listing end to end.

Connects a session to the in-process ledger and compute service, publishes
one encrypted listing, verifies it, and shows the market monitor after
each step.
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from veilmarket.bridge import LocalComputeService, LocalLedger
from veilmarket.config import MarketConfig
from veilmarket.core.orchestrator import MarketOrchestrator
from veilmarket.core.session import SessionContext
from veilmarket.models.workflow import ListingDraft, WorkflowOutcome
from veilmarket.monitor.projection import MarketProjection
from veilmarket.monitor.renderer import MarketRenderer

console = Console()

DEMO_ACCOUNT = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


def _print_outcome(step: str, outcome: WorkflowOutcome) -> None:
    style = "green" if outcome.ok else ("red" if outcome.is_alarm else "yellow")
    console.print(
        f"[{style}]{step}: {outcome.kind.value}[/{style}]  {escape(outcome.message)}"
    )


async def _run_demo(
    name: str, value: int, price: int, account: str
) -> tuple[WorkflowOutcome, WorkflowOutcome | None]:
    settings = MarketConfig()
    compute = LocalComputeService()
    ledger = LocalLedger(
        account,
        verifier=compute,
        confirmation_delay=settings.local_confirmation_delay_seconds,
    )
    session = SessionContext(ledger, compute, config=settings)
    orchestrator = MarketOrchestrator(session)
    renderer = MarketRenderer(console=console)

    await orchestrator.connect(account)
    projection = MarketProjection(session, await session.contract_address())
    console.print(f"[bold green]Connected:[/bold green] {account}")
    renderer.print_snapshot(projection.snapshot())

    console.print(f"\n[cyan]>>> Creating listing[/cyan] [bold]{escape(name)}[/bold]")
    created = await orchestrator.create_listing(
        ListingDraft(name=name, value=str(value), price=str(price))
    )
    _print_outcome("create", created)
    renderer.print_snapshot(projection.snapshot())
    if not created.ok or created.listing_id is None:
        return created, None

    console.print(f"\n[cyan]>>> Verifying listing[/cyan] [bold]{created.listing_id}[/bold]")
    verified = await orchestrator.verify_listing(created.listing_id)
    _print_outcome("verify", verified)
    renderer.print_snapshot(projection.snapshot())
    return created, verified


def demo_cmd(
    name: str = typer.Option("Temp-01", "--name", "-n", help="Listing name."),
    value: int = typer.Option(42, "--value", "-v", help="Sensor value to encrypt."),
    price: int = typer.Option(10, "--price", "-p", help="Public price."),
    account: str = typer.Option(
        DEMO_ACCOUNT, "--account", "-a", help="Account the session connects as."
    ),
) -> None:
    """Run the create-then-verify flow against the in-process collaborators."""
    console.print()
    console.print(
        Panel(
            "[bold]veilmarket demo[/bold]\n\n"
            "Publishes an encrypted sensor reading, then reveals it\n"
            "through a verified decryption.",
            border_style="cyan",
            padding=(1, 2),
        )
    )

    created, verified = asyncio.run(_run_demo(name, value, price, account))

    succeeded = created.ok and verified is not None and verified.ok
    console.print()
    console.print(
        Panel(
            "\n".join([
                "[bold green]Demo Complete![/bold green]" if succeeded
                else "[bold red]Demo did not complete.[/bold red]",
                "",
                f"[bold]Listing:[/bold]   {created.listing_id or '-'}",
                f"[bold]Created:[/bold]   {created.kind.value}",
                f"[bold]Verified:[/bold]  {verified.kind.value if verified else '-'}",
                f"[bold]Value:[/bold]     {verified.value if verified and verified.ok else 'withheld'}",
            ]),
            title="[bold]Demo Summary[/bold]",
            border_style="green" if succeeded else "red",
            padding=(1, 2),
        )
    )
    if not succeeded:
        raise typer.Exit(code=1)
