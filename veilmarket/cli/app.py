"""Main Typer application — imports and registers all CLI commands.

Entry point: ``veilmarket`` (configured via pyproject.toml scripts).

Commands: demo, config, check.
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from veilmarket.cli.commands.check import check_cmd
from veilmarket.cli.commands.config_cmd import config_cmd
from veilmarket.cli.commands.demo import demo_cmd
from veilmarket.config import config

app = typer.Typer(
    name="veilmarket",
    help="veilmarket: confidential IoT sensor-data marketplace client.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Route stdlib logging through Rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        config.log_level,
        "--log-level",
        help="Logging level for veilmarket modules.",
    ),
) -> None:
    """veilmarket: confidential IoT sensor-data marketplace client."""
    configure_logging(log_level)


# Register subcommands
app.command(name="demo", help="Create and verify a sample listing end to end.")(demo_cmd)
app.command(name="config", help="Show the active settings.")(config_cmd)
app.command(name="check", help="Run the contract availability check.")(check_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
