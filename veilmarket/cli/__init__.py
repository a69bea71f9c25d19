"""veilmarket CLI — Typer-based command-line interface.

Provides the ``veilmarket`` command with subcommands for running the
end-to-end demo against the in-process collaborators, printing the active
settings, and checking contract availability.

All output uses Rich for formatted terminal display.
"""
