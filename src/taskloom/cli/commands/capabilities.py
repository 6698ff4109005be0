"""`taskloom capabilities`: show the capability view of the configured executors."""

from pathlib import Path
from typing import Annotated

import typer

from taskloom.cli.commands._common import load_cli_config, setup_logging
from taskloom.cli.formatters import console
from taskloom.cli.formatters.panels import print_warning
from taskloom.cli.formatters.tables import capabilities_table
from taskloom.orchestrator import Orchestrator


def capabilities(
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config.yaml.", dir_okay=False),
    ] = None,
) -> None:
    """List capabilities with their providers and similar capabilities."""
    config = load_cli_config(config_file)
    setup_logging(config, verbose=False)

    orchestrator = Orchestrator.from_config(config)
    records = orchestrator.list_capabilities()
    if not records:
        print_warning("No capabilities declared. Add executors in config.yaml.")
        return
    console.print(capabilities_table(records))


__all__ = ["capabilities"]
