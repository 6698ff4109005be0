"""Taskloom CLI entry point: the Typer app and its commands."""

from typing import Annotated

import typer

from taskloom import __version__
from taskloom.cli.commands import capabilities, config, run
from taskloom.cli.formatters import console

app = typer.Typer(
    name="taskloom",
    help="Taskloom - plan goals into task graphs and run them on capability-routed executors.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command(name="run")(run.run)
app.command(name="capabilities")(capabilities.capabilities)
app.add_typer(config.app, name="config")


def version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold cyan]Taskloom[/] version [green]{__version__}[/]")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
) -> None:
    """Taskloom - Task Orchestration Engine.

    Use [bold cyan]taskloom COMMAND --help[/] for command-specific help.
    """


__all__ = ["app", "main"]
