"""`taskloom config`: create and inspect ~/.taskloom/config.yaml."""

from pathlib import Path
from typing import Annotated, Any

import typer

from taskloom.cli.commands._common import load_cli_config
from taskloom.cli.formatters import console
from taskloom.cli.formatters.panels import print_error, print_success
from taskloom.cli.formatters.tables import create_key_value_table
from taskloom.config.loader import create_default_config
from taskloom.core.errors import ConfigError

app = typer.Typer(
    name="config",
    help="Manage Taskloom configuration.",
    no_args_is_help=True,
)

_SECTIONS = ("planning", "discovery", "execution", "logging", "executors")


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    flat: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{prefix}{key}."))
        else:
            flat[f"{prefix}{key}"] = value
    return flat


@app.command()
def init(
    config_dir: Annotated[
        Path | None,
        typer.Option("--dir", help="Directory to write config.yaml to (default ~/.taskloom)."),
    ] = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Overwrite an existing file.")
    ] = False,
) -> None:
    """Write a default config.yaml."""
    try:
        path = create_default_config(config_dir, overwrite=force)
    except ConfigError as e:
        print_error(f"{e.message}\nUse --force to overwrite.", title="Configuration Error")
        raise typer.Exit(1) from e
    print_success(f"Configuration written to {path}")


@app.command()
def show(
    section: Annotated[
        str | None,
        typer.Argument(help=f"Section to display ({', '.join(_SECTIONS)})."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config.yaml.", dir_okay=False),
    ] = None,
) -> None:
    """Display the active configuration, or one section of it."""
    config = load_cli_config(config_file)
    data = config.model_dump(mode="json")

    if section is not None and section not in _SECTIONS:
        print_error(f"Unknown section '{section}'. Choose from: {', '.join(_SECTIONS)}")
        raise typer.Exit(1)

    for name in [section] if section else _SECTIONS:
        value = data[name]
        if name == "executors":
            for executor in value:
                executor["capabilities"] = ", ".join(c["name"] for c in executor["capabilities"])
                console.print(create_key_value_table(executor, f"executor: {executor['id']}"))
        else:
            console.print(create_key_value_table(_flatten(value), name))


__all__ = ["app"]
