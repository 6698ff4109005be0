"""Spinner for long-running async steps such as planning."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from taskloom.cli.formatters import console


@asynccontextmanager
async def async_spinner(description: str) -> AsyncIterator[Progress]:
    """Show a transient spinner while the block runs.

    Example:
        async with async_spinner("Planning..."):
            plan = await orchestrator.create_plan(name, goal)
    """
    progress = Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )
    with progress:
        progress.add_task(description, total=None)
        yield progress


__all__ = ["async_spinner"]
