"""Taskloom - Task Orchestration Engine.

Decomposes a goal into a dependency graph of tasks, routes each task to the
best capability-tagged executor, and runs the graph under a concurrency budget.

Example:
    # Using CLI
    taskloom run "Write a market report on solar panels"

    # Using Python
    from taskloom.orchestrator import Orchestrator
    from taskloom.agents import FunctionExecutor
"""

__version__ = "0.4.0"

__all__ = ["__version__", "main"]


def main() -> None:
    """Main entry point for the Taskloom CLI.

    This function invokes the Typer app from taskloom.cli.main.
    """
    from taskloom.cli.main import app

    app()
