"""Bordered message panels for info, warnings, errors and success."""

from rich.panel import Panel

from taskloom.cli.formatters import console


def _panel(message: str, title: str, style: str, colour: str) -> Panel:
    return Panel(
        f"[{style}]{message}[/]",
        title=f"[bold {colour}]{title}[/]",
        border_style=colour,
        expand=False,
    )


def print_info(message: str, title: str = "Info") -> None:
    console.print(_panel(message, title, "info", "blue"))


def print_warning(message: str, title: str = "Warning") -> None:
    console.print(_panel(message, title, "warning", "yellow"))


def print_error(message: str, title: str = "Error") -> None:
    console.print(_panel(message, title, "error", "red"))


def print_success(message: str, title: str = "Success") -> None:
    console.print(_panel(message, title, "success", "green"))


__all__ = ["print_error", "print_info", "print_success", "print_warning"]
