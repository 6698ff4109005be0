"""Rich output helpers shared by the CLI commands.

Colours are semantic: success, warning, error, info, muted, highlight.
"""

from rich.console import Console
from rich.theme import Theme

TASKLOOM_THEME = Theme(
    {
        "success": "green",
        "warning": "yellow",
        "error": "red",
        "info": "blue",
        "muted": "dim",
        "highlight": "bold cyan",
    }
)

console = Console(theme=TASKLOOM_THEME)

__all__ = ["TASKLOOM_THEME", "console"]
