# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Console helpers shared by the CLI commands.

All output goes through one Rich console so spinners and log lines
from RichHandler do not overwrite each other.
"""

from rich.console import Console
from rich.panel import Panel

console = Console()


def show_panel(title: str, content: str, border_style: str = "blue") -> None:
    console.print(Panel(content, title=f"[bold]{title}[/bold]", border_style=border_style, expand=False))


def format_status(status: str, is_success: bool) -> str:
    color = "green" if is_success else "red"
    return f"[{color}]{status}[/{color}]"


def format_warning_status(status: str) -> str:
    return f"[yellow]{status}[/yellow]"


def format_duration(seconds: float) -> str:
    """Render elapsed time as ``4.2s`` below a minute and ``12m 05s`` above."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m {secs:02d}s"


def success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def warning(message: str, details: list[str] | None = None) -> None:
    console.print(f"[yellow]Warning:[/yellow] {message}")
    for detail in details or []:
        console.print(f"  • {detail}")


def tip(message: str) -> None:
    console.print(f"\n[yellow]Tip:[/yellow] {message}")
